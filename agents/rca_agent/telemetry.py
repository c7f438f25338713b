"""
File: telemetry.py
Purpose: Structured logging + replay metrics for the RCA agent.
Dependencies: Standard library only (logging, time, threading, collections)
Performance: O(1) per metric update; snapshots sort at most 256 samples.

Counts replay lifecycle events (starts, completions, resets, stale
callbacks) and records how long runs and resolver calls take.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Any, Deque, Dict, Generator

# Attributes copied from ``extra={...}`` onto the JSON line when present.
_EXTRA_FIELDS = ("correlation_id", "layer", "context")

_ROOT = "insightflow"


class _StructuredFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        line.update(
            (field, getattr(record, field))
            for field in _EXTRA_FIELDS
            if hasattr(record, field)
        )
        if record.exc_info and record.exc_info[0] is not None:
            line["error"] = f"{record.exc_info[0].__name__}: {record.exc_info[1]}"
        return json.dumps(line, default=str)


def get_logger(name: str = "rca_agent") -> logging.Logger:
    """Return the JSON logger ``insightflow.<name>``.

    Handlers live on the ``insightflow`` root, which defaults to WARNING and
    does not propagate; raise its level to see replay progress.
    """
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_StructuredFormatter())
        root.addHandler(handler)
        root.setLevel(logging.WARNING)
        root.propagate = False
    return root.getChild(name)


# ── metric primitives ───────────────────────────────────────────


class _Counter:
    __slots__ = ("_n", "_lock")

    def __init__(self) -> None:
        self._n = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._n += n

    @property
    def value(self) -> int:
        return self._n

    def reset(self) -> None:
        with self._lock:
            self._n = 0


class _Histogram:
    """Running count/sum plus a window of recent samples for percentiles."""

    __slots__ = ("_count", "_sum", "_recent", "_lock")

    WINDOW = 256

    def __init__(self) -> None:
        self._count = 0
        self._sum = 0.0
        self._recent: Deque[float] = deque(maxlen=self.WINDOW)
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        with self._lock:
            self._count += 1
            self._sum += value
            self._recent.append(value)

    @property
    def count(self) -> int:
        return self._count

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            ordered = sorted(self._recent)
            count, total = self._count, self._sum
        if not ordered:
            return {"count": 0.0, "sum": 0.0, "avg": 0.0, "min": 0.0, "max": 0.0, "p50": 0.0}
        return {
            "count": float(count),
            "sum": total,
            "avg": total / count,
            "min": ordered[0],
            "max": ordered[-1],
            "p50": ordered[len(ordered) // 2],
        }

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._sum = 0.0
            self._recent.clear()


# ── collector ───────────────────────────────────────────────────


class TelemetryCollector:
    """Replay and resolver metrics for one agent.

    Counters: analyses_started, analyses_completed, resets,
    actions_emitted, findings, warnings, stale_callbacks_dropped.

    Histograms: ``resolve`` / ``collect`` / ``inference`` in wall-clock
    milliseconds; ``run_duration`` in seconds on the sequencer clock.
    """

    COUNTERS = (
        "analyses_started",
        "analyses_completed",
        "resets",
        "actions_emitted",
        "findings",
        "warnings",
        "stale_callbacks_dropped",
    )
    HISTOGRAMS = ("resolve", "collect", "inference", "run_duration")

    def __init__(self) -> None:
        self._metrics: Dict[str, Any] = {
            **{name: _Counter() for name in self.COUNTERS},
            **{name: _Histogram() for name in self.HISTOGRAMS},
        }

    def __getattr__(self, name: str) -> Any:
        metrics = self.__dict__.get("_metrics", {})
        if name in metrics:
            return metrics[name]
        raise AttributeError(name)

    @contextmanager
    def measure(self, layer: str) -> Generator[None, None, None]:
        """Time the block in milliseconds into histogram *layer*.

        Names that are not histograms are timed and discarded.
        """
        started = time.perf_counter()
        try:
            yield
        finally:
            if layer in self.HISTOGRAMS:
                self._metrics[layer].observe((time.perf_counter() - started) * 1000)

    def snapshot(self) -> Dict[str, Any]:
        """``{"latency": {name: stats}, "counters": {name: int}}``."""
        return {
            "latency": {name: self._metrics[name].snapshot() for name in self.HISTOGRAMS},
            "counters": {name: self._metrics[name].value for name in self.COUNTERS},
        }

    def reset(self) -> None:
        for metric in self._metrics.values():
            metric.reset()
