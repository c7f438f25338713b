"""Application-shell logging (CLI + HTTP API) via *structlog*.

Every line carries the request/run correlation id and, while a replay is
being driven, the scenario it belongs to. Lines go to stderr so ``--json``
output on stdout stays machine-readable.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

_correlation_id: ContextVar[str] = ContextVar("insightflow_correlation_id", default="")

_RUN_KEYS = ("scenario", "mode")

_CONFIGURED = False


# ── correlation ids ────────────────────────────────────────────────


@contextmanager
def correlation_scope(cid: Optional[str] = None) -> Iterator[str]:
    """Use *cid* (or a fresh id) as the correlation id inside the block."""
    token = _correlation_id.set(cid or uuid.uuid4().hex)
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def current_correlation_id() -> str:
    """Correlation id of the current context ("" outside any scope)."""
    return _correlation_id.get()


# ── run context ────────────────────────────────────────────────────


def bind_run(scenario_key: str, mode: str) -> None:
    """Tag subsequent log lines in this context with the replay they drive."""
    structlog.contextvars.bind_contextvars(scenario=scenario_key, mode=mode)


def clear_run() -> None:
    structlog.contextvars.unbind_contextvars(*_RUN_KEYS)


# ── processors / factory ───────────────────────────────────────────


def _inject_correlation_id(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    cid = _correlation_id.get()
    if cid:
        event_dict.setdefault("correlation_id", cid)
    return event_dict


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per logger so redirected streams (tests, daemons) are honoured.
    return structlog.PrintLogger(sys.stderr)


# ── setup ──────────────────────────────────────────────────────────


def setup_logging(
    log_level: str = "INFO",
    *,
    json_output: Optional[bool] = None,
    force: bool = False,
) -> None:
    """Configure *structlog* and the stdlib root logger once per process.

    Args:
        log_level: One of ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR``.
        json_output: Force JSON (True) or console (False) rendering;
            by default JSON is used unless stderr is a TTY.
        force: Reconfigure even if already configured.
    """
    global _CONFIGURED  # noqa: PLW0603
    if _CONFIGURED and not force:
        return
    _CONFIGURED = True

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=force)

    if json_output is None:
        json_output = not sys.stderr.isatty()
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _inject_correlation_id,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None) -> Any:
    """Return a structlog logger, bound to ``logger=name`` when given."""
    log = structlog.get_logger()
    if name:
        log = log.bind(logger=name)
    return log
