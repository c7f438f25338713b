"""Prometheus metrics endpoint — agent telemetry in text exposition format."""

from __future__ import annotations

from typing import Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    Metric,
    SummaryMetricFamily,
)

from ..dependencies import get_agent
from agents.rca_agent.agent import RCAAgent

router = APIRouter(tags=["metrics"])

_PREFIX = "insightflow"


class AgentMetricsCollector:
    """Prometheus collector reading an agent's telemetry on each scrape."""

    def __init__(self, agent: RCAAgent) -> None:
        self._agent = agent

    def collect(self) -> Iterator[Metric]:
        snap = self._agent.telemetry.snapshot()

        for name, value in snap["counters"].items():
            yield CounterMetricFamily(
                f"{_PREFIX}_{name}",
                f"RCA agent counter: {name.replace('_', ' ')}",
                value=value,
            )

        latency = SummaryMetricFamily(
            f"{_PREFIX}_latency_milliseconds",
            "Wall-clock latency of synchronous agent calls",
            labels=["layer"],
        )
        for layer in ("resolve", "collect", "inference"):
            stats = snap["latency"][layer]
            latency.add_metric([layer], count_value=stats["count"], sum_value=stats["sum"])
        yield latency

        run = snap["latency"]["run_duration"]
        yield SummaryMetricFamily(
            f"{_PREFIX}_run_duration_seconds",
            "Replay duration on the sequencer clock",
            count_value=run["count"],
            sum_value=run["sum"],
        )

        yield GaugeMetricFamily(
            f"{_PREFIX}_trace_actions",
            "Actions in the current reasoning trace",
            value=len(self._agent.actions),
        )


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics",
)
def prometheus_metrics(agent: RCAAgent = Depends(get_agent)) -> PlainTextResponse:
    """Export agent telemetry in Prometheus text exposition format."""
    registry = CollectorRegistry()
    registry.register(AgentMetricsCollector(agent))
    return PlainTextResponse(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
