"""
File: agent.py
Purpose: RCA agent facade — inference, resolution and the reasoning replay.
Dependencies: All rca_agent sub-modules.
Performance: <1ms per synchronous call; replay length set by StepDelays.

Two ways to reach a conclusion:
  Synchronous: ``analyze()`` resolves hypothesis + evidence immediately.
  Replayed:    ``start()`` walks the reasoning trace on a scheduler and
               reveals the same result when the trace completes.

Both paths share one resolver and one collector, so the replayed result
always equals the synchronous one for the same inputs.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from agents.rca_agent.config import RCAAgentConfig
from agents.rca_agent.core.action_sequencer import ActionSequencer, Listener
from agents.rca_agent.core.evidence_collector import EvidenceCollector
from agents.rca_agent.core.hypothesis_resolver import HypothesisResolver
from agents.rca_agent.core.scenario_inference import ScenarioInference
from agents.rca_agent.core.scheduler import AsyncioScheduler, Scheduler
from agents.rca_agent.playbooks import PlaybookLibrary, default_library
from agents.rca_agent.schema import (
    AgentAction,
    AnalysisResult,
    EventKind,
    Evidence,
    Hypothesis,
    SequencerEvent,
    SequencerState,
)
from agents.rca_agent.telemetry import TelemetryCollector, get_logger
from scenarios.catalog import ScenarioCatalog, default_catalog
from scenarios.records import SourceRecordStore, default_record_store

logger = get_logger("rca_agent.agent")


class RCAAgent:
    """Deterministic root-cause analysis agent.

    Args:
        config: Agent configuration.
        scheduler: Clock for the replay (defaults to ``AsyncioScheduler``).
        catalog: Scenario catalogue.
        playbooks: Playbook library.
        records: Source record store.

    Example::

        agent = RCAAgent(scheduler=ManualScheduler())
        key = agent.infer_scenario("Why did checkout completion drop?")
        result = agent.analyze(key, {"analytics": True, "support": True})
        result.hypothesis.confidence.percent   # 65
    """

    def __init__(
        self,
        config: Optional[RCAAgentConfig] = None,
        scheduler: Optional[Scheduler] = None,
        catalog: Optional[ScenarioCatalog] = None,
        playbooks: Optional[PlaybookLibrary] = None,
        records: Optional[SourceRecordStore] = None,
    ) -> None:
        self._config = config or RCAAgentConfig()
        self._telemetry = TelemetryCollector()
        self._scheduler = scheduler or AsyncioScheduler()
        self._catalog = catalog if catalog is not None else default_catalog()
        self._playbooks = playbooks if playbooks is not None else default_library()
        self._records = records if records is not None else default_record_store()

        # ── layer instances ─────────────────────────────────────
        self._inference = ScenarioInference(self._config, self._playbooks)
        self._resolver = HypothesisResolver(self._config, self._catalog, self._playbooks)
        self._collector = EvidenceCollector(
            self._config, self._catalog, self._playbooks, self._records,
        )
        self._sequencer = ActionSequencer(
            self._scheduler,
            config=self._config,
            catalog=self._catalog,
            playbooks=self._playbooks,
            records=self._records,
            resolver=self._resolver,
            collector=self._collector,
            telemetry=self._telemetry,
        )

        logger.info(
            f"RCAAgent initialized — "
            f"scenarios={len(self._catalog)}, "
            f"playbooks={len(self._playbooks)}, "
            f"check_irrelevant="
            f"{'enabled' if self._config.features.check_irrelevant_sources else 'disabled'}",
        )

    # ─── collaborators ──────────────────────────────────────────

    @property
    def config(self) -> RCAAgentConfig:
        return self._config

    @property
    def catalog(self) -> ScenarioCatalog:
        return self._catalog

    @property
    def playbooks(self) -> PlaybookLibrary:
        return self._playbooks

    @property
    def records(self) -> SourceRecordStore:
        return self._records

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def telemetry(self) -> TelemetryCollector:
        return self._telemetry

    # ─── synchronous API ────────────────────────────────────────

    def infer_scenario(self, query: str) -> str:
        with self._telemetry.measure("inference"):
            return self._inference.infer(query)

    def resolve(self, scenario_key: str, active_sources: Any) -> Hypothesis:
        with self._telemetry.measure("resolve"):
            return self._resolver.resolve(scenario_key, active_sources)

    def collect(self, scenario_key: str, active_sources: Any) -> List[Evidence]:
        with self._telemetry.measure("collect"):
            return self._collector.collect(scenario_key, active_sources)

    def analyze(self, scenario_key: str, active_sources: Any) -> AnalysisResult:
        """Resolve hypothesis and evidence without replaying the trace."""
        return AnalysisResult(
            scenario_key=scenario_key if isinstance(scenario_key, str) else "",
            hypothesis=self.resolve(scenario_key, active_sources),
            evidence=tuple(self.collect(scenario_key, active_sources)),
        )

    # ─── replay API ─────────────────────────────────────────────

    def start(self, scenario_key: str, active_sources: Any) -> int:
        """Begin the reasoning replay; returns its epoch."""
        return self._sequencer.start(scenario_key, active_sources)

    def reset(self) -> None:
        self._sequencer.reset()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._sequencer.subscribe(listener)

    @property
    def state(self) -> SequencerState:
        return self._sequencer.state

    @property
    def epoch(self) -> int:
        return self._sequencer.epoch

    @property
    def actions(self) -> Tuple[AgentAction, ...]:
        return self._sequencer.actions

    @property
    def revealed(self) -> bool:
        return self._sequencer.revealed

    @property
    def result(self) -> Optional[AnalysisResult]:
        """Replay result, available once the trace has been revealed."""
        return self._sequencer.result if self._sequencer.revealed else None

    @property
    def scenario_key(self) -> Optional[str]:
        return self._sequencer.scenario_key

    async def run(
        self,
        scenario_key: str,
        active_sources: Any,
        timeout: Optional[float] = None,
    ) -> Optional[AnalysisResult]:
        """Replay on the running loop and wait for the reveal.

        Requires an ``AsyncioScheduler`` (or any scheduler driven by the
        running loop).

        Args:
            scenario_key: Scenario to analyse.
            active_sources: ``{source: bool}`` toggles.
            timeout: Seconds to wait before giving up.

        Returns:
            The revealed result, or None if the run was reset or
            superseded before completing.

        Raises:
            asyncio.TimeoutError: The replay did not finish in time.
        """
        loop = asyncio.get_running_loop()
        done: asyncio.Future = loop.create_future()
        epoch_box: Dict[str, int] = {}

        def _on_event(event: SequencerEvent) -> None:
            # Events raised inside start() belong to the superseded run.
            if done.done() or not epoch_box:
                return
            if event.kind is EventKind.RESET or event.epoch != epoch_box["epoch"]:
                done.set_result(None)
            elif event.kind is EventKind.REVEAL:
                done.set_result(self._sequencer.result)

        unsubscribe = self.subscribe(_on_event)
        try:
            epoch_box["epoch"] = self.start(scenario_key, active_sources)
            return await asyncio.wait_for(done, timeout=timeout)
        finally:
            unsubscribe()

    def snapshot(self) -> Dict[str, Any]:
        """Current replay state plus telemetry, for status surfaces."""
        return {
            "state": self.state.value,
            "epoch": self.epoch,
            "scenario_key": self.scenario_key,
            "revealed": self.revealed,
            "actions": len(self.actions),
            "telemetry": self._telemetry.snapshot(),
        }
