"""
File: core/action_sequencer.py
Purpose: Epoch-keyed task queue that replays the agent's reasoning trace.
Dependencies: Scheduler, resolvers, record store, schema.
Performance: O(1) per step; one scheduled callback outstanding per run.

State machine::

    idle → intro → checking → correlating → complete
      ↑______________ reset() from any state ______|

Each step is a function ``(RunContext) -> StepResult``: the actions to
append, an optional state transition, and the next step with the delay
before it. Only one callback is outstanding per run, so a source's
``check → finding|warning → thought`` sub-sequence is always appended
before the next source's ``check``, and correlation never starts before
the last source is done.

Every callback carries the epoch it was scheduled in. ``reset()`` and
``start()`` draw a new epoch, so stale callbacks fire as no-ops.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from agents.rca_agent.config import RCAAgentConfig, StepDelays
from agents.rca_agent.core.availability import (
    irrelevant_active_sources,
    normalize_sources,
    relevant_active_sources,
)
from agents.rca_agent.core.evidence_collector import EvidenceCollector
from agents.rca_agent.core.hypothesis_resolver import (
    HypothesisResolver,
    hypothesis_statement,
)
from agents.rca_agent.core.scheduler import Scheduler
from agents.rca_agent.playbooks import PlaybookLibrary, default_library
from agents.rca_agent.schema import (
    ActionType,
    AgentAction,
    AnalysisResult,
    EventKind,
    IntroNarrative,
    ScenarioPlaybook,
    SequencerEvent,
    SequencerState,
)
from agents.rca_agent.telemetry import TelemetryCollector, get_logger
from scenarios.catalog import ScenarioCatalog, default_catalog
from scenarios.models import Scenario, SourceKey
from scenarios.records import SourceRecordStore, default_record_store

logger = get_logger("rca_agent.action_sequencer")

# Process-wide generation counter shared by every sequencer.
_EPOCHS = itertools.count(1)

NO_FINDINGS_TEXT = "Source checked but no significant findings for this scenario."
NO_DATA_TEXT = "Source checked but no data was available for this scenario."

_GENERIC_INTRO = IntroNarrative(
    parse="No known scenario matches this request.",
    identify="Target KPI: unknown.",
    determine="Time window: unknown.",
    thought="Without a known scenario there is nothing specific to look for.",
)

_INTRO_ORDER = (
    ActionType.PARSE,
    ActionType.IDENTIFY,
    ActionType.DETERMINE,
    ActionType.THOUGHT,
)

_LABELS: Dict[ActionType, str] = {
    ActionType.PARSE: "Parsing query",
    ActionType.IDENTIFY: "Identifying KPI",
    ActionType.DETERMINE: "Determining time window",
    ActionType.THOUGHT: "Thinking",
    ActionType.CHECK: "Checking source",
    ActionType.FINDING: "Finding",
    ActionType.WARNING: "No findings",
    ActionType.CORRELATE: "Correlating evidence",
    ActionType.HYPOTHESIS: "Forming hypothesis",
}

# Reset is handled separately: any state → IDLE.
_VALID_TRANSITIONS: Dict[SequencerState, Set[SequencerState]] = {
    SequencerState.IDLE: {SequencerState.INTRO},
    SequencerState.INTRO: {SequencerState.CHECKING},
    SequencerState.CHECKING: {SequencerState.CORRELATING},
    SequencerState.CORRELATING: {SequencerState.COMPLETE},
    SequencerState.COMPLETE: set(),
}


class SequencerStateError(RuntimeError):
    """Raised on an illegal internal state transition."""

    def __init__(self, from_state: SequencerState, to_state: SequencerState) -> None:
        super().__init__(
            f"Invalid sequencer transition {from_state.value} → {to_state.value}"
        )
        self.from_state = from_state
        self.to_state = to_state


@dataclass(frozen=True)
class RunContext:
    """Immutable inputs of one replay, captured at ``start``."""
    epoch: int
    scenario_key: str
    scenario: Optional[Scenario]
    playbook: Optional[ScenarioPlaybook]
    active_sources: Mapping[SourceKey, bool]

    def is_relevant(self, source: SourceKey) -> bool:
        return self.scenario is not None and source in self.scenario.relevant_sources


@dataclass(frozen=True)
class StepResult:
    """What a step produced and what comes next."""
    actions: Tuple[AgentAction, ...] = ()
    next_step: Optional[Step] = None
    delay: float = 0.0
    state: Optional[SequencerState] = None
    result: Optional[AnalysisResult] = None
    reveal: bool = False


Step = Callable[[RunContext], StepResult]
Listener = Callable[[SequencerEvent], None]


def _action(
    kind: ActionType,
    content: str,
    source: Optional[SourceKey] = None,
) -> AgentAction:
    return AgentAction(type=kind, label=_LABELS[kind], content=content, source=source)


class ActionSequencer:
    """Cooperative, cancelable replay of the reasoning trace.

    Args:
        scheduler: Clock used for every delay.
        config: Agent configuration (delays, feature flags).
        catalog: Scenario catalogue.
        playbooks: Playbook library.
        records: Source record store.
        resolver: Hypothesis resolver (built from the above if omitted).
        collector: Evidence collector (built from the above if omitted).
        telemetry: Metrics sink.

    Example::

        clock = ManualScheduler()
        seq = ActionSequencer(clock)
        seq.start("checkout-drop", {"analytics": True})
        clock.run_until_idle()
        seq.result.hypothesis.confidence.percent   # 30
    """

    def __init__(
        self,
        scheduler: Scheduler,
        config: Optional[RCAAgentConfig] = None,
        catalog: Optional[ScenarioCatalog] = None,
        playbooks: Optional[PlaybookLibrary] = None,
        records: Optional[SourceRecordStore] = None,
        resolver: Optional[HypothesisResolver] = None,
        collector: Optional[EvidenceCollector] = None,
        telemetry: Optional[TelemetryCollector] = None,
    ) -> None:
        self._scheduler = scheduler
        self._config = config or RCAAgentConfig()
        self._catalog = catalog if catalog is not None else default_catalog()
        self._playbooks = playbooks if playbooks is not None else default_library()
        self._records = records if records is not None else default_record_store()
        self._resolver = resolver or HypothesisResolver(
            self._config, self._catalog, self._playbooks,
        )
        self._collector = collector or EvidenceCollector(
            self._config, self._catalog, self._playbooks, self._records,
        )
        self._telemetry = telemetry or TelemetryCollector()

        self._state = SequencerState.IDLE
        self._epoch = next(_EPOCHS)
        self._actions: List[AgentAction] = []
        self._revealed = False
        self._result: Optional[AnalysisResult] = None
        self._context: Optional[RunContext] = None
        self._started_at = 0.0
        self._listeners: List[Listener] = []

    # ─── observable state ───────────────────────────────────────

    @property
    def state(self) -> SequencerState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def revealed(self) -> bool:
        return self._revealed

    @property
    def result(self) -> Optional[AnalysisResult]:
        """Final synthesis; set just before the reveal."""
        return self._result

    @property
    def actions(self) -> Tuple[AgentAction, ...]:
        """Immutable snapshot of the action log."""
        return tuple(self._actions)

    @property
    def scenario_key(self) -> Optional[str]:
        return self._context.scenario_key if self._context else None

    @property
    def is_running(self) -> bool:
        return self._state not in (SequencerState.IDLE, SequencerState.COMPLETE)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for events; returns an unsubscribe function.

        Listeners run synchronously inside the firing callback.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ─── public API ─────────────────────────────────────────────

    def start(self, scenario_key: str, active_sources: Any) -> int:
        """Begin a replay for *scenario_key* with *active_sources*.

        Args:
            scenario_key: Scenario to analyse (unknown keys replay a
                generic trace ending in the neutral hypothesis).
            active_sources: ``{source: bool}`` toggles, snapshotted now.

        Returns:
            The epoch of the new run.
        """
        if self._state is not SequencerState.IDLE:
            self.reset()

        self._epoch = next(_EPOCHS)
        self._clear()
        key = scenario_key if isinstance(scenario_key, str) else ""
        ctx = RunContext(
            epoch=self._epoch,
            scenario_key=key,
            scenario=self._catalog.get(key),
            playbook=self._playbooks.get(key),
            active_sources=MappingProxyType(normalize_sources(active_sources)),
        )
        self._context = ctx
        self._started_at = self._scheduler.now()
        self._telemetry.analyses_started.inc()

        logger.info(
            f"Replay started — scenario={key or '<none>'}",
            extra={
                "layer": "sequencer",
                "context": {
                    "epoch": ctx.epoch,
                    "sources": [s.value for s, on in ctx.active_sources.items() if on],
                },
            },
        )

        self._transition(SequencerState.INTRO)
        self._schedule(ctx, partial(self._intro_step, index=0), self._delays.intro)
        return self._epoch

    def reset(self) -> None:
        """Invalidate every scheduled callback, clear the log, go idle."""
        self._epoch = next(_EPOCHS)
        self._clear()
        self._context = None
        self._state = SequencerState.IDLE
        self._telemetry.resets.inc()
        self._emit(
            SequencerEvent(
                kind=EventKind.RESET, epoch=self._epoch, state=self._state,
            )
        )

    # ─── scheduling machinery ───────────────────────────────────

    @property
    def _delays(self) -> StepDelays:
        return self._config.delays

    def _clear(self) -> None:
        self._actions = []
        self._revealed = False
        self._result = None

    def _schedule(self, ctx: RunContext, step: Step, delay: float) -> None:
        epoch = ctx.epoch
        self._scheduler.call_later(delay, lambda: self._fire(epoch, ctx, step))

    def _fire(self, epoch: int, ctx: RunContext, step: Step) -> None:
        if epoch != self._epoch:
            self._telemetry.stale_callbacks_dropped.inc()
            logger.debug(
                "Dropped stale callback",
                extra={"layer": "sequencer", "context": {"epoch": epoch, "current": self._epoch}},
            )
            return

        outcome = step(ctx)
        for action in outcome.actions:
            self._append(action)
            # A listener may have reset or restarted the sequencer.
            if epoch != self._epoch:
                return

        if outcome.result is not None:
            self._result = outcome.result
        if outcome.reveal:
            self._revealed = True
            self._emit(
                SequencerEvent(kind=EventKind.REVEAL, epoch=epoch, state=self._state)
            )
            if epoch != self._epoch:
                return
        if outcome.state is not None:
            self._transition(outcome.state)
            if epoch != self._epoch:
                return
            if outcome.state is SequencerState.COMPLETE:
                self._on_complete(ctx)
        if outcome.next_step is not None:
            self._schedule(ctx, outcome.next_step, outcome.delay)

    def _append(self, draft: AgentAction) -> None:
        elapsed = max(0.0, self._scheduler.now() - self._started_at)
        action = draft.model_copy(
            update={"timestamp": round(elapsed, 6), "sequence": len(self._actions)}
        )
        self._actions.append(action)
        self._telemetry.actions_emitted.inc()
        if action.type is ActionType.FINDING:
            self._telemetry.findings.inc()
        elif action.type is ActionType.WARNING:
            self._telemetry.warnings.inc()
        self._emit(
            SequencerEvent(
                kind=EventKind.ACTION, epoch=self._epoch, state=self._state, action=action,
            )
        )

    def _transition(self, to_state: SequencerState) -> None:
        if to_state not in _VALID_TRANSITIONS[self._state]:
            raise SequencerStateError(self._state, to_state)
        self._state = to_state
        self._emit(
            SequencerEvent(kind=EventKind.STATE, epoch=self._epoch, state=to_state)
        )

    def _emit(self, event: SequencerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _on_complete(self, ctx: RunContext) -> None:
        duration = self._scheduler.now() - self._started_at
        self._telemetry.analyses_completed.inc()
        self._telemetry.run_duration.observe(duration)
        hypothesis = self._result.hypothesis if self._result else None
        logger.info(
            f"Replay complete — scenario={ctx.scenario_key or '<none>'}",
            extra={
                "layer": "sequencer",
                "context": {
                    "epoch": ctx.epoch,
                    "actions": len(self._actions),
                    "confidence": hypothesis.confidence.percent if hypothesis else 0,
                },
            },
        )

    # ─── phase 1: intro ─────────────────────────────────────────

    def _intro_step(self, ctx: RunContext, index: int) -> StepResult:
        intro = ctx.playbook.intro if ctx.playbook else _GENERIC_INTRO
        kind = _INTRO_ORDER[index]
        action = _action(kind, getattr(intro, kind.value))

        if index + 1 < len(_INTRO_ORDER):
            return StepResult(
                actions=(action,),
                next_step=partial(self._intro_step, index=index + 1),
                delay=self._delays.intro,
            )
        return StepResult(
            actions=(action,),
            next_step=self._enter_checking,
            delay=self._delays.phase_transition,
        )

    # ─── phase 2: per-source checking ───────────────────────────

    def _plan_sources(self, ctx: RunContext) -> Tuple[SourceKey, ...]:
        plan = relevant_active_sources(ctx.scenario, ctx.active_sources)
        if self._config.features.check_irrelevant_sources:
            plan.extend(irrelevant_active_sources(ctx.scenario, ctx.active_sources))
        return tuple(plan)

    def _enter_checking(self, ctx: RunContext) -> StepResult:
        sources = self._plan_sources(ctx)
        if not sources:
            return StepResult(
                state=SequencerState.CHECKING,
                next_step=self._enter_correlating,
                delay=self._delays.phase_transition,
            )
        return StepResult(
            state=SequencerState.CHECKING,
            next_step=partial(self._check_step, sources=sources, index=0),
            delay=self._delays.check,
        )

    def _check_step(
        self, ctx: RunContext, sources: Tuple[SourceKey, ...], index: int,
    ) -> StepResult:
        source = sources[index]
        narrative = ctx.playbook.sources.get(source) if ctx.playbook else None
        if narrative is not None and ctx.is_relevant(source):
            text = narrative.check
        else:
            text = f"Looking for anything related to this incident in {source.value} data."
        return StepResult(
            actions=(_action(ActionType.CHECK, text, source),),
            next_step=partial(self._finding_step, sources=sources, index=index),
            delay=self._delays.finding,
        )

    def _finding_step(
        self, ctx: RunContext, sources: Tuple[SourceKey, ...], index: int,
    ) -> StepResult:
        source = sources[index]
        if not ctx.is_relevant(source):
            warning = _action(ActionType.WARNING, NO_FINDINGS_TEXT, source)
            return self._after_source(ctx, sources, index, warning)

        record = self._records.get(ctx.scenario_key, source)
        if record is None:
            warning = _action(ActionType.WARNING, NO_DATA_TEXT, source)
            return self._after_source(ctx, sources, index, warning)

        return StepResult(
            actions=(_action(ActionType.FINDING, record.summary, source),),
            next_step=partial(self._thought_step, sources=sources, index=index),
            delay=self._delays.thought,
        )

    def _thought_step(
        self, ctx: RunContext, sources: Tuple[SourceKey, ...], index: int,
    ) -> StepResult:
        source = sources[index]
        narrative = ctx.playbook.sources.get(source) if ctx.playbook else None
        text = (
            narrative.thought
            if narrative is not None
            else f"The {source.value} data fits the incident window."
        )
        return self._after_source(
            ctx, sources, index, _action(ActionType.THOUGHT, text, source),
        )

    def _after_source(
        self,
        ctx: RunContext,
        sources: Tuple[SourceKey, ...],
        index: int,
        last_action: AgentAction,
    ) -> StepResult:
        if index + 1 < len(sources):
            return StepResult(
                actions=(last_action,),
                next_step=partial(self._check_step, sources=sources, index=index + 1),
                delay=self._delays.check,
            )
        return StepResult(
            actions=(last_action,),
            next_step=self._enter_correlating,
            delay=self._delays.phase_transition,
        )

    # ─── phase 3: correlate & hypothesize ───────────────────────

    def _enter_correlating(self, ctx: RunContext) -> StepResult:
        return StepResult(
            state=SequencerState.CORRELATING,
            next_step=self._correlate_step,
            delay=self._delays.correlate,
        )

    def _correlate_step(self, ctx: RunContext) -> StepResult:
        text = self._resolver.correlate(ctx.scenario_key, ctx.active_sources)
        return StepResult(
            actions=(_action(ActionType.CORRELATE, text),),
            next_step=self._hypothesis_step,
            delay=self._delays.hypothesis,
        )

    def _hypothesis_step(self, ctx: RunContext) -> StepResult:
        hypothesis = self._resolver.resolve(ctx.scenario_key, ctx.active_sources)
        evidence = self._collector.collect(ctx.scenario_key, ctx.active_sources)
        return StepResult(
            actions=(_action(ActionType.HYPOTHESIS, hypothesis_statement(hypothesis)),),
            result=AnalysisResult(
                scenario_key=ctx.scenario_key,
                hypothesis=hypothesis,
                evidence=tuple(evidence),
            ),
            next_step=self._reveal_step,
            delay=self._delays.reveal,
        )

    def _reveal_step(self, ctx: RunContext) -> StepResult:
        return StepResult(reveal=True, state=SequencerState.COMPLETE)
