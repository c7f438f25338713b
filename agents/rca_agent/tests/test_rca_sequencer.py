"""
Tests for core/action_sequencer.py — reasoning replay on a virtual clock.

Test Cases:
  1. Full checkout-drop trace → intro, 3×(check, finding, thought), correlate, hypothesis
  2. Timing → each step lands on its configured delay, total matches StepDelays
  3. reset() mid-phase → empty log, stale callbacks dropped
  4. start() while running → old run never appends again
  5. Degradation → missing records, unknown scenario, irrelevant sources
"""

from __future__ import annotations

from typing import List

import pytest

from agents.rca_agent.config import FeatureFlags, RCAAgentConfig, StepDelays
from agents.rca_agent.core.action_sequencer import (
    NO_DATA_TEXT,
    NO_FINDINGS_TEXT,
    ActionSequencer,
    SequencerStateError,
)
from agents.rca_agent.core.hypothesis_resolver import (
    GENERIC_CORRELATION,
    NEUTRAL_HYPOTHESIS,
)
from agents.rca_agent.core.scheduler import ManualScheduler
from agents.rca_agent.playbooks import CHECKOUT_DROP
from agents.rca_agent.schema import (
    ActionType,
    EventKind,
    SequencerEvent,
    SequencerState,
)
from agents.rca_agent.telemetry import TelemetryCollector
from scenarios.models import SourceKey
from scenarios.records import SourceRecordStore

ALL_CHECKOUT = {"analytics": True, "support": True, "releases": True}


@pytest.fixture
def clock() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def telemetry() -> TelemetryCollector:
    return TelemetryCollector()


@pytest.fixture
def seq(clock: ManualScheduler, telemetry: TelemetryCollector) -> ActionSequencer:
    return ActionSequencer(clock, telemetry=telemetry)


def _types(seq: ActionSequencer) -> List[ActionType]:
    return [a.type for a in seq.actions]


class TestFullTrace:
    def test_checkout_all_sources_order(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()

        intro = [ActionType.PARSE, ActionType.IDENTIFY, ActionType.DETERMINE, ActionType.THOUGHT]
        per_source = [ActionType.CHECK, ActionType.FINDING, ActionType.THOUGHT]
        assert _types(seq) == (
            intro + per_source * 3 + [ActionType.CORRELATE, ActionType.HYPOTHESIS]
        )
        sources = [a.source for a in seq.actions[4:13]]
        assert sources == [SourceKey.ANALYTICS] * 3 + [SourceKey.SUPPORT] * 3 + [SourceKey.RELEASES] * 3
        assert seq.revealed is True
        assert seq.state is SequencerState.COMPLETE

    def test_intro_uses_playbook_text(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        intro = CHECKOUT_DROP.intro
        assert [a.content for a in seq.actions[:4]] == [
            intro.parse, intro.identify, intro.determine, intro.thought,
        ]

    def test_finding_copies_record_summary(self, seq, clock):
        seq.start("api-error-spike", {"analytics": True})
        clock.run_until_idle()
        finding = next(a for a in seq.actions if a.type is ActionType.FINDING)
        assert finding.content == "API error rate jumped from 0.5% to 15% at 09:30 on May 6th."

    def test_hypothesis_statement_and_result(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        hypothesis = seq.actions[-1]
        assert hypothesis.content == (
            "Evidence strongly suggests release v2.5.1 caused checkout button "
            "failure on mobile devices due to event handler changes."
        )
        assert seq.result is not None
        assert seq.result.hypothesis.confidence.percent == 90
        assert [e.source for e in seq.result.evidence] == [
            SourceKey.ANALYTICS, SourceKey.SUPPORT, SourceKey.RELEASES,
        ]

    def test_sequence_numbers_are_log_indices(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        assert [a.sequence for a in seq.actions] == list(range(len(seq.actions)))

    def test_reveal_not_set_before_completion(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.advance(5.0)
        assert seq.revealed is False
        assert seq.result is None

    def test_no_active_sources_skips_checking(self, seq, clock):
        seq.start("checkout-drop", {})
        clock.run_until_idle()
        assert _types(seq)[4:] == [ActionType.CORRELATE, ActionType.HYPOTHESIS]
        assert seq.result.hypothesis.confidence.percent == 20


class TestTiming:
    def test_first_action_after_intro_delay(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.advance(0.75)
        assert seq.actions == ()
        clock.advance(0.1)
        assert len(seq.actions) == 1
        assert seq.actions[0].timestamp == pytest.approx(0.8)

    def test_total_duration_matches_delays(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        assert clock.now() == pytest.approx(StepDelays().total_for(3, 3))

    def test_scaled_delays(self, clock):
        config = RCAAgentConfig(delays=StepDelays().scaled(4.0))
        seq = ActionSequencer(clock, config=config)
        seq.start("api-error-spike", {"analytics": True, "infrastructure": True})
        clock.run_until_idle()
        assert clock.now() == pytest.approx(StepDelays().total_for(2, 2) / 4.0)

    def test_timestamps_non_decreasing(self, seq, clock):
        seq.start("api-error-spike", {"analytics": True, "internal": True, "infrastructure": True})
        clock.run_until_idle()
        stamps = [a.timestamp for a in seq.actions]
        assert stamps == sorted(stamps)


class TestCancellation:
    def test_reset_mid_checking_clears_and_stays_empty(self, seq, clock, telemetry):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.advance(5.0)  # first source's check appended
        assert seq.state is SequencerState.CHECKING
        assert seq.actions[-1].type is ActionType.CHECK

        seq.reset()
        assert seq.actions == ()
        assert seq.state is SequencerState.IDLE

        clock.advance(60.0)
        assert seq.actions == ()
        assert seq.revealed is False
        assert telemetry.stale_callbacks_dropped.value == 1

    def test_reset_in_every_state_is_safe(self, clock):
        for stop_at in (0.0, 1.0, 4.5, 8.0, 13.5, 14.5):
            seq = ActionSequencer(clock)
            seq.start("checkout-drop", ALL_CHECKOUT)
            clock.advance(stop_at)
            seq.reset()
            clock.run_until_idle()
            assert seq.actions == ()
            assert seq.state is SequencerState.IDLE

    def test_reset_after_complete(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        seq.reset()
        assert seq.revealed is False
        assert seq.result is None
        assert seq.actions == ()

    def test_restart_discards_previous_run(self, seq, clock):
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.advance(6.0)
        seq.start("api-error-spike", {"analytics": True})
        clock.run_until_idle()

        assert seq.result.scenario_key == "api-error-spike"
        assert all(
            a.source in (None, SourceKey.ANALYTICS) for a in seq.actions
        )
        assert _types(seq).count(ActionType.HYPOTHESIS) == 1

    def test_epoch_increases(self, seq):
        first = seq.start("checkout-drop", ALL_CHECKOUT)
        seq.reset()
        second = seq.start("checkout-drop", ALL_CHECKOUT)
        assert first < second == seq.epoch

    def test_epochs_shared_across_sequencers(self, clock):
        a = ActionSequencer(clock)
        b = ActionSequencer(clock)
        ea = a.start("checkout-drop", {})
        eb = b.start("checkout-drop", {})
        assert eb > ea

    def test_toggle_input_snapshot(self, seq, clock):
        active = dict(ALL_CHECKOUT)
        seq.start("checkout-drop", active)
        active["support"] = False
        clock.run_until_idle()
        assert seq.result.hypothesis.confidence.percent == 90


class TestDegradation:
    def test_missing_record_becomes_warning(self, clock):
        seq = ActionSequencer(clock, records=SourceRecordStore({}))
        seq.start("checkout-drop", {"analytics": True})
        clock.run_until_idle()
        assert _types(seq)[4:6] == [ActionType.CHECK, ActionType.WARNING]
        assert seq.actions[5].content == NO_DATA_TEXT
        assert ActionType.FINDING not in _types(seq)
        assert seq.result.evidence[0].has_data is False

    def test_missing_record_total_duration(self, clock):
        seq = ActionSequencer(clock, records=SourceRecordStore({}))
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        assert clock.now() == pytest.approx(StepDelays().total_for(3, 0))

    def test_unknown_scenario_generic_trace(self, seq, clock):
        seq.start("does-not-exist", ALL_CHECKOUT)
        clock.run_until_idle()
        assert len(seq.actions) == 6
        assert seq.actions[4].content == GENERIC_CORRELATION
        assert seq.actions[5].content == (
            "Evidence suggests unable to analyze this scenario with available data."
        )
        assert seq.result.hypothesis == NEUTRAL_HYPOTHESIS
        assert seq.result.evidence == ()

    def test_irrelevant_sources_ignored_by_default(self, seq, clock):
        seq.start("checkout-drop", {"analytics": True, "appstore": True, "internal": True})
        clock.run_until_idle()
        assert all(
            a.source in (None, SourceKey.ANALYTICS) for a in seq.actions
        )

    def test_irrelevant_sources_checked_when_enabled(self, clock):
        config = RCAAgentConfig(features=FeatureFlags(check_irrelevant_sources=True))
        seq = ActionSequencer(clock, config=config)
        seq.start("checkout-drop", {"analytics": True, "appstore": True, "internal": True})
        clock.run_until_idle()

        tail = [(a.type, a.source) for a in seq.actions[7:11]]
        assert tail == [
            (ActionType.CHECK, SourceKey.INTERNAL),
            (ActionType.WARNING, SourceKey.INTERNAL),
            (ActionType.CHECK, SourceKey.APPSTORE),
            (ActionType.WARNING, SourceKey.APPSTORE),
        ]
        assert seq.actions[8].content == NO_FINDINGS_TEXT
        # irrelevant sources never move the hypothesis
        assert seq.result.hypothesis.confidence.percent == 30

    def test_malformed_source_map(self, seq, clock):
        seq.start("checkout-drop", ["analytics"])
        clock.run_until_idle()
        assert seq.result.hypothesis.confidence.percent == 20


class TestEvents:
    def test_event_stream(self, seq, clock):
        events: List[SequencerEvent] = []
        seq.subscribe(events.append)
        seq.start("checkout-drop", {"analytics": True})
        clock.run_until_idle()

        states = [e.state for e in events if e.kind is EventKind.STATE]
        assert states == [
            SequencerState.INTRO,
            SequencerState.CHECKING,
            SequencerState.CORRELATING,
            SequencerState.COMPLETE,
        ]
        actions = [e.action for e in events if e.kind is EventKind.ACTION]
        assert tuple(actions) == seq.actions
        kinds = [e.kind for e in events]
        assert kinds.index(EventKind.REVEAL) < len(kinds) - 1

    def test_unsubscribe(self, seq, clock):
        events: List[SequencerEvent] = []
        unsubscribe = seq.subscribe(events.append)
        unsubscribe()
        unsubscribe()
        seq.start("checkout-drop", {})
        clock.run_until_idle()
        assert events == []

    def test_listener_reset_stops_run(self, seq, clock):
        def _stop_on_finding(event: SequencerEvent) -> None:
            if event.action is not None and event.action.type is ActionType.FINDING:
                seq.reset()

        seq.subscribe(_stop_on_finding)
        seq.start("checkout-drop", ALL_CHECKOUT)
        clock.run_until_idle()
        assert seq.actions == ()
        assert seq.state is SequencerState.IDLE

    def test_illegal_transition_raises(self, seq):
        with pytest.raises(SequencerStateError):
            seq._transition(SequencerState.COMPLETE)
