"""
Tests for agent.py — RCAAgent facade, async replay and AnalysisSession.
"""

from __future__ import annotations

import asyncio

import pytest

from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.config import InferenceConfig, RCAAgentConfig, StepDelays
from agents.rca_agent.core.scheduler import AsyncioScheduler, ManualScheduler
from agents.rca_agent.schema import ActionType, SequencerState
from agents.rca_agent.session import AnalysisSession
from scenarios.models import SourceKey

ALL_API = {"analytics": True, "internal": True, "infrastructure": True}


@pytest.fixture
def clock() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def agent(clock: ManualScheduler) -> RCAAgent:
    return RCAAgent(scheduler=clock)


def _fast_agent(speed: float = 1000.0) -> RCAAgent:
    config = RCAAgentConfig(delays=StepDelays().scaled(speed))
    return RCAAgent(config=config, scheduler=AsyncioScheduler())


class TestSynchronousAPI:
    def test_analyze_matches_resolve_and_collect(self, agent):
        result = agent.analyze("api-error-spike", ALL_API)
        assert result.hypothesis == agent.resolve("api-error-spike", ALL_API)
        assert list(result.evidence) == agent.collect("api-error-spike", ALL_API)
        assert result.hypothesis.confidence.percent == 95

    def test_replay_matches_analyze(self, agent, clock):
        agent.start("checkout-drop", {"analytics": True, "releases": True})
        clock.run_until_idle()
        assert agent.result == agent.analyze(
            "checkout-drop", {"analytics": True, "releases": True},
        )

    def test_result_hidden_until_reveal(self, agent, clock):
        agent.start("checkout-drop", {"analytics": True})
        clock.advance(1.0)
        assert agent.result is None
        clock.run_until_idle()
        assert agent.result is not None

    def test_telemetry_counts(self, agent, clock):
        agent.infer_scenario("checkout dropped")
        agent.resolve("checkout-drop", {})
        agent.start("checkout-drop", {"analytics": True})
        clock.run_until_idle()
        snap = agent.snapshot()
        assert snap["state"] == "complete"
        assert snap["telemetry"]["counters"]["analyses_completed"] == 1
        assert snap["telemetry"]["counters"]["findings"] == 1
        assert snap["telemetry"]["latency"]["inference"]["count"] == 1.0


class TestInference:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("Why did checkout completion drop on May 5th?", "checkout-drop"),
            ("PURCHASE funnel looks broken", "checkout-drop"),
            ("Why did the API error rate spike?", "api-error-spike"),
            ("lots of 5xx from the gateway", "api-error-spike"),
            ("database connection pool exhausted", "api-error-spike"),
            ("what happened yesterday", "checkout-drop"),
            ("", "checkout-drop"),
        ],
    )
    def test_keyword_match(self, agent, query, expected):
        assert agent.infer_scenario(query) == expected

    def test_first_playbook_wins_on_tie(self, agent):
        assert agent.infer_scenario("checkout api errors") == "checkout-drop"

    def test_non_string_query(self, agent):
        assert agent.infer_scenario(None) == "checkout-drop"  # type: ignore[arg-type]

    def test_configured_default(self, clock):
        config = RCAAgentConfig(inference=InferenceConfig(default_scenario="api-error-spike"))
        agent = RCAAgent(config=config, scheduler=clock)
        assert agent.infer_scenario("no idea") == "api-error-spike"


class TestAsyncRun:
    @pytest.mark.asyncio
    async def test_run_completes(self):
        agent = _fast_agent()
        result = await agent.run("api-error-spike", ALL_API, timeout=5.0)
        assert result is not None
        assert result.hypothesis.confidence.percent == 95
        assert agent.state is SequencerState.COMPLETE
        assert agent.actions[-1].type is ActionType.HYPOTHESIS

    @pytest.mark.asyncio
    async def test_run_twice(self):
        agent = _fast_agent()
        await agent.run("checkout-drop", {"analytics": True}, timeout=5.0)
        result = await agent.run("api-error-spike", {"analytics": True}, timeout=5.0)
        assert result is not None
        assert result.scenario_key == "api-error-spike"

    @pytest.mark.asyncio
    async def test_run_reset_returns_none(self):
        agent = _fast_agent(speed=10.0)
        task = asyncio.ensure_future(agent.run("checkout-drop", {"analytics": True}))
        await asyncio.sleep(0.05)
        agent.reset()
        assert await task is None
        assert agent.actions == ()

    @pytest.mark.asyncio
    async def test_run_timeout(self):
        agent = _fast_agent(speed=1.0)
        with pytest.raises(asyncio.TimeoutError):
            await agent.run("checkout-drop", {"analytics": True}, timeout=0.05)
        agent.reset()
        agent.scheduler.cancel_all()  # type: ignore[attr-defined]


class TestSession:
    def test_defaults_to_relevant_sources(self, agent):
        session = AnalysisSession(agent)
        assert session.scenario_key == "checkout-drop"
        assert session.toggles[SourceKey.SUPPORT] is True
        assert session.toggles[SourceKey.INTERNAL] is False

    def test_toggle_flips_and_resets(self, agent, clock):
        session = AnalysisSession(agent)
        session.analyze()
        clock.advance(5.0)
        assert agent.actions

        assert session.toggle_source("support") is False
        assert agent.state is SequencerState.IDLE
        assert agent.actions == ()
        clock.run_until_idle()
        assert agent.actions == ()

    def test_toggle_explicit_value(self, agent):
        session = AnalysisSession(agent)
        assert session.toggle_source("appstore", True) is True
        assert session.toggles[SourceKey.APPSTORE] is True
        assert session.availability[SourceKey.APPSTORE] is False

    def test_toggle_unknown_source(self, agent):
        session = AnalysisSession(agent)
        with pytest.raises(ValueError):
            session.toggle_source("telepathy")

    def test_select_scenario_resets_toggles(self, agent):
        session = AnalysisSession(agent)
        session.toggle_source("analytics", False)
        session.select_scenario("api-error-spike")
        assert session.toggles[SourceKey.ANALYTICS] is True
        assert session.toggles[SourceKey.INFRASTRUCTURE] is True
        assert session.scenario.title

    def test_ask_infers_and_runs(self, agent, clock):
        session = AnalysisSession(agent)
        key = session.ask("Why did the API error rate spike?")
        clock.run_until_idle()
        assert key == "api-error-spike"
        assert agent.result.hypothesis.confidence.percent == 95

    def test_resolve_uses_current_toggles(self, agent):
        session = AnalysisSession(agent)
        session.toggle_source("releases", False)
        assert session.resolve().hypothesis.confidence.percent == 65
