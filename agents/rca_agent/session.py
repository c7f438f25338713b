"""
File: session.py
Purpose: Operator state — selected scenario plus per-source toggles.
Dependencies: RCAAgent, availability helpers.

Any change to the inputs of a replay (scenario or toggles) resets a
replay that is in flight or complete, so the visible trace always belongs
to the current inputs.
"""

from __future__ import annotations

from typing import Dict, Optional

from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.core.availability import merge_availability
from agents.rca_agent.schema import AnalysisResult, SequencerState
from agents.rca_agent.telemetry import get_logger
from scenarios.models import Scenario, SourceKey

logger = get_logger("rca_agent.session")


class AnalysisSession:
    """One operator's exploration of the agent.

    Args:
        agent: Agent driving the replay.
        scenario_key: Initial scenario (defaults to the inference default).

    Example::

        session = AnalysisSession(agent)
        session.ask("Why did the API error rate spike?")
        session.toggle_source("internal", False)
    """

    def __init__(self, agent: RCAAgent, scenario_key: Optional[str] = None) -> None:
        self._agent = agent
        self._scenario_key = ""
        self._toggles: Dict[SourceKey, bool] = {}
        self.select_scenario(scenario_key or agent.config.inference.default_scenario)

    @property
    def agent(self) -> RCAAgent:
        return self._agent

    @property
    def scenario_key(self) -> str:
        return self._scenario_key

    @property
    def scenario(self) -> Optional[Scenario]:
        return self._agent.catalog.get(self._scenario_key)

    @property
    def toggles(self) -> Dict[SourceKey, bool]:
        """Raw switch positions for every source."""
        return dict(self._toggles)

    @property
    def availability(self) -> Dict[SourceKey, bool]:
        """Sources both switched on and relevant to the scenario."""
        defaults = self._agent.catalog.default_availability(self._scenario_key)
        return merge_availability(defaults, self._toggles)

    def select_scenario(self, scenario_key: str) -> None:
        """Switch scenario; toggles return to the scenario's defaults."""
        self._reset_if_active()
        self._scenario_key = scenario_key
        self._toggles = self._agent.catalog.default_availability(scenario_key)
        logger.info(
            f"Scenario selected — {scenario_key}",
            extra={"layer": "session", "context": {"scenario": scenario_key}},
        )

    def toggle_source(self, source: str, enabled: Optional[bool] = None) -> bool:
        """Flip (or set) a source switch.

        Args:
            source: Source key.
            enabled: New position; None flips the current one.

        Returns:
            The source's new position.

        Raises:
            ValueError: *source* is not a known source key.
        """
        key = SourceKey(source)
        value = (not self._toggles.get(key, False)) if enabled is None else bool(enabled)
        self._reset_if_active()
        self._toggles[key] = value
        return value

    def analyze(self) -> int:
        """Start a replay for the current inputs; returns its epoch."""
        return self._agent.start(self._scenario_key, self._toggles)

    def ask(self, query: str) -> str:
        """Infer the scenario from *query*, select it and start a replay."""
        scenario_key = self._agent.infer_scenario(query)
        self.select_scenario(scenario_key)
        self.analyze()
        return scenario_key

    def resolve(self) -> AnalysisResult:
        """Synchronous result for the current inputs."""
        return self._agent.analyze(self._scenario_key, self._toggles)

    def _reset_if_active(self) -> None:
        if self._agent.state is not SequencerState.IDLE:
            self._agent.reset()
