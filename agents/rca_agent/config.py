"""
File: config.py
Purpose: Configuration for the RCA agent and its action sequencer.
Dependencies: Standard library (dataclasses, os)
Performance: O(1) — static config, no I/O

Provides per-step replay delays, feature flags and inference defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace


@dataclass(frozen=True)
class StepDelays:
    """Delays (seconds) applied before each step of the reasoning replay.

    Attributes:
        intro: Between consecutive intro actions (and before the first).
        phase_transition: Before entering the checking / correlating phase.
        check: Before each source's ``check`` action.
        finding: Between ``check`` and its ``finding`` / ``warning``.
        thought: Between a ``finding`` and its interpretive ``thought``.
        correlate: Before the ``correlate`` action.
        hypothesis: Before the ``hypothesis`` action.
        reveal: Before the final synthesis is revealed.
    """
    intro: float = 0.8
    phase_transition: float = 0.4
    check: float = 0.8
    finding: float = 1.0
    thought: float = 0.8
    correlate: float = 1.2
    hypothesis: float = 1.2
    reveal: float = 0.6

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"delay '{f.name}' must be >= 0")

    def scaled(self, speed: float) -> StepDelays:
        """Return delays divided by *speed* (2.0 replays twice as fast)."""
        if speed <= 0:
            raise ValueError("speed must be > 0")
        return replace(
            self,
            **{f.name: getattr(self, f.name) / speed for f in fields(self)},
        )

    def total_for(self, checked_sources: int, findings: int) -> float:
        """Upper bound of virtual time a full run takes."""
        return (
            4 * self.intro
            + 2 * self.phase_transition
            + checked_sources * (self.check + self.finding)
            + findings * self.thought
            + self.correlate
            + self.hypothesis
            + self.reveal
        )


@dataclass(frozen=True)
class FeatureFlags:
    """Feature toggles for the RCA agent.

    Attributes:
        check_irrelevant_sources: Also walk active sources the scenario
            does not consider canonical, emitting a ``warning`` for each.
    """
    check_irrelevant_sources: bool = False


@dataclass(frozen=True)
class InferenceConfig:
    """Scenario inference settings.

    Attributes:
        default_scenario: Key returned when no keyword matches.
    """
    default_scenario: str = "checkout-drop"


@dataclass
class RCAAgentConfig:
    """Master configuration for the RCA agent.

    Example::

        config = RCAAgentConfig.from_env()
        agent = RCAAgent(config)
    """
    delays: StepDelays = None  # type: ignore[assignment]
    features: FeatureFlags = None  # type: ignore[assignment]
    inference: InferenceConfig = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.delays is None:
            self.delays = StepDelays()
        if self.features is None:
            self.features = FeatureFlags()
        if self.inference is None:
            self.inference = InferenceConfig()

    @classmethod
    def from_env(cls) -> RCAAgentConfig:
        """Build config from environment variables.

        Environment variables:
            RCA_AGENT_SPEED: Replay speed multiplier (default 1.0).
            RCA_AGENT_CHECK_IRRELEVANT: "true" to walk irrelevant sources.
            RCA_AGENT_DEFAULT_SCENARIO: Fallback scenario for inference.

        Returns:
            Configured RCAAgentConfig.
        """
        speed = float(os.getenv("RCA_AGENT_SPEED", "1.0"))
        check_irrelevant = os.getenv(
            "RCA_AGENT_CHECK_IRRELEVANT", "false"
        ).lower() == "true"
        default_scenario = os.getenv(
            "RCA_AGENT_DEFAULT_SCENARIO", InferenceConfig.default_scenario
        )

        return cls(
            delays=StepDelays().scaled(speed),
            features=FeatureFlags(
                check_irrelevant_sources=check_irrelevant,
            ),
            inference=InferenceConfig(
                default_scenario=default_scenario,
            ),
        )
