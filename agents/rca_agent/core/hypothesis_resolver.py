"""
File: core/hypothesis_resolver.py
Purpose: Deterministic combinatorial rule engine (scenario, sources) → Hypothesis.
Dependencies: Scenario catalogue, playbook library.
Performance: <1ms, O(r) where r = rules per scenario.

Each playbook lists hypothesis rules most-specific first; the first rule
whose required sources are all active and relevant wins. Sources outside
the scenario's relevance table never take part in matching. The resolver
is total: unknown scenarios and malformed source maps produce the neutral
fallback instead of an error.
"""

from __future__ import annotations

from typing import Any, FrozenSet, Iterable, Optional, Sequence, TypeVar

from agents.rca_agent.config import RCAAgentConfig
from agents.rca_agent.core.availability import relevant_active_sources
from agents.rca_agent.playbooks import PlaybookLibrary, default_library
from agents.rca_agent.schema import (
    Confidence,
    ConfidenceLevel,
    CorrelateRule,
    Hypothesis,
    HypothesisRule,
)
from agents.rca_agent.telemetry import get_logger
from scenarios.catalog import ScenarioCatalog, default_catalog
from scenarios.models import SourceKey

logger = get_logger("rca_agent.hypothesis_resolver")

NEUTRAL_HYPOTHESIS = Hypothesis(
    conclusion="Unable to analyze this scenario with available data.",
    confidence=Confidence(level=ConfidenceLevel.NONE, percent=0),
)

GENERIC_CORRELATION = "No scenario-specific sources are available to correlate."

_Rule = TypeVar("_Rule", HypothesisRule, CorrelateRule)


def match_rule(
    rules: Sequence[_Rule],
    available: Iterable[SourceKey],
) -> Optional[_Rule]:
    """Return the first rule whose required sources are all *available*."""
    present: FrozenSet[SourceKey] = frozenset(available)
    for rule in rules:
        if present.issuperset(rule.requires):
            return rule
    return None


def hypothesis_statement(hypothesis: Hypothesis) -> str:
    """Phrase *hypothesis* as the agent's closing statement."""
    words = ["Evidence", hypothesis.confidence.level.adverb, "suggests",
             hypothesis.conclusion.lower()]
    return " ".join(w for w in words if w)


class HypothesisResolver:
    """Resolve a hypothesis from the scenario's rule table.

    Args:
        config: Agent configuration.
        catalog: Scenario catalogue (relevance tables).
        playbooks: Playbook library (rule tables).
    """

    def __init__(
        self,
        config: Optional[RCAAgentConfig] = None,
        catalog: Optional[ScenarioCatalog] = None,
        playbooks: Optional[PlaybookLibrary] = None,
    ) -> None:
        self._config = config or RCAAgentConfig()
        self._catalog = catalog if catalog is not None else default_catalog()
        self._playbooks = playbooks if playbooks is not None else default_library()

    def resolve(self, scenario_key: str, active_sources: Any) -> Hypothesis:
        """Resolve the hypothesis for *scenario_key* and *active_sources*.

        Args:
            scenario_key: Scenario to analyse.
            active_sources: ``{source: bool}`` toggles; malformed entries
                read as off.

        Returns:
            The winning rule's hypothesis, or the neutral fallback.
        """
        scenario = self._catalog.get(scenario_key)
        playbook = self._playbooks.get(scenario_key)
        if scenario is None or playbook is None:
            logger.info(
                "Unknown scenario, returning neutral hypothesis",
                extra={"layer": "resolve", "context": {"scenario": str(scenario_key)}},
            )
            return NEUTRAL_HYPOTHESIS

        available = relevant_active_sources(scenario, active_sources)
        rule = match_rule(playbook.hypothesis_rules, available)
        if rule is None:
            return NEUTRAL_HYPOTHESIS
        return rule.to_hypothesis()

    def correlate(self, scenario_key: str, active_sources: Any) -> str:
        """Narrative for the correlate step, chosen like ``resolve``."""
        scenario = self._catalog.get(scenario_key)
        playbook = self._playbooks.get(scenario_key)
        if scenario is None or playbook is None:
            return GENERIC_CORRELATION
        available = relevant_active_sources(scenario, active_sources)
        rule = match_rule(playbook.correlate_rules, available)
        return rule.text if rule is not None else GENERIC_CORRELATION
