"""
catalog.py — Scenario catalogue and per-scenario relevance tables.

Scenario metadata is read-only once registered. The relevance table of a
scenario is derived from its ``relevant_sources``: every known source maps
to ``True`` iff the scenario deems it canonical.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from scenarios.models import ALL_SOURCES, Scenario, SourceKey


# ── seed scenarios ──────────────────────────────────────────────────
SCENARIOS: List[Scenario] = [
    Scenario(
        key="checkout-drop",
        title="Checkout Completion Drop (May 5th)",
        query="Why did checkout completion drop on May 5th?",
        description=(
            "Investigate the sudden decrease in checkout completion rate "
            "that started on May 5th."
        ),
        relevant_sources=(
            SourceKey.ANALYTICS,
            SourceKey.SUPPORT,
            SourceKey.RELEASES,
        ),
    ),
    Scenario(
        key="api-error-spike",
        title="API Error Rate Spike (May 6th)",
        query="What caused the API error spike on May 6th?",
        description=(
            "Analyze the sudden increase in API error rates that occurred "
            "on May 6th."
        ),
        relevant_sources=(
            SourceKey.ANALYTICS,
            SourceKey.INTERNAL,
            SourceKey.INFRASTRUCTURE,
        ),
    ),
]


class ScenarioCatalog:
    """Ordered registry of scenarios keyed by scenario key."""

    def __init__(self, scenarios: Optional[Iterable[Scenario]] = None) -> None:
        self._scenarios: Dict[str, Scenario] = {}
        for scenario in scenarios or ():
            self.register(scenario)

    def register(self, scenario: Scenario) -> None:
        """Add *scenario*, replacing any scenario with the same key."""
        self._scenarios[scenario.key] = scenario

    def get(self, scenario_key: str) -> Optional[Scenario]:
        """Return the scenario for *scenario_key*, or ``None``."""
        if not isinstance(scenario_key, str):
            return None
        return self._scenarios.get(scenario_key)

    def keys(self) -> List[str]:
        """Scenario keys in registration order."""
        return list(self._scenarios)

    def all(self) -> List[Scenario]:
        return list(self._scenarios.values())

    def default_availability(self, scenario_key: str) -> Dict[SourceKey, bool]:
        """Relevance table for *scenario_key*.

        Unknown keys yield a table with every source turned off.
        """
        scenario = self.get(scenario_key)
        relevant = set(scenario.relevant_sources) if scenario else set()
        return {source: source in relevant for source in ALL_SOURCES}

    def __contains__(self, scenario_key: object) -> bool:
        return scenario_key in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)


def default_catalog() -> ScenarioCatalog:
    """Build a catalogue holding the seed scenarios."""
    return ScenarioCatalog(SCENARIOS)
