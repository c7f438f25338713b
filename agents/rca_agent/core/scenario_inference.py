"""
File: core/scenario_inference.py
Purpose: Map a free-text operator query to a scenario key.
Dependencies: Playbook library.
Performance: O(p*k) where p=playbooks, k=keywords per playbook.

Plain case-insensitive substring matching: playbooks are tried in library
order and the first one with a keyword hit wins. No hit falls back to the
configured default scenario.
"""

from __future__ import annotations

from typing import Optional

from agents.rca_agent.config import RCAAgentConfig
from agents.rca_agent.playbooks import PlaybookLibrary, default_library
from agents.rca_agent.telemetry import get_logger

logger = get_logger("rca_agent.scenario_inference")


class ScenarioInference:
    """Keyword-based scenario selection.

    Args:
        config: Agent configuration (supplies the default scenario).
        playbooks: Library to match against; order is priority.
    """

    def __init__(
        self,
        config: Optional[RCAAgentConfig] = None,
        playbooks: Optional[PlaybookLibrary] = None,
    ) -> None:
        self._config = config or RCAAgentConfig()
        self._playbooks = playbooks if playbooks is not None else default_library()

    @property
    def default_scenario(self) -> str:
        return self._config.inference.default_scenario

    def infer(self, query: str) -> str:
        """Return the scenario key *query* is about.

        Args:
            query: Free-text question; non-strings are treated as empty.

        Returns:
            Matching scenario key, or the default scenario.
        """
        text = query.lower() if isinstance(query, str) else ""
        if text:
            for playbook in self._playbooks:
                for keyword in playbook.keywords:
                    if keyword in text:
                        logger.debug(
                            "Scenario inferred",
                            extra={
                                "layer": "inference",
                                "context": {
                                    "scenario": playbook.scenario_key,
                                    "keyword": keyword,
                                },
                            },
                        )
                        return playbook.scenario_key
        return self.default_scenario
