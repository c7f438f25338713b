"""
File: playbooks.py
Purpose: Seed scenario playbooks and the ordered playbook library.
Dependencies: Schema models only.
Performance: O(1) lookups by scenario key.

A playbook carries every literal string the agent voices for a scenario
(intro framing, per-source check / thought / evidence text) plus the two
rule tables evaluated top-down: hypothesis rules and correlate rules.
Rules are ordered most-specific first and end with a catch-all rule whose
``requires`` is empty.

Library order is inference priority: the first playbook whose keywords hit
a query wins.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from agents.rca_agent.schema import (
    ConfidenceLevel,
    CorrelateRule,
    HypothesisRule,
    IntroNarrative,
    ScenarioPlaybook,
    SourceNarrative,
)
from scenarios.models import SourceKey

_A = SourceKey.ANALYTICS
_S = SourceKey.SUPPORT
_R = SourceKey.RELEASES
_I = SourceKey.INTERNAL
_INF = SourceKey.INFRASTRUCTURE

_TOO_FEW_SOURCES = "Not enough relevant sources are active to correlate findings."


# ═══════════════════════════════════════════════════════════════
#  CHECKOUT COMPLETION DROP
# ═══════════════════════════════════════════════════════════════

CHECKOUT_DROP = ScenarioPlaybook(
    scenario_key="checkout-drop",
    keywords=("checkout", "conversion", "purchase", "cart", "completion"),
    intro=IntroNarrative(
        parse='Detected key terms: "checkout completion", "drop", "May 5th".',
        identify=(
            "Target KPI: checkout completion rate (completed checkouts / "
            "started checkouts)."
        ),
        determine="Time window: May 5th, compared against the May 3rd-4th baseline.",
        thought=(
            "A sharp single-day drop usually points to a release or a "
            "client-side regression rather than a change in demand. Checking "
            "analytics first, then user reports and recent deployments."
        ),
    ),
    sources={
        _A: SourceNarrative(
            check="Looking for when the checkout completion rate changed and by how much.",
            thought=(
                "The drop is abrupt and starts mid-afternoon, which suggests a "
                "discrete change rather than gradual user behaviour."
            ),
            evidence="Checkout completion rate dropped from 85% to 70% at 14:00 on May 5th.",
        ),
        _S: SourceNarrative(
            check="Looking for user-reported checkout problems around May 5th.",
            thought=(
                "Reports cluster on mobile devices and describe an unresponsive "
                "button, pointing at the mobile checkout UI."
            ),
            evidence=(
                "Multiple support tickets reported checkout button not "
                "responding on mobile devices."
            ),
        ),
        _R: SourceNarrative(
            check="Looking for deployments that landed shortly before 14:00 on May 5th.",
            thought=(
                "v2.5.1 finished rolling out at 14:00, the minute the drop "
                "began, and it changed mobile checkout code."
            ),
            evidence=(
                "Release v2.5.1 deployed at 13:45 on May 5th included changes "
                "to mobile checkout UI."
            ),
        ),
    },
    hypothesis_rules=(
        HypothesisRule(
            requires=(_A, _S, _R),
            conclusion=(
                "Release v2.5.1 caused checkout button failure on mobile "
                "devices due to event handler changes."
            ),
            level=ConfidenceLevel.HIGH,
            percent=90,
        ),
        HypothesisRule(
            requires=(_A, _S),
            conclusion=(
                "A recent code change likely caused checkout button failures "
                "on mobile devices."
            ),
            level=ConfidenceLevel.MEDIUM,
            percent=65,
            note="Release data missing for confirmation.",
        ),
        HypothesisRule(
            requires=(_A, _R),
            conclusion="Release v2.5.1 coincides with checkout completion drop.",
            level=ConfidenceLevel.MEDIUM,
            percent=60,
            note="Support ticket data missing for user impact details.",
        ),
        HypothesisRule(
            requires=(_A,),
            conclusion=(
                "Checkout completion dropped 15% on May 5th afternoon due to "
                "unknown causes."
            ),
            level=ConfidenceLevel.LOW,
            percent=30,
            note="Insufficient data to determine root cause.",
        ),
        HypothesisRule(
            conclusion=(
                "Insufficient data to determine root cause of checkout "
                "completion drop."
            ),
            level=ConfidenceLevel.VERY_LOW,
            percent=20,
            note="Critical data sources are missing from analysis.",
        ),
    ),
    correlate_rules=(
        CorrelateRule(
            requires=(_A, _S, _R),
            text=(
                "Completion fell at 14:00, right as the v2.5.1 rollout "
                "completed, and mobile users began reporting an unresponsive "
                "checkout button at 14:23. All three signals line up on the "
                "mobile checkout change."
            ),
        ),
        CorrelateRule(
            requires=(_A, _S),
            text=(
                "The 14:00 drop lines up with mobile users reporting an "
                "unresponsive checkout button, which points to a recent code "
                "change, but no release data is available to say which one."
            ),
        ),
        CorrelateRule(
            requires=(_A, _R),
            text=(
                "The drop begins as release v2.5.1 completes its rollout, but "
                "without support tickets there is no confirmation of how "
                "users were affected."
            ),
        ),
        CorrelateRule(
            requires=(_A,),
            text="Only analytics is available: the drop is clear but nothing explains it yet.",
        ),
        CorrelateRule(text=_TOO_FEW_SOURCES),
    ),
)


# ═══════════════════════════════════════════════════════════════
#  API ERROR RATE SPIKE
# ═══════════════════════════════════════════════════════════════

API_ERROR_SPIKE = ScenarioPlaybook(
    scenario_key="api-error-spike",
    keywords=(
        "api",
        "error rate",
        "error spike",
        "5xx",
        "timeout",
        "connection pool",
        "database",
    ),
    intro=IntroNarrative(
        parse='Detected key terms: "API", "error spike", "May 6th".',
        identify="Target KPI: API error rate (failed requests / total requests).",
        determine="Time window: May 6th, 09:00-11:00, compared against May 5th.",
        thought=(
            "A short, sharp error spike that recovers on its own often means "
            "a shared dependency was exhausted. Checking the error curve, "
            "team discussion and infrastructure metrics."
        ),
    ),
    sources={
        _A: SourceNarrative(
            check="Looking for the onset, peak and recovery of the API error rate.",
            thought=(
                "Errors rose 30x within minutes and recovered after about 90 "
                "minutes, so something was saturated and then released."
            ),
            evidence=(
                "API error rate jumped from 0.5% to 15% at 09:30 on May 6th "
                "and recovered by 11:00."
            ),
        ),
        _I: SourceNarrative(
            check="Looking for team discussion of the incident and changes made around 09:30.",
            thought=(
                "The team tied the spike to a newly deployed analytics job "
                "querying the production database and rolled it back."
            ),
            evidence=(
                "Backend team identified an unauthorized analytics job was "
                "causing database connection pool saturation."
            ),
        ),
        _INF: SourceNarrative(
            check="Looking for saturated resources between 09:00 and 11:00 on May 6th.",
            thought=(
                "Connection pool usage hit 100% exactly when errors spiked and "
                "fell back as errors recovered."
            ),
            evidence=(
                "Database connection pool reached 100% utilization during the "
                "incident period."
            ),
        ),
    },
    hypothesis_rules=(
        HypothesisRule(
            requires=(_A, _I, _INF),
            conclusion=(
                "Database connection pool saturation caused by unauthorized "
                "analytics job deployment."
            ),
            level=ConfidenceLevel.HIGH,
            percent=95,
        ),
        HypothesisRule(
            requires=(_A, _INF),
            conclusion="Database connection pool saturation caused API errors.",
            level=ConfidenceLevel.MEDIUM,
            percent=70,
            note="Internal communication data missing for attribution.",
        ),
        HypothesisRule(
            requires=(_A, _I),
            conclusion="Analytics job deployment likely caused API errors.",
            level=ConfidenceLevel.MEDIUM,
            percent=65,
            note="Infrastructure metrics missing for confirmation.",
        ),
        HypothesisRule(
            requires=(_A,),
            conclusion=(
                "API error rate spiked to 15% for approximately 90 minutes on "
                "May 6th."
            ),
            level=ConfidenceLevel.LOW,
            percent=25,
            note="Insufficient data to determine root cause.",
        ),
        HypothesisRule(
            conclusion="Insufficient data to determine root cause of API error spike.",
            level=ConfidenceLevel.VERY_LOW,
            percent=15,
            note="Critical data sources are missing from analysis.",
        ),
    ),
    correlate_rules=(
        CorrelateRule(
            requires=(_A, _I, _INF),
            text=(
                "The error spike, the 100% connection pool saturation and the "
                "analytics job deployment at 09:45 all fall inside the same "
                "window, and the rollback at 09:50 precedes the recovery."
            ),
        ),
        CorrelateRule(
            requires=(_A, _INF),
            text=(
                "API errors track database connection pool saturation minute "
                "by minute, but nothing shows what consumed the connections."
            ),
        ),
        CorrelateRule(
            requires=(_A, _I),
            text=(
                "The team attributed the spike to an analytics job deployment, "
                "but no infrastructure metrics are available to confirm the "
                "mechanism."
            ),
        ),
        CorrelateRule(
            requires=(_A,),
            text="Only the error curve is available: the spike is clear but its cause is not.",
        ),
        CorrelateRule(text=_TOO_FEW_SOURCES),
    ),
)


SEED_PLAYBOOKS: List[ScenarioPlaybook] = [CHECKOUT_DROP, API_ERROR_SPIKE]


class PlaybookLibrary:
    """Ordered registry of playbooks; order is inference priority."""

    def __init__(self, playbooks: Optional[Iterable[ScenarioPlaybook]] = None) -> None:
        self._playbooks: Dict[str, ScenarioPlaybook] = {}
        for playbook in playbooks or ():
            self.register(playbook)

    def register(self, playbook: ScenarioPlaybook) -> None:
        """Add *playbook*; a replacement keeps the original priority slot."""
        self._playbooks[playbook.scenario_key] = playbook

    def get(self, scenario_key: str) -> Optional[ScenarioPlaybook]:
        if not isinstance(scenario_key, str):
            return None
        return self._playbooks.get(scenario_key)

    def keys(self) -> List[str]:
        return list(self._playbooks)

    def __iter__(self) -> Iterator[ScenarioPlaybook]:
        return iter(list(self._playbooks.values()))

    def __contains__(self, scenario_key: object) -> bool:
        return scenario_key in self._playbooks

    def __len__(self) -> int:
        return len(self._playbooks)


def default_library() -> PlaybookLibrary:
    """Build a library holding the seed playbooks."""
    return PlaybookLibrary(SEED_PLAYBOOKS)
