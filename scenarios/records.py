"""
records.py — Canonical per-scenario source records.

Each (scenario, source) pair owns an ordered list of records; the index
into that list is the record's evidence id. Pure data plus a small
read-only lookup store.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from scenarios.models import ChartPoint, RecordType, SourceKey, SourceRecord


def _chart(*points: Tuple[str, float]) -> List[ChartPoint]:
    return [ChartPoint(date=date, value=value) for date, value in points]


# ── checkout-drop ───────────────────────────────────────────────────
_CHECKOUT_DROP: Dict[SourceKey, List[SourceRecord]] = {
    SourceKey.ANALYTICS: [
        SourceRecord(
            summary="Checkout completion dropped 15% starting at 14:00 on May 5th.",
            title="Analytics Data - Checkout Completion Rate",
            description="Daily checkout completion rate from May 3rd to May 7th",
            type=RecordType.CHART,
            chart_data=_chart(
                ("May 3", 84),
                ("May 4", 86),
                ("May 5 (AM)", 85),
                ("May 5 (PM)", 70),
                ("May 6", 71),
                ("May 7", 72),
            ),
            metadata={
                "Time Period": "May 3 - May 7, 2025",
                "Data Source": "Product Analytics",
                "Total Users Affected": "~2,400 users",
                "Average Drop": "15%",
            },
        ),
    ],
    SourceKey.SUPPORT: [
        SourceRecord(
            summary="15 support tickets reported checkout button not working on mobile.",
            title="Support Ticket Details",
            description="Support tickets related to checkout issues on May 5-6",
            type=RecordType.LIST,
            items=[
                "Ticket #4582: 'Unable to complete checkout on iPhone 13, "
                "button doesn't do anything' (May 5, 14:23)",
                "Ticket #4583: 'Checkout broken on mobile app' (May 5, 14:45)",
                "Ticket #4587: 'Can't check out on my Android phone, tapping "
                "button does nothing' (May 5, 15:12)",
                "Ticket #4590: 'The checkout button stopped working on my "
                "phone' (May 5, 15:38)",
                "Ticket #4591: 'Unable to complete purchase on mobile' "
                "(May 5, 15:40)",
            ],
            metadata={
                "Ticket Volume": "15 related tickets",
                "First Reported": "May 5, 14:23",
                "Affected Platforms": "Primarily mobile devices",
                "Common Issue": "Unresponsive checkout button",
            },
        ),
    ],
    SourceKey.RELEASES: [
        SourceRecord(
            summary=(
                "Release v2.5.1 deployed at 13:45 on May 5th included mobile "
                "checkout UI changes."
            ),
            title="Release Log Details",
            description="Details of deployment v2.5.1 on May 5th",
            type=RecordType.TEXT,
            content=(
                "# Release v2.5.1\n"
                "Deployed: May 5, 2025 13:45 UTC\n"
                "Changes:\n"
                "- Updated checkout button rendering on mobile devices\n"
                "- Improved loading time for product catalog\n"
                "- Fixed search functionality on category pages\n"
                "- Added new payment provider integration\n"
                "- Refactored checkout process code for mobile devices\n"
                "\n"
                "Deployment Notes:\n"
                "- Progressive rollout started at 13:45\n"
                "- 100% rollout completed by 14:00\n"
                "- No deployment errors reported\n"
                "- No immediate alerts triggered"
            ),
            metadata={
                "Release Version": "v2.5.1",
                "Deployment Time": "May 5, 13:45 UTC",
                "Deployment Type": "Progressive rollout",
                "Related Changes": "Mobile checkout UI updates",
            },
        ),
    ],
    SourceKey.INTERNAL: [
        SourceRecord(
            summary=(
                "Mobile team discussed potential issues with new checkout "
                "button implementation."
            ),
            title="Internal Communication Log",
            description="Slack conversation between development team members on May 5th",
            type=RecordType.TEXT,
            content=(
                "[13:52] @sarah_dev: v2.5.1 is fully deployed now, everything "
                "looks good on the monitoring dashboard\n"
                "[14:15] @mike_mobile: did we test the new checkout button "
                "implementation on older Android devices?\n"
                "[14:18] @sarah_dev: I tested on the devices we have in the "
                "office, seemed fine\n"
                "[14:23] @mike_mobile: @alex_qa did you run the checkout test "
                "scenario on Android 10?\n"
                "[14:30] @alex_qa: I focused on iOS and newer Android versions "
                "since that's most of our user base\n"
                "[14:42] @mike_mobile: seeing some early reports of checkout "
                "issues on mobile\n"
                "[14:45] @sarah_dev: checking now, might be related to the "
                "event handler change\n"
                "[15:01] @alex_qa: confirmed issue on older Android. The button "
                "appears but doesn't trigger the event\n"
                "[15:05] @mike_mobile: working on a hotfix now"
            ),
            metadata={
                "Conversation Time": "May 5, 13:52 - 15:05",
                "Team": "Mobile Development",
                "Key Participants": "Sarah, Mike, Alex",
                "Identified Issue": "Event handler for older Android devices",
            },
        ),
    ],
}


# ── api-error-spike ─────────────────────────────────────────────────
_API_ERROR_SPIKE: Dict[SourceKey, List[SourceRecord]] = {
    SourceKey.ANALYTICS: [
        SourceRecord(
            summary="API error rate jumped from 0.5% to 15% at 09:30 on May 6th.",
            title="Analytics Data - API Error Rate",
            description="API error rate from May 5th to May 7th",
            type=RecordType.CHART,
            chart_data=_chart(
                ("May 5 (AM)", 0.4),
                ("May 5 (PM)", 0.5),
                ("May 6 (09:00)", 0.5),
                ("May 6 (09:30)", 15),
                ("May 6 (10:00)", 14.8),
                ("May 6 (10:30)", 5.2),
                ("May 6 (11:00)", 0.6),
                ("May 7", 0.5),
            ),
            metadata={
                "Time Period": "May 5 - May 7, 2025",
                "Data Source": "API Monitoring",
                "Peak Error Rate": "15%",
                "Duration": "Approximately 90 minutes",
            },
        ),
    ],
    SourceKey.INTERNAL: [
        SourceRecord(
            summary=(
                "Backend team identified database connection pool saturation "
                "as the cause."
            ),
            title="Internal Communication Log",
            description="Slack conversation between backend team members on May 6th",
            type=RecordType.TEXT,
            content=(
                "[09:32] @alertbot: \U0001F6A8 ALERT: API error rate above 10% "
                "threshold\n"
                "[09:33] @jenny_backend: looking into it now\n"
                "[09:35] @dave_ops: seeing a lot of timeout errors, checking "
                "server logs\n"
                "[09:38] @jenny_backend: database connection pool is maxed out\n"
                "[09:42] @dave_ops: seeing unusual query patterns, looks like "
                "someone deployed something?\n"
                "[09:45] @carlos_data: oh no, my bad - I just deployed a new "
                "analytics job that queries the production DB\n"
                "[09:47] @jenny_backend: @carlos_data that's definitely causing "
                "the issue, can you roll it back?\n"
                "[09:50] @carlos_data: rolling back now\n"
                "[10:05] @dave_ops: still seeing high connection usage but it's "
                "starting to drop\n"
                "[10:15] @jenny_backend: should we increase the connection pool "
                "size anyway?\n"
                "[10:18] @dave_ops: let's do that as a precaution, PR coming\n"
                "[10:35] @alertbot: ✅ RESOLVED: API error rate back below "
                "threshold"
            ),
            metadata={
                "Conversation Time": "May 6, 09:32 - 10:35",
                "Team": "Backend & Operations",
                "Key Participants": "Jenny, Dave, Carlos",
                "Root Cause": "Analytics job consuming database connections",
            },
        ),
    ],
    SourceKey.INFRASTRUCTURE: [
        SourceRecord(
            summary="Database connection pool saturated at 09:30, resolved by 10:30.",
            title="Infrastructure Status Details",
            description="Database and server metrics from May 6th incident",
            type=RecordType.CHART,
            chart_data=_chart(
                ("09:00", 45),
                ("09:15", 48),
                ("09:30", 98),
                ("09:45", 100),
                ("10:00", 100),
                ("10:15", 95),
                ("10:30", 60),
                ("10:45", 42),
            ),
            metadata={
                "Metric": "Database Connection Pool Usage (%)",
                "Time Period": "May 6, 09:00 - 10:45",
                "Peak Usage": "100% (saturated)",
                "Normal Range": "30-50%",
            },
        ),
    ],
}


SOURCE_RECORDS: Dict[str, Dict[SourceKey, List[SourceRecord]]] = {
    "checkout-drop": _CHECKOUT_DROP,
    "api-error-spike": _API_ERROR_SPIKE,
}


class SourceRecordStore:
    """Read-only lookup of source records by (scenario, source, evidence id)."""

    def __init__(
        self,
        records: Optional[Dict[str, Dict[SourceKey, List[SourceRecord]]]] = None,
    ) -> None:
        self._records: Dict[str, Dict[SourceKey, Tuple[SourceRecord, ...]]] = {}
        for scenario_key, by_source in (records or {}).items():
            for source, items in by_source.items():
                self.register(scenario_key, source, items)

    def register(
        self,
        scenario_key: str,
        source: SourceKey,
        records: Iterable[SourceRecord],
    ) -> None:
        """Set the records for (*scenario_key*, *source*)."""
        self._records.setdefault(scenario_key, {})[SourceKey(source)] = tuple(records)

    def get(
        self,
        scenario_key: str,
        source: SourceKey | str,
        evidence_id: int = 0,
    ) -> Optional[SourceRecord]:
        """Return the record, or ``None`` when any part of the key is unknown."""
        try:
            key = SourceKey(source)
        except ValueError:
            return None
        items = self._records.get(scenario_key, {}).get(key, ())
        if not isinstance(evidence_id, int) or not 0 <= evidence_id < len(items):
            return None
        return items[evidence_id]

    def count(self, scenario_key: str, source: SourceKey) -> int:
        """Number of records held for (*scenario_key*, *source*)."""
        return len(self._records.get(scenario_key, {}).get(source, ()))


def default_record_store() -> SourceRecordStore:
    """Build a store holding the seed records."""
    return SourceRecordStore(SOURCE_RECORDS)
