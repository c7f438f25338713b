"""
scenarios — Static incident scenarios and their canonical source data.

Provides the scenario catalogue (metadata + source relevance tables) and
the source record store (chart / text / list payloads behind every piece
of evidence). Consumed read-only by the RCA agent core.
"""

from __future__ import annotations

from scenarios.catalog import SCENARIOS, ScenarioCatalog, default_catalog
from scenarios.models import (
    ALL_SOURCES,
    ChartPoint,
    RecordType,
    Scenario,
    SourceKey,
    SourceRecord,
)
from scenarios.records import (
    SOURCE_RECORDS,
    SourceRecordStore,
    default_record_store,
)

__all__ = [
    "ALL_SOURCES",
    "ChartPoint",
    "RecordType",
    "SCENARIOS",
    "SOURCE_RECORDS",
    "Scenario",
    "ScenarioCatalog",
    "SourceKey",
    "SourceRecord",
    "SourceRecordStore",
    "default_catalog",
    "default_record_store",
]
