"""
models.py — Immutable scenario and source-record types.

Pure data definitions. No logic beyond field validation.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceKey(str, Enum):
    """Evidence channels an analysis can draw on."""
    ANALYTICS = "analytics"
    SUPPORT = "support"
    RELEASES = "releases"
    INTERNAL = "internal"
    INFRASTRUCTURE = "infrastructure"
    APPSTORE = "appstore"


# Global order used wherever no scenario-specific priority applies.
ALL_SOURCES: Tuple[SourceKey, ...] = tuple(SourceKey)


class RecordType(str, Enum):
    """How a source record's payload is shaped."""
    CHART = "chart"
    TEXT = "text"
    LIST = "list"


class Scenario(BaseModel):
    """A named incident investigation context.

    Attributes:
        key: Stable scenario identifier (e.g. ``checkout-drop``).
        title: Short display title.
        query: The canonical operator question.
        description: One-paragraph description.
        relevant_sources: Canonical sources in priority order.
    """
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    title: str
    query: str
    description: str = ""
    relevant_sources: Tuple[SourceKey, ...] = ()

    @field_validator("relevant_sources")
    @classmethod
    def _unique_sources(
        cls, v: Tuple[SourceKey, ...],
    ) -> Tuple[SourceKey, ...]:
        if len(set(v)) != len(v):
            raise ValueError("relevant_sources must not repeat a source")
        return v


class ChartPoint(BaseModel):
    """One point of a chart record."""
    model_config = ConfigDict(frozen=True)

    date: str
    value: float


class SourceRecord(BaseModel):
    """Canonical raw data behind one piece of evidence.

    Exactly one payload field is expected per ``type``: ``chart_data``
    for charts, ``content`` for text and ``items`` for lists.
    """
    model_config = ConfigDict(frozen=True)

    summary: str
    title: str
    description: str = ""
    type: RecordType
    content: Optional[str] = None
    chart_data: List[ChartPoint] = Field(default_factory=list)
    items: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)
