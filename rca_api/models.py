"""API-specific Pydantic v2 request / response models."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agents.rca_agent.schema import AgentAction, AnalysisResult
from scenarios.models import ChartPoint, RecordType, Scenario


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class InferRequest(BaseModel):
    """POST /api/v1/scenarios/infer request body."""
    model_config = ConfigDict(frozen=True)

    query: str = Field(..., description="Free-text question about an incident.")


class ResolveRequest(BaseModel):
    """POST /api/v1/analysis/resolve request body."""
    model_config = ConfigDict(frozen=True)

    scenario_key: str
    active_sources: Dict[str, bool] = Field(
        default_factory=dict,
        description="Source switches; missing or unknown sources read as off.",
    )


class StartRequest(BaseModel):
    """POST /api/v1/analysis/start request body.

    With ``query`` the scenario is inferred and its default toggles are
    used. Otherwise the session's scenario (or ``scenario_key``) is
    replayed with the session toggles overlaid by ``active_sources``.
    """
    model_config = ConfigDict(frozen=True)

    scenario_key: Optional[str] = None
    query: Optional[str] = None
    active_sources: Optional[Dict[str, bool]] = None


class SelectScenarioRequest(BaseModel):
    """POST /api/v1/analysis/scenario request body."""
    model_config = ConfigDict(frozen=True)

    scenario_key: str


class ToggleRequest(BaseModel):
    """POST /api/v1/analysis/sources/{source}/toggle request body."""
    model_config = ConfigDict(frozen=True)

    enabled: Optional[bool] = Field(
        default=None, description="New position; omitted flips the switch.",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    """GET /api/v1/health response."""
    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    uptime: float
    scenarios: int
    state: str


class ScenarioListResponse(BaseModel):
    """GET /api/v1/scenarios response."""
    model_config = ConfigDict(frozen=True)

    scenarios: List[Scenario]
    total: int


class InferResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario_key: str
    title: str


class RecordResponse(BaseModel):
    """GET /api/v1/scenarios/{key}/sources/{source}/records/{id} response."""
    model_config = ConfigDict(frozen=True)

    scenario_key: str
    source: str
    evidence_id: int
    summary: str
    title: str
    description: str = ""
    type: RecordType
    content: Optional[str] = None
    items: List[str] = Field(default_factory=list)
    chart_data: List[ChartPoint] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)


class SessionStateResponse(BaseModel):
    """GET /api/v1/analysis response.

    ``actions`` holds only the entries with ``sequence >= since``.
    ``result`` is present once the replay has been revealed.
    """
    model_config = ConfigDict(frozen=True)

    scenario_key: str
    state: str
    epoch: int
    revealed: bool
    toggles: Dict[str, bool]
    availability: Dict[str, bool]
    total_actions: int
    actions: List[AgentAction] = Field(default_factory=list)
    result: Optional[AnalysisResult] = None


class ToggleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    enabled: bool
