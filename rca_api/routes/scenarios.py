"""Scenario catalogue, inference and raw-record endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_agent
from ..models import InferRequest, InferResponse, RecordResponse, ScenarioListResponse
from agents.rca_agent.agent import RCAAgent
from scenarios.models import Scenario, SourceKey

router = APIRouter(tags=["scenarios"])


@router.get(
    "/scenarios",
    response_model=ScenarioListResponse,
    summary="List scenarios",
)
def list_scenarios(agent: RCAAgent = Depends(get_agent)) -> ScenarioListResponse:
    scenarios = agent.catalog.all()
    return ScenarioListResponse(scenarios=scenarios, total=len(scenarios))


@router.post(
    "/scenarios/infer",
    response_model=InferResponse,
    summary="Map a free-text question to a scenario",
)
def infer_scenario(
    body: InferRequest,
    agent: RCAAgent = Depends(get_agent),
) -> InferResponse:
    """Keyword inference; unmatched questions fall back to the default scenario."""
    key = agent.infer_scenario(body.query)
    scenario = agent.catalog.get(key)
    return InferResponse(scenario_key=key, title=scenario.title if scenario else key)


@router.get(
    "/scenarios/{scenario_key}",
    response_model=Scenario,
    summary="Get scenario by key",
)
def get_scenario(
    scenario_key: str,
    agent: RCAAgent = Depends(get_agent),
) -> Scenario:
    scenario = agent.catalog.get(scenario_key)
    if scenario is None:
        raise HTTPException(status_code=404, detail="Scenario not found")
    return scenario


@router.get(
    "/scenarios/{scenario_key}/sources/{source}/records/{evidence_id}",
    response_model=RecordResponse,
    summary="Get the raw record behind a piece of evidence",
)
def get_record(
    scenario_key: str,
    source: str,
    evidence_id: int,
    agent: RCAAgent = Depends(get_agent),
) -> RecordResponse:
    """Return the chart, text or list record with its metadata."""
    record = agent.records.get(scenario_key, source, evidence_id)
    if record is None:
        raise HTTPException(status_code=404, detail="No data available")
    return RecordResponse(
        scenario_key=scenario_key,
        source=SourceKey(source).value,
        evidence_id=evidence_id,
        **record.model_dump(),
    )
