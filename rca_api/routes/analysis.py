"""Analysis endpoints — synchronous resolution and the replayed session."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_agent, get_session
from ..models import (
    ResolveRequest,
    SelectScenarioRequest,
    SessionStateResponse,
    StartRequest,
    ToggleRequest,
    ToggleResponse,
)
from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.schema import AnalysisResult
from agents.rca_agent.session import AnalysisSession
from integration.logger import get_logger
from scenarios.models import SourceKey

router = APIRouter(tags=["analysis"])

_log = get_logger("api.analysis")


def _session_state(session: AnalysisSession, since: int = 0) -> SessionStateResponse:
    agent = session.agent
    actions = agent.actions
    return SessionStateResponse(
        scenario_key=session.scenario_key,
        state=agent.state.value,
        epoch=agent.epoch,
        revealed=agent.revealed,
        toggles={s.value: on for s, on in session.toggles.items()},
        availability={s.value: on for s, on in session.availability.items()},
        total_actions=len(actions),
        actions=list(actions[since:]),
        result=agent.result,
    )


def _require_scenario(agent: RCAAgent, scenario_key: str) -> None:
    if agent.catalog.get(scenario_key) is None:
        raise HTTPException(status_code=404, detail="Scenario not found")


def _require_source(source: str) -> SourceKey:
    try:
        return SourceKey(source)
    except ValueError:
        raise HTTPException(status_code=404, detail="Source not found") from None


@router.post(
    "/analysis/resolve",
    response_model=AnalysisResult,
    summary="Resolve hypothesis and evidence without a replay",
)
def resolve(
    body: ResolveRequest,
    agent: RCAAgent = Depends(get_agent),
) -> AnalysisResult:
    _require_scenario(agent, body.scenario_key)
    return agent.analyze(body.scenario_key, body.active_sources)


@router.post(
    "/analysis/start",
    response_model=SessionStateResponse,
    summary="Start a reasoning replay",
)
async def start(
    body: StartRequest,
    session: AnalysisSession = Depends(get_session),
) -> SessionStateResponse:
    """Start (or restart) the session replay.

    Runs on the event loop so the replay timers share it.
    """
    if body.query:
        key = session.ask(body.query)
        _log.info("analysis_started", scenario=key, query=body.query)
        return _session_state(session)

    # Reject the whole request before touching the session.
    if body.scenario_key is not None:
        _require_scenario(session.agent, body.scenario_key)
    toggles = [
        (_require_source(source), enabled)
        for source, enabled in (body.active_sources or {}).items()
    ]

    if body.scenario_key is not None and body.scenario_key != session.scenario_key:
        session.select_scenario(body.scenario_key)
    for source, enabled in toggles:
        session.toggle_source(source.value, enabled)

    session.analyze()
    _log.info("analysis_started", scenario=session.scenario_key)
    return _session_state(session)


@router.get(
    "/analysis",
    response_model=SessionStateResponse,
    summary="Current session state and trace",
)
def get_state(
    since: int = Query(0, ge=0, description="Return actions with sequence >= since"),
    session: AnalysisSession = Depends(get_session),
) -> SessionStateResponse:
    return _session_state(session, since)


@router.post(
    "/analysis/reset",
    response_model=SessionStateResponse,
    summary="Cancel the replay and clear the trace",
)
def reset(session: AnalysisSession = Depends(get_session)) -> SessionStateResponse:
    session.agent.reset()
    return _session_state(session)


@router.post(
    "/analysis/sources/{source}/toggle",
    response_model=ToggleResponse,
    summary="Flip or set a source switch",
)
def toggle_source(
    source: str,
    body: Optional[ToggleRequest] = None,
    session: AnalysisSession = Depends(get_session),
) -> ToggleResponse:
    """Changing a switch resets any replay in progress."""
    key = _require_source(source)
    enabled = session.toggle_source(key.value, body.enabled if body else None)
    return ToggleResponse(source=key.value, enabled=enabled)


@router.post(
    "/analysis/scenario",
    response_model=SessionStateResponse,
    summary="Select the session scenario",
)
def select_scenario(
    body: SelectScenarioRequest,
    session: AnalysisSession = Depends(get_session),
) -> SessionStateResponse:
    _require_scenario(session.agent, body.scenario_key)
    session.select_scenario(body.scenario_key)
    return _session_state(session)
