"""Health-check endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from ..dependencies import get_config, get_session
from ..models import HealthResponse
from agents.rca_agent.session import AnalysisSession
from integration.config_manager import SystemConfig

router = APIRouter(tags=["health"])

_start_time = time.monotonic()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health(
    config: SystemConfig = Depends(get_config),
    session: AnalysisSession = Depends(get_session),
) -> HealthResponse:
    """Return service health, version, uptime and replay state."""
    uptime = round(time.monotonic() - _start_time, 2)
    return HealthResponse(
        status="healthy",
        version=config.system.version,
        uptime=uptime,
        scenarios=len(session.agent.catalog),
        state=session.agent.state.value,
    )
