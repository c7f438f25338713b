"""FastAPI application — initialisation, middleware, lifecycle events."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dependencies import init_dependencies, is_initialised, shutdown_dependencies
from .routes import analysis, health, metrics, scenarios
from integration.config_manager import SystemConfig
from integration.logger import correlation_scope, get_logger


# ------------------------------------------------------------------
# Lifespan (startup / shutdown)
# ------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: build the session unless already built.  Shutdown: stop replays."""
    if not is_initialised():
        init_dependencies(app.state.config)
    yield
    shutdown_dependencies()


_logger = get_logger("rca_api")


# ------------------------------------------------------------------
# Application
# ------------------------------------------------------------------

def create_app(config: Optional[SystemConfig] = None) -> FastAPI:
    """Build the API application.

    Args:
        config: Application config; CORS and the correlation header come
            from here.  Defaults apply when omitted.
    """
    config = config or SystemConfig()
    app = FastAPI(
        title="Insight Flow — RCA API",
        version=config.system.version,
        description="REST API over the root-cause analysis agent.",
        lifespan=_lifespan,
    )
    app.state.config = config

    if config.api.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.api.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    header = config.system.correlation_id_header

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Log every request with method, path, status, and duration."""
        start = time.monotonic()
        with correlation_scope(request.headers.get(header) or None) as correlation_id:
            try:
                response = await call_next(request)
            except Exception:
                _logger.exception(
                    "unhandled_error", method=request.method, path=request.url.path,
                )
                return JSONResponse(
                    status_code=500,
                    content={"detail": "Internal server error"},
                    headers={header: correlation_id},
                )
            _logger.info(
                "request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
        response.headers[header] = correlation_id
        return response

    # ------------------------------------------------------------------
    # Routers
    # ------------------------------------------------------------------

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(scenarios.router, prefix="/api/v1")
    app.include_router(analysis.router, prefix="/api/v1")
    app.include_router(metrics.router, prefix="/api/v1")
    return app


app = create_app()
