"""Shared FastAPI dependencies — singletons for the operator session."""

from __future__ import annotations

from typing import Optional

from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.core.scheduler import AsyncioScheduler, Scheduler
from agents.rca_agent.session import AnalysisSession
from integration.config_manager import ConfigManager, SystemConfig
from integration.pipeline import Registries, build_agent, build_registries

# Module-level singletons (initialised at startup)
_config: Optional[SystemConfig] = None
_registries: Optional[Registries] = None
_scheduler: Optional[Scheduler] = None
_agent: Optional[RCAAgent] = None
_session: Optional[AnalysisSession] = None


def init_dependencies(
    config: Optional[SystemConfig] = None,
    registries: Optional[Registries] = None,
    scheduler: Optional[Scheduler] = None,
) -> None:
    """Initialise shared singletons.  Called once during app startup.

    Args:
        config: Application config (defaults to ``config.yaml`` + env).
        registries: Pre-built registries; built from *config* otherwise.
        scheduler: Replay clock; tests pass a ``ManualScheduler``.
    """
    global _config, _registries, _scheduler, _agent, _session  # noqa: PLW0603
    _config = config or ConfigManager.load()
    _registries = registries or build_registries(_config)
    _scheduler = scheduler or AsyncioScheduler()
    _agent = build_agent(_config, _scheduler, _registries)
    _session = AnalysisSession(_agent, _config.analysis.default_scenario)


def is_initialised() -> bool:
    return _session is not None


def shutdown_dependencies() -> None:
    """Stop any replay in flight and drop the singletons."""
    global _agent, _session  # noqa: PLW0603
    if _agent is not None:
        _agent.reset()
    if isinstance(_scheduler, AsyncioScheduler):
        _scheduler.cancel_all()
    _agent = None
    _session = None


def get_config() -> SystemConfig:
    """Return the shared :class:`SystemConfig`."""
    if _config is None:
        init_dependencies()
    return _config  # type: ignore[return-value]


def get_registries() -> Registries:
    if _registries is None:
        init_dependencies()
    return _registries  # type: ignore[return-value]


def get_agent() -> RCAAgent:
    """Return the shared :class:`RCAAgent`."""
    if _agent is None:
        init_dependencies()
    return _agent  # type: ignore[return-value]


def get_session() -> AnalysisSession:
    """Return the shared :class:`AnalysisSession`."""
    if _session is None:
        init_dependencies()
    return _session  # type: ignore[return-value]


def get_scheduler() -> Scheduler:
    if _scheduler is None:
        init_dependencies()
    return _scheduler  # type: ignore[return-value]
