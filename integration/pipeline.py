"""Application wiring — config → registries → agent, and replay drivers.

Shared by the CLI and the HTTP API so both consume the same core.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional

from agents.rca_agent.agent import RCAAgent
from agents.rca_agent.core.scheduler import AsyncioScheduler, ManualScheduler, Scheduler
from agents.rca_agent.playbook_loader import load_playbooks
from agents.rca_agent.playbooks import PlaybookLibrary, default_library
from agents.rca_agent.schema import (
    AgentAction,
    AnalysisResult,
    EventKind,
    SequencerEvent,
    ValidationResult,
)
from agents.rca_agent.validator import PlaybookValidator
from integration.config_manager import SystemConfig
from integration.logger import get_logger
from scenarios.catalog import ScenarioCatalog, default_catalog
from scenarios.records import SourceRecordStore, default_record_store

ActionCallback = Callable[[AgentAction], None]


@dataclass
class Registries:
    """Scenario catalogue, playbooks and records for one process."""
    catalog: ScenarioCatalog
    playbooks: PlaybookLibrary
    records: SourceRecordStore


def build_registries(config: SystemConfig) -> Registries:
    """Seed registries plus every YAML playbook in ``analysis.playbook_paths``.

    Raises:
        PlaybookError: A playbook document fails validation.
        yaml.YAMLError: A playbook file is not valid YAML.
    """
    registries = Registries(
        catalog=default_catalog(),
        playbooks=default_library(),
        records=default_record_store(),
    )
    if config.analysis.playbook_paths:
        docs = load_playbooks(
            config.analysis.playbook_paths,
            registries.catalog,
            registries.playbooks,
            registries.records,
        )
        get_logger("pipeline").info(
            "playbooks_loaded", count=len(docs), keys=[d.scenario.key for d in docs],
        )
    return registries


def build_agent(
    config: SystemConfig,
    scheduler: Optional[Scheduler] = None,
    registries: Optional[Registries] = None,
) -> RCAAgent:
    """Construct an RCAAgent from the application config."""
    registries = registries or build_registries(config)
    return RCAAgent(
        config=config.to_agent_config(),
        scheduler=scheduler,
        catalog=registries.catalog,
        playbooks=registries.playbooks,
        records=registries.records,
    )


def validate_playbooks(registries: Registries) -> List[ValidationResult]:
    """Validate every registered playbook against its scenario."""
    validator = PlaybookValidator()
    results: List[ValidationResult] = []
    for playbook in registries.playbooks:
        scenario = registries.catalog.get(playbook.scenario_key)
        if scenario is None:
            continue
        results.append(validator.validate(scenario, playbook, registries.records))
    return results


def _forward_actions(agent: RCAAgent, on_action: Optional[ActionCallback]) -> Callable[[], None]:
    def _listener(event: SequencerEvent) -> None:
        if on_action is not None and event.kind is EventKind.ACTION and event.action:
            on_action(event.action)

    return agent.subscribe(_listener)


def replay_instant(
    agent: RCAAgent,
    scenario_key: str,
    active_sources: object,
    on_action: Optional[ActionCallback] = None,
) -> Optional[AnalysisResult]:
    """Replay on the agent's ManualScheduler without waiting in real time."""
    clock = agent.scheduler
    if not isinstance(clock, ManualScheduler):
        raise TypeError("replay_instant requires an agent built with a ManualScheduler")
    unsubscribe = _forward_actions(agent, on_action)
    try:
        agent.start(scenario_key, active_sources)
        clock.run_until_idle()
    finally:
        unsubscribe()
    return agent.result


def replay_realtime(
    agent: RCAAgent,
    scenario_key: str,
    active_sources: object,
    on_action: Optional[ActionCallback] = None,
    timeout: Optional[float] = None,
) -> Optional[AnalysisResult]:
    """Replay with real delays on a fresh event loop."""
    if not isinstance(agent.scheduler, AsyncioScheduler):
        raise TypeError("replay_realtime requires an agent built with an AsyncioScheduler")

    async def _run() -> Optional[AnalysisResult]:
        unsubscribe = _forward_actions(agent, on_action)
        try:
            return await agent.run(scenario_key, active_sources, timeout=timeout)
        finally:
            unsubscribe()

    return asyncio.run(_run())
