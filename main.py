"""main.py — CLI entry point for Insight Flow.

Uses **Click** for command parsing and **Rich** for output.

Usage examples::

    python main.py list-scenarios
    python main.py infer "Why did checkout completion drop on May 5th?"
    python main.py run -s checkout-drop --disable releases --instant
    python main.py run -q "What caused the API error spike?" --json
    python main.py show-evidence -s checkout-drop --source analytics
    python main.py validate
    python main.py serve --port 8000
"""

from __future__ import annotations

import json
from typing import Optional, Tuple

import click
import yaml
from pydantic import ValidationError

from agents.rca_agent.core.scheduler import AsyncioScheduler, ManualScheduler
from agents.rca_agent.playbook_loader import PlaybookError
from agents.rca_agent.schema import AgentAction, AnalysisResult
from integration.cli import (
    apply_source_overrides,
    console,
    display_action,
    display_error,
    display_evidence_table,
    display_record,
    display_result_panel,
    display_scenarios_table,
    display_sources_table,
    display_validation,
    format_duration,
    validate_scenario,
    validate_source,
)
from integration.config_manager import ConfigManager, SystemConfig
from integration.logger import bind_run, clear_run, get_logger, setup_logging
from integration.pipeline import (
    Registries,
    build_agent,
    build_registries,
    replay_instant,
    replay_realtime,
    validate_playbooks,
)
from scenarios.models import SourceKey


# ── Click group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version="1.0.0", prog_name="insightflow")
@click.option(
    "--config",
    "config_path",
    default="config.yaml",
    envvar="INSIGHTFLOW_CONFIG",
    help="Path to config.yaml.",
    type=click.Path(),
)
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """🔎 Insight Flow — root-cause analysis explorer

    Replays an agent's reasoning over the evidence sources you switch on
    and shows how the conclusion and its confidence change.

    \b
    Quick start:
      python main.py list-scenarios
      python main.py run -s checkout-drop --instant
      python main.py --help
    """
    ctx.ensure_object(dict)
    try:
        cfg = ConfigManager.load(config_path)
    except (yaml.YAMLError, ValidationError, ValueError) as exc:
        console.print(f"[red]Failed to load config:[/red] {exc}")
        raise SystemExit(2) from exc

    ctx.obj["config"] = cfg
    setup_logging(cfg.system.log_level)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _registries(ctx: click.Context) -> Registries:
    """Build (once per invocation) the registries, including YAML playbooks."""
    if "registries" not in ctx.obj:
        config: SystemConfig = ctx.obj["config"]
        try:
            ctx.obj["registries"] = build_registries(config)
        except (PlaybookError, ValidationError, yaml.YAMLError, OSError) as exc:
            display_error(exc, context="playbooks")
            raise SystemExit(2) from exc
    return ctx.obj["registries"]


def _result_payload(result: AnalysisResult, actions: Tuple[AgentAction, ...]) -> dict:
    payload = result.model_dump(mode="json")
    payload["actions"] = [a.model_dump(mode="json") for a in actions]
    return payload


# ── list-scenarios ─────────────────────────────────────────────────


@cli.command("list-scenarios")
@click.pass_context
def list_scenarios_cmd(ctx: click.Context) -> None:
    """List all available incident scenarios.

    \b
    Example:
      python main.py list-scenarios
    """
    display_scenarios_table(_registries(ctx).catalog.all())


# ── infer ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("query")
@click.pass_context
def infer(ctx: click.Context, query: str) -> None:
    """Show which scenario a free-text QUERY maps to.

    \b
    Example:
      python main.py infer "Why is the API throwing errors?"
    """
    config: SystemConfig = ctx.obj["config"]
    agent = build_agent(config, ManualScheduler(), _registries(ctx))
    key = agent.infer_scenario(query)
    scenario = agent.catalog.get(key)
    title = scenario.title if scenario else key
    console.print(f"[bold]Scenario:[/bold] [cyan]{key}[/cyan] — {title}")
    click.echo(key)


# ── run ────────────────────────────────────────────────────────────


@cli.command()
@click.option("--scenario", "-s", default=None, help="Scenario key (e.g. checkout-drop).")
@click.option("--query", "-q", default=None, help="Free-text question; infers the scenario.")
@click.option(
    "--enable",
    "-e",
    multiple=True,
    help="Switch a source on. Repeatable.",
)
@click.option(
    "--disable",
    "-d",
    multiple=True,
    help="Switch a source off. Repeatable.",
)
@click.option("--speed", default=None, type=float, help="Replay speed multiplier.")
@click.option("--instant", is_flag=True, default=False, help="Skip real-time delays.")
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the result as JSON on stdout.",
)
@click.pass_context
def run(
    ctx: click.Context,
    scenario: Optional[str],
    query: Optional[str],
    enable: Tuple[str, ...],
    disable: Tuple[str, ...],
    speed: Optional[float],
    instant: bool,
    as_json: bool,
) -> None:
    """Replay the agent's reasoning and reveal its hypothesis.

    \b
    Examples:
      python main.py run -s checkout-drop
      python main.py run -s api-error-spike -d internal --instant
      python main.py run -q "Why did checkout drop?" --json --instant
    """
    config: SystemConfig = ctx.obj["config"]
    log = get_logger("cli.run")
    registries = _registries(ctx)

    if (speed if speed is not None else config.analysis.speed) <= 0:
        console.print("[red]Replay speed must be > 0[/red]")
        raise SystemExit(1)
    if speed is not None:
        config = config.model_copy(
            update={"analysis": config.analysis.model_copy(update={"speed": speed})},
        )

    scheduler = ManualScheduler() if instant else AsyncioScheduler()
    agent = build_agent(config, scheduler, registries)

    if query:
        scenario = agent.infer_scenario(query)
    scenario = scenario or config.analysis.default_scenario

    if not validate_scenario(scenario, registries.catalog.keys()):
        console.print(f"[red]Unknown scenario:[/red] '{scenario}'")
        console.print(f"Available: {', '.join(registries.catalog.keys())}")
        raise SystemExit(1)

    for name in enable + disable:
        if not validate_source(name):
            console.print(f"[red]Unknown source:[/red] '{name}'")
            console.print(f"Available: {', '.join(s.value for s in SourceKey)}")
            raise SystemExit(1)
    toggles = apply_source_overrides(
        registries.catalog.default_availability(scenario), enable, disable,
    )

    meta = registries.catalog.get(scenario)
    if not as_json:
        console.print(f"\n[bold]🔎 {meta.title}[/bold]")
        console.print(f"[dim]{meta.query}[/dim]\n")
        display_sources_table(toggles, meta.relevant_sources)

    on_action = None if as_json else display_action
    bind_run(scenario, "instant" if instant else "realtime")
    try:
        log.info("run_started", sources=[s.value for s, on in toggles.items() if on])
        start = scheduler.now()
        if instant:
            result = replay_instant(agent, scenario, toggles, on_action)
        else:
            result = replay_realtime(agent, scenario, toggles, on_action)

        if result is None:
            display_error(Exception("Replay was interrupted before completing"), context=scenario)
            raise SystemExit(2)

        log.info(
            "run_completed",
            percent=result.hypothesis.confidence.percent,
            actions=len(agent.actions),
        )
    finally:
        clear_run()

    if as_json:
        click.echo(json.dumps(_result_payload(result, agent.actions), indent=2))
        return

    console.print()
    display_result_panel(result, meta)
    display_evidence_table(result.evidence)
    console.print(
        f"[dim]{len(agent.actions)} steps in "
        f"{format_duration(scheduler.now() - start)}[/dim]",
    )


# ── show-evidence ──────────────────────────────────────────────────


@cli.command("show-evidence")
@click.option("--scenario", "-s", required=True, help="Scenario key.")
@click.option("--source", required=True, help="Evidence source (e.g. analytics).")
@click.option("--evidence-id", "-i", default=0, show_default=True, type=int, help="Record index.")
@click.pass_context
def show_evidence(ctx: click.Context, scenario: str, source: str, evidence_id: int) -> None:
    """Show the raw record behind a piece of evidence.

    \b
    Example:
      python main.py show-evidence -s checkout-drop --source support
    """
    registries = _registries(ctx)
    if not validate_source(source):
        console.print(f"[red]Unknown source:[/red] '{source}'")
        raise SystemExit(1)

    record = registries.records.get(scenario, source, evidence_id)
    if record is None:
        console.print(
            f"[red]No data available[/red] for {scenario} / {source} #{evidence_id}",
        )
        raise SystemExit(1)
    display_record(record, SourceKey(source))


# ── validate ───────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--config",
    "config_path",
    default="config.yaml",
    help="Config file to validate.",
    type=click.Path(),
)
def validate(config_path: str) -> None:
    """Validate the configuration file and every playbook.

    \b
    Example:
      python main.py validate --config config.yaml
    """
    try:
        cfg = ConfigManager.load(config_path)
    except (yaml.YAMLError, ValidationError, ValueError) as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise SystemExit(1)

    issues = ConfigManager.validate(cfg)
    if issues:
        console.print("[yellow]⚠ Validation issues:[/yellow]")
        for issue in issues:
            console.print(f"  • {issue}")
        raise SystemExit(1)

    try:
        registries = build_registries(cfg)
    except (PlaybookError, ValidationError, yaml.YAMLError, OSError) as exc:
        display_error(exc, context="playbooks")
        raise SystemExit(1)

    console.print("[green]✅ Config OK[/green]")
    console.print(f"  version    : {cfg.system.version}")
    console.print(f"  log level  : {cfg.system.log_level}")
    console.print(f"  scenarios  : {len(registries.catalog)}")
    console.print(f"  speed      : {cfg.analysis.speed}x")

    console.print("\n[bold]Playbooks:[/bold]")
    results = validate_playbooks(registries)
    for result in results:
        display_validation(result)
    if not all(r.validation_passed for r in results):
        raise SystemExit(1)


# ── serve ──────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", "-h", default=None, help="Bind host (default: from config).")
@click.option("--port", "-p", default=None, type=int, help="Bind port (default: from config).")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Start the REST API server.

    \b
    Example:
      python main.py serve --port 8000
    """
    import uvicorn

    from rca_api.dependencies import init_dependencies
    from rca_api.server import create_app

    config: SystemConfig = ctx.obj["config"]
    bind_host = host or config.api.host
    bind_port = port or config.api.port

    init_dependencies(config, _registries(ctx))

    console.print(
        f"[bold green]Insight Flow API listening on {bind_host}:{bind_port}[/bold green]",
    )
    console.print(f"Interactive docs at http://{bind_host}:{bind_port}/docs")
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_level="info")


# ── entry point ────────────────────────────────────────────────────


if __name__ == "__main__":
    cli()
