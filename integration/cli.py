"""CLI helpers — argument validation, output formatting, Rich widgets."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agents.rca_agent.schema import (
    ActionType,
    AgentAction,
    AnalysisResult,
    Confidence,
    ConfidenceLevel,
    Evidence,
    ValidationResult,
)
from scenarios.models import ALL_SOURCES, RecordType, Scenario, SourceKey, SourceRecord

console = Console(stderr=True)

# Display labels for evidence sources.
SOURCE_LABELS: Dict[SourceKey, Tuple[str, str]] = {
    SourceKey.ANALYTICS: ("📈", "Analytics"),
    SourceKey.SUPPORT: ("🎫", "Support Tickets"),
    SourceKey.RELEASES: ("🚀", "Release Logs"),
    SourceKey.INTERNAL: ("💬", "Internal Comms"),
    SourceKey.INFRASTRUCTURE: ("🖥", "Infrastructure"),
    SourceKey.APPSTORE: ("⭐", "App Store Reviews"),
}

ACTION_STYLES: Dict[ActionType, Tuple[str, str]] = {
    ActionType.PARSE: ("🔍", "cyan"),
    ActionType.IDENTIFY: ("🎯", "cyan"),
    ActionType.DETERMINE: ("🕒", "cyan"),
    ActionType.THOUGHT: ("💭", "magenta"),
    ActionType.CHECK: ("🔎", "blue"),
    ActionType.FINDING: ("✔", "green"),
    ActionType.WARNING: ("⚠", "yellow"),
    ActionType.CORRELATE: ("🔗", "bold blue"),
    ActionType.HYPOTHESIS: ("💡", "bold green"),
}


# ── validation helpers ─────────────────────────────────────────────


def validate_scenario(scenario: str, available: Iterable[str]) -> bool:
    """Return ``True`` if *scenario* is in *available*."""
    return scenario in available


def validate_source(source: str) -> bool:
    """Return ``True`` if *source* names a known evidence source."""
    return source in {s.value for s in ALL_SOURCES}


def apply_source_overrides(
    defaults: Mapping[SourceKey, bool],
    enable: Iterable[str] = (),
    disable: Iterable[str] = (),
) -> Dict[SourceKey, bool]:
    """Apply ``--enable`` / ``--disable`` switches on top of *defaults*.

    Raises:
        ValueError: A switch names an unknown source.
    """
    toggles = dict(defaults)
    for name in enable:
        toggles[SourceKey(name)] = True
    for name in disable:
        toggles[SourceKey(name)] = False
    return toggles


# ── formatting helpers ─────────────────────────────────────────────


def format_duration(seconds: float) -> str:
    """Format *seconds* as ``2m 34s`` or ``1.2s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.0f}s"


def format_confidence(confidence: Confidence) -> str:
    """Format *confidence* as a coloured ``Level (NN%)``."""
    text = f"{confidence.level.value} ({confidence.percent}%)"
    if confidence.level is ConfidenceLevel.HIGH:
        return f"[green]{text}[/green]"
    if confidence.level is ConfidenceLevel.MEDIUM:
        return f"[yellow]{text}[/yellow]"
    return f"[red]{text}[/red]"


def source_label(source: Optional[SourceKey]) -> str:
    if source is None:
        return ""
    icon, label = SOURCE_LABELS.get(source, ("•", source.value))
    return f"{icon} {label}"


# ── Rich widgets ───────────────────────────────────────────────────


def display_action(action: AgentAction) -> None:
    """Print one line of the reasoning trace."""
    icon, style = ACTION_STYLES.get(action.type, ("•", "white"))
    where = f" [dim]({source_label(action.source)})[/dim]" if action.source else ""
    console.print(
        f"[dim]{action.timestamp:5.1f}s[/dim] {icon} "
        f"[{style}]{action.label}[/{style}]{where}: {action.content}",
    )


def display_result_panel(result: AnalysisResult, scenario: Optional[Scenario] = None) -> None:
    """Display the final hypothesis panel."""
    hypothesis = result.hypothesis
    title = scenario.title if scenario else result.scenario_key
    body = (
        f"[bold]{hypothesis.conclusion}[/bold]\n\n"
        f"Scenario   : [cyan]{title}[/cyan]\n"
        f"Confidence : {format_confidence(hypothesis.confidence)}"
    )
    if hypothesis.note:
        body += f"\nNote       : [yellow]{hypothesis.note}[/yellow]"

    border = "green" if hypothesis.confidence.level is ConfidenceLevel.HIGH else "yellow"
    console.print(
        Panel(body, title="Hypothesis", border_style=border, padding=(1, 2)),
    )


def display_evidence_table(evidence: Iterable[Evidence]) -> None:
    """Print supporting evidence in canonical order."""
    rows = list(evidence)
    if not rows:
        console.print("[dim]No supporting evidence from the active sources.[/dim]")
        return

    table = Table(title="Supporting Evidence", show_header=True, header_style="bold magenta")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Evidence", style="white")
    table.add_column("Record", style="green")
    for item in rows:
        table.add_row(
            source_label(item.source),
            item.text,
            f"#{item.evidence_id}" if item.has_data else "[red]missing[/red]",
        )
    console.print(table)


def display_error(error: Exception, context: str = "") -> None:
    """Display a formatted error panel."""
    msg = f"[red]✗ Error{f' ({context})' if context else ''}[/red]\n\n{error}"
    console.print(Panel(msg, title="Error", border_style="red", padding=(1, 2)))


def display_scenarios_table(scenarios: List[Scenario]) -> None:
    """Print a Rich table of available scenarios."""
    table = Table(
        title="Available Incident Scenarios",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Scenario", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Sources", style="green")

    for scenario in scenarios:
        table.add_row(
            scenario.key,
            scenario.title,
            ", ".join(s.value for s in scenario.relevant_sources) or "—",
        )

    console.print(table)


def display_sources_table(toggles: Mapping[SourceKey, bool], relevant: Iterable[SourceKey]) -> None:
    """Print switch position and relevance for every source."""
    relevant_set = set(relevant)
    table = Table(title="Sources", show_header=True)
    table.add_column("Source", style="cyan")
    table.add_column("Active")
    table.add_column("Relevant")
    for source in ALL_SOURCES:
        table.add_row(
            source_label(source),
            "[green]on[/green]" if toggles.get(source) else "[dim]off[/dim]",
            "yes" if source in relevant_set else "[dim]no[/dim]",
        )
    console.print(table)


def display_record(record: SourceRecord, source: SourceKey) -> None:
    """Render a raw chart / text / list record with its metadata."""
    console.print(f"\n[bold]{source_label(source)} — {record.title}[/bold]")
    if record.description:
        console.print(f"[dim]{record.description}[/dim]\n")

    if record.type is RecordType.CHART and record.chart_data:
        peak = max(point.value for point in record.chart_data) or 1.0
        table = Table(show_header=True, header_style="bold")
        table.add_column("Date", style="cyan", no_wrap=True)
        table.add_column("Value", justify="right")
        table.add_column("")
        for point in record.chart_data:
            bar = "█" * max(1, int(point.value / peak * 30))
            table.add_row(point.date, f"{point.value:g}", f"[blue]{bar}[/blue]")
        console.print(table)
    elif record.type is RecordType.LIST:
        for item in record.items:
            console.print(f"  • {item}")
    else:
        console.print(Panel(record.content or "", border_style="dim"))

    if record.metadata:
        meta = Table(show_header=False, box=None)
        meta.add_column("Key", style="bold")
        meta.add_column("Value")
        for key, value in record.metadata.items():
            meta.add_row(key, value)
        console.print(meta)


def display_validation(result: ValidationResult) -> None:
    """Print one playbook validation line plus its findings."""
    mark = "[green]✅[/green]" if result.validation_passed else "[red]✗[/red]"
    console.print(
        f"  {mark} {result.scenario_key}: {result.total_checks} checks, "
        f"{len(result.errors)} errors, {len(result.warnings)} warnings",
    )
    for issue in list(result.errors) + list(result.warnings):
        console.print(
            f"      #{issue.check_number} {issue.check_name}: {issue.error_description}",
        )
