"""
Typer CLI for the learner-insights service.

Commands:
    insights profile LEARNER          - Show profile and diagnostic report
    insights recommend LEARNER        - Show ranked content recommendations
    insights analytics                - Show the dashboard analytics snapshot
    insights export                   - Export the activity dataset (CSV/JSON)
    insights record LEARNER SKILL     - Record an activity event
    insights serve                    - Start the API server

Usage:
    insights --help
    insights profile student-demo
    insights recommend student-demo --json
    insights record student-demo optics --score 0.72 --content lab-physique
    insights export --format csv --role teacher -o activity.csv
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TypeVar

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import Settings, get_settings
from src.bootstrap import open_runtime
from src.analytics.export import EXPORT_FORMATS
from src.core.errors import InsightsError
from src.core.logging import configure_logging
from src.core.mastery import MasteryLevel
from src.personalization.models import ActivityEvent, ActivityKind, Role
from src.personalization.service import PersonalizationService, can_export

app = typer.Typer(
    help="learner-insights CLI: learner diagnostics, recommendations and dashboard analytics",
    no_args_is_help=True,
)

console = Console()

T = TypeVar("T")


# ========================================
# Runtime helpers
# ========================================


def _run(action: Callable[[PersonalizationService], Awaitable[T]]) -> T:
    """Open the runtime, run one service call and close everything."""
    settings = get_settings()
    configure_logging(settings, level="WARNING")

    async def _main() -> T:
        async with open_runtime(settings) as runtime:
            return await action(PersonalizationService(runtime.context()))

    return asyncio.run(_main())


def _hints(name: str | None, role: str | None) -> dict[str, str]:
    return {key: value for key, value in (("name", name), ("role", role)) if value is not None}


def _fmt(value: float | None, digits: int = 2) -> str:
    return "-" if value is None else f"{value:.{digits}f}"


# ========================================
# Personalization commands
# ========================================


@app.command("profile")
def show_profile(
    learner_id: str = typer.Argument(..., help="Learner identifier"),
    name: str | None = typer.Option(None, "--name", help="Display name hint"),
    role: str | None = typer.Option(None, "--role", help="Role hint (student/teacher/admin)"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON bundle"),
) -> None:
    """
    Show a learner's profile and diagnostic report.

    Examples:
        insights profile student-demo
        insights profile new-learner --name "Ada Lovelace" --role Teacher
    """
    bundle = _run(lambda service: service.personalize(learner_id, _hints(name, role)))

    if as_json:
        typer.echo(json.dumps(bundle.to_dict(), indent=2))
        return

    profile, report = bundle.profile, bundle.diagnostics
    rprint(f"\n[bold cyan]{profile.name}[/bold cyan] [dim]({profile.learner_id}, {profile.role.value})[/dim]")
    rprint(f"  Readiness: {_fmt(report.readiness)}")
    rprint(f"  Engagement: {report.engagement_trend.value}")
    rprint(f"  Events recorded: {report.history_length}\n")

    if not report.skills:
        rprint("[yellow]⚠[/yellow] No skill evidence recorded yet")
        return

    table = Table(title="Skill Mastery", show_header=True)
    table.add_column("Skill", style="cyan")
    table.add_column("Mastery", justify="right")
    table.add_column("Level")
    table.add_column("Evidence", justify="right", style="dim")
    table.add_column("Gap severity", justify="right", style="red")

    severities = report.gap_severity()
    for skill in report.skills:
        level: MasteryLevel = skill.level
        table.add_row(
            skill.skill_id,
            _fmt(skill.mastery),
            f"[{level.color}]{level.display_name}[/{level.color}]",
            str(skill.evidence_count),
            _fmt(severities.get(skill.skill_id), 3),
        )
    console.print(table)

    if report.error_clusters:
        rprint("\n[bold]Recurring errors[/bold]")
        for cluster in report.error_clusters:
            rprint(f"  {cluster.frequency}x {cluster.label}")
            rprint(f"     [dim]{cluster.remediation}[/dim]")


@app.command("recommend")
def recommend(
    learner_id: str = typer.Argument(..., help="Learner identifier"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON list"),
) -> None:
    """Show ranked content recommendations for a learner."""
    bundle = _run(lambda service: service.personalize(learner_id))
    recommendations = bundle.recommendations

    if as_json:
        typer.echo(json.dumps(recommendations.to_dict(), indent=2))
        return

    if not recommendations.items:
        rprint("[yellow]⚠[/yellow] Nothing to recommend (no gaps or empty catalog)")
        return

    table = Table(title=f"Recommendations for {learner_id}", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Item", style="cyan")
    table.add_column("Title")
    table.add_column("Kind")
    table.add_column("Priority")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Rationale", style="dim")

    for rank, item in enumerate(recommendations, start=1):
        table.add_row(
            str(rank),
            item.item_id,
            item.title,
            item.kind,
            item.priority.value,
            _fmt(item.score, 3),
            ", ".join(item.rationale),
        )
    console.print(table)


@app.command("record")
def record_activity(
    learner_id: str = typer.Argument(..., help="Learner identifier"),
    skill_id: str = typer.Argument(..., help="Skill the activity exercised"),
    success: bool = typer.Option(False, "--success", help="Record a successful attempt"),
    failure: bool = typer.Option(False, "--failure", help="Record a failed attempt"),
    score: float | None = typer.Option(None, "--score", min=0.0, max=1.0, help="Normalized score (0-1)"),
    completion: bool = typer.Option(False, "--completion", help="Record a completion (no outcome)"),
    content_id: str | None = typer.Option(None, "--content", help="Content item id"),
    error_label: str | None = typer.Option(None, "--error", help="Error label for a mistake"),
) -> None:
    """
    Record one activity event for a learner.

    Exactly one of --success, --failure, --score or --completion is required.

    Examples:
        insights record student-demo optics --failure --error "Sign convention"
        insights record student-demo optics --score 0.72
    """
    chosen = [success, failure, score is not None, completion]
    if sum(chosen) != 1:
        rprint("[red]✗[/red] Pass exactly one of --success, --failure, --score or --completion")
        raise typer.Exit(code=2)

    now = datetime.now(timezone.utc)
    if success or failure:
        event = ActivityEvent.attempt(skill_id, success, now, content_id, error_label)
    elif score is not None:
        event = ActivityEvent(ActivityKind.SCORE, skill_id, now, score, content_id, error_label)
    else:
        event = ActivityEvent(ActivityKind.COMPLETION, skill_id, now, None, content_id, error_label)

    try:
        profile = _run(lambda service: service.record_activity(learner_id, event))
    except InsightsError as e:
        logger.error(f"Could not record activity: {e}")
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    mastery = profile.mastery.get(skill_id)
    rprint(f"[green]✓[/green] Recorded {event.kind.value} for {learner_id} on {skill_id}")
    rprint(f"  Running mastery: {_fmt(mastery)}")


# ========================================
# Analytics commands
# ========================================


@app.command("analytics")
def show_analytics(
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON snapshot"),
) -> None:
    """Show the dashboard analytics snapshot."""
    snapshot = _run(lambda service: service.analytics())

    if as_json:
        typer.echo(json.dumps(snapshot.to_dict(), indent=2))
        return

    rprint(f"\n[bold cyan]Analytics snapshot[/bold cyan] [dim](granularity: {snapshot.granularity.value})[/dim]")

    status_table = Table(title="Sources", show_header=True)
    status_table.add_column("Source", style="cyan")
    status_table.add_column("Status")
    status_table.add_column("Reason", style="dim")
    for status in snapshot.statuses:
        state = "[green]ok[/green]" if status.ok else "[red]unavailable[/red]"
        status_table.add_row(status.source, state, status.reason or "")
    console.print(status_table)

    if snapshot.summary:
        summary_table = Table(title="Summary", show_header=True)
        summary_table.add_column("Metric", style="cyan")
        summary_table.add_column("Value", justify="right")
        for key, value in snapshot.summary:
            summary_table.add_row(key, f"{value:g}")
        console.print(summary_table)

    if snapshot.classes:
        class_table = Table(title="Classes", show_header=True)
        class_table.add_column("Class", style="cyan")
        class_table.add_column("Learners", justify="right")
        class_table.add_column("Completion", justify="right")
        class_table.add_column("Avg score", justify="right")
        for row in snapshot.classes:
            class_table.add_row(row.name, str(row.learners), f"{row.completion:.0%}", _fmt(row.avg_score, 0))
        console.print(class_table)

    if snapshot.degraded:
        rprint(f"\n[yellow]⚠[/yellow] Incomplete data: {', '.join(snapshot.degraded)}")


@app.command("export")
def export_analytics(
    fmt: str = typer.Option("csv", "--format", "-f", help="Export format: csv, json or summary"),
    role: str = typer.Option("teacher", "--role", help="Caller role"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
) -> None:
    """Export the activity dataset (teachers and admins only)."""
    if fmt not in EXPORT_FORMATS:
        rprint(f"[red]✗[/red] Unsupported format: {fmt}")
        raise typer.Exit(code=2)
    caller = Role.parse(role)
    if not can_export(caller):
        rprint("[red]✗[/red] Analytics export is reserved for teachers and admins")
        raise typer.Exit(code=1)

    dataset = _run(lambda service: service.export(fmt, requested_by=caller))  # type: ignore[arg-type]

    if output is None:
        typer.echo(dataset.content)
        return

    output.write_text(dataset.content, encoding="utf-8")
    rprint(f"[green]✓[/green] Wrote {dataset.file_name} ({dataset.mime}) to {output}")


# ========================================
# Server
# ========================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind host (default from settings)"),
    port: int | None = typer.Option(None, "--port", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    settings: Settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]learner-insights[/bold] v0.1.0")
    rprint("  Learner personalization and analytics aggregation core")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
