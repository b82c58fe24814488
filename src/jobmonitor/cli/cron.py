"""
CLI: ``jobmonitor cron`` — preview, describe and list schedule expressions.
"""

from __future__ import annotations

from datetime import datetime

import typer
from rich.markup import escape

from jobmonitor.cli.utils import console, err_console, fail, load_settings, print_json, print_table
from jobmonitor.core.errors import CronValidationError
from jobmonitor.scheduling.describe import CRON_PRESETS, describe_cron, format_datetime
from jobmonitor.scheduling.lint import Severity
from jobmonitor.scheduling.preview import preview_schedule

app = typer.Typer(no_args_is_help=True)


def _parse_reference(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"not an ISO date/time: {value!r}", param_hint="--from") from exc


@app.command("preview")
def preview(
    expression: str = typer.Argument(..., help="Cron expression, e.g. '0 2 * * *'"),
    count: int | None = typer.Option(None, "--count", "-n", min=1, max=100, help="Runs to list"),
    start: str | None = typer.Option(None, "--from", help="Reference time (ISO 8601)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Describe an expression and list its next runs."""
    settings = load_settings()
    result = preview_schedule(
        expression,
        now=_parse_reference(start),
        count=count or settings.preview_count,
        search_days=settings.search_horizon_days,
    )

    if json_out:
        print_json(result.to_dict())
        if not result.valid:
            raise typer.Exit(code=1)
        return

    if not result.valid:
        fail(CronValidationError(result.error or result.description, value=expression))

    console.print(
        f"[bold]{escape(result.expression)}[/bold]  [dim]{escape(result.description)}[/dim]"
    )
    if result.next_runs:
        for index, run in enumerate(result.next_runs, start=1):
            console.print(f"  {index}. {format_datetime(run)}")
    else:
        console.print("[yellow]No upcoming runs within the search horizon.[/yellow]")

    for diagnostic in result.diagnostics:
        style = "yellow" if diagnostic.severity == Severity.WARNING else "dim"
        err_console.print(f"[{style}]{escape(str(diagnostic))}[/{style}]")


@app.command("describe")
def describe(
    expression: str = typer.Argument(..., help="Cron expression"),
) -> None:
    """Print a plain-English description of an expression."""
    console.print(escape(describe_cron(expression)))


@app.command("presets")
def presets(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List the common schedule presets."""
    rows = [
        {"label": p.label, "value": p.value, "description": p.description}
        for p in CRON_PRESETS
    ]
    if json_out:
        print_json(rows)
        return
    print_table(rows, title="Cron presets")
