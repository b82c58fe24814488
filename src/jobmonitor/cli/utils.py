"""
CLI utility helpers — shared consoles and output formatting.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jobmonitor.core.errors import ConfigError, JobMonitorError
from jobmonitor.core.settings import JobMonitorSettings, get_settings

console = Console()
err_console = Console(stderr=True)


# ── Settings helper ──────────────────────────────────────────────────────


def load_settings(**overrides: Any) -> JobMonitorSettings:
    """Cached settings with command-line overrides applied (``None`` skipped).

    Invalid ``JOBMONITOR_*`` values end the command with a CONFIG error.
    """
    try:
        settings = get_settings()
    except PydanticValidationError as exc:
        first = exc.errors(include_url=False)[0]
        name = ".".join(str(part) for part in first["loc"])
        fail(ConfigError(f"Invalid setting {name}: {first['msg']}", cause=exc))
    update = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=update) if update else settings


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    """Print ``payload`` as pretty JSON on stdout."""
    console.print_json(json.dumps(payload, default=str))


def fail(error: JobMonitorError | str, *, code: int = 1) -> NoReturn:
    """Report an error on stderr and exit with ``code``."""
    if isinstance(error, JobMonitorError):
        label = error.category.value
        message = error.message
    else:
        label = "ERROR"
        message = error
    err_console.print(f"[bold red]Error[/bold red] ({label}): {escape(message)}")
    raise typer.Exit(code=code)


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else escape(str(v)) for v in row.values()))
    console.print(table)
