"""
Root Typer application for the job-monitor CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from jobmonitor.core.logging import configure_logging
from jobmonitor.cli.utils import load_settings

app = Typer(
    name="jobmonitor",
    help="job-monitor — preview cron schedules and follow running jobs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from jobmonitor import __version__

        typer.echo(f"job-monitor {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override JOBMONITOR_LOG_LEVEL."),
) -> None:
    """job-monitor CLI — cron previews and live execution logs."""
    settings = load_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from jobmonitor.cli.cron import app as cron_app  # noqa: E402
from jobmonitor.cli.logs import app as logs_app  # noqa: E402

app.add_typer(cron_app, name="cron", help="Preview and describe cron schedules.")
app.add_typer(logs_app, name="logs", help="Follow execution step logs.")
