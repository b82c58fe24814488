"""
CLI: ``jobmonitor logs`` — follow a running job's step stream.
"""

from __future__ import annotations

import asyncio

import typer
from rich.markup import escape

from jobmonitor.cli.utils import console, err_console, fail, load_settings, print_json, print_table
from jobmonitor.core.errors import ChannelError, JobMonitorError, StreamProtocolError, is_retryable
from jobmonitor.core.logging import LogContext
from jobmonitor.core.settings import JobMonitorSettings
from jobmonitor.execution.events import StepEnd, StepEvent, StepLog, StepStart
from jobmonitor.execution.models import StepStatus, StreamSnapshot, format_duration
from jobmonitor.execution.session import ExecutionStreamReconstructor
from jobmonitor.execution.transports import StepEventTransport
from jobmonitor.execution.transports.sse import SSEStepEventTransport

app = typer.Typer(no_args_is_help=True)


def _print_event(event: StepEvent) -> None:
    match event:
        case StepStart():
            console.print(f"[bold cyan]▶ step {event.step_order}[/bold cyan] {escape(event.step_name)}")
        case StepLog():
            for line in event.output.splitlines() or [""]:
                console.print(f"  [dim]{event.step_order}[/dim] {escape(line)}", highlight=False)
        case StepEnd():
            if event.status == StepStatus.SUCCESS:
                mark = "[green]✔[/green]"
            else:
                mark = "[red]✘[/red]"
            suffix = f" [red]{escape(event.error)}[/red]" if event.error else ""
            console.print(
                f"{mark} step {event.step_order} {event.status.value}"
                f" ({format_duration(event.duration_ms)}){suffix}"
            )


def _print_summary(snapshot: StreamSnapshot) -> None:
    rows = [
        {
            "order": step.step_order,
            "name": step.step_name,
            "status": step.status.value,
            "duration": format_duration(step.duration_ms),
            "error": step.error or "",
        }
        for step in snapshot.steps
    ]
    print_table(rows, title=f"Job log {snapshot.job_log_id}")
    if snapshot.all_success:
        console.print("[bold green]All steps succeeded.[/bold green]")
    elif snapshot.has_error:
        console.print("[bold red]One or more steps failed.[/bold red]")


async def watch_stream(
    transport: StepEventTransport,
    job_log_id: int,
    *,
    settings: JobMonitorSettings,
    as_json: bool = False,
) -> tuple[StreamSnapshot, JobMonitorError | None]:
    """Follow ``job_log_id`` until it completes, fails or the server hangs up."""
    finished = asyncio.Event()
    failure: list[JobMonitorError] = []

    def on_error(error: Exception) -> None:
        if isinstance(error, StreamProtocolError):
            err_console.print(f"[yellow]Skipped frame:[/yellow] {escape(error.message)}")
            return
        if isinstance(error, JobMonitorError):
            failure.append(error)
        else:
            failure.append(ChannelError(str(error), cause=error))

    stream = ExecutionStreamReconstructor(
        transport,
        job_log_id,
        on_error=on_error,
        on_event=None if as_json else _print_event,
        on_closed=finished.set,
        protect_terminal_steps=settings.protect_terminal_steps,
    )
    with stream:
        stream.open()
        await finished.wait()
        snapshot = stream.snapshot()

    if failure:
        return snapshot, failure[0]
    if not snapshot.is_complete:
        return snapshot, ChannelError("Stream ended before the job completed").with_context(
            job_log_id=job_log_id,
        )
    return snapshot, None


@app.command("watch")
def watch(
    job_log_id: int = typer.Argument(..., help="Execution log id"),
    api_url: str | None = typer.Option(None, "--api-url", help="Dashboard API base URL"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Stream step progress for a running job until it completes."""
    settings = load_settings(api_url=api_url)
    transport = SSEStepEventTransport(settings)

    if not json_out:
        err_console.print(f"[dim]Connecting to {settings.stream_url(job_log_id)}[/dim]")

    with LogContext(job_log_id=job_log_id):
        snapshot, error = asyncio.run(
            watch_stream(transport, job_log_id, settings=settings, as_json=json_out)
        )

    if json_out:
        print_json(snapshot.to_dict())
    else:
        _print_summary(snapshot)

    if error is not None:
        if is_retryable(error):
            err_console.print(
                "[dim]The channel error is transient; run the command again to reconnect.[/dim]"
            )
        fail(error)
