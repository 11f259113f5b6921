"""tasktimeline command-line interface."""

from __future__ import annotations

import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from tasktimeline import __version__

app = typer.Typer(
    name="tasktimeline",
    help="Real-time synchronized task timeline.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_DATETIME_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M"]

_STATUS_STYLES = {
    "pending": "yellow",
    "in-progress": "cyan",
    "completed": "green",
}


@app.callback(invoke_without_command=True)
def main_callback(
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
    log_level: str = typer.Option("", "--log-level", help="DEBUG, INFO, WARNING, ..."),
    log_file: bool = typer.Option(False, "--log-file", help="Also log to ~/.tasktimeline/logs"),
):
    if version:
        console.print(f"tasktimeline [dim]v{__version__}[/dim]")
        raise typer.Exit()

    from tasktimeline.config.constants import LOGS_DIR
    from tasktimeline.config.settings import get_settings
    from tasktimeline.logging_setup import setup_logging

    setup_logging(
        log_level or get_settings().log_level,
        log_file=LOGS_DIR / "tasktimeline.log" if log_file else None,
    )


def _server_url(server: str) -> str:
    from tasktimeline.config.settings import get_settings

    return server or get_settings().client.server_url


# -- Server --------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("", "--host", help="Bind address (default: HOST / settings)"),
    port: int = typer.Option(0, "--port", "-p", help="Port (default: PORT / settings)"),
):
    """Run the timeline API and push-channel server."""
    import uvicorn

    from tasktimeline.config.settings import get_settings
    from tasktimeline.server.app import create_app

    settings = get_settings()
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port

    console.print(f"  [bold]API:[/bold]     http://{settings.server.host}:{settings.server.port}/api/tasks")
    console.print(f"  [bold]WS:[/bold]      ws://{settings.server.host}:{settings.server.port}/ws")
    console.print(f"  [bold]Storage:[/bold] {settings.storage_uri}")
    console.print()

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        access_log=False,
        log_level="warning",
    )


# -- Task commands -------------------------------------------------------------


def _task_table(tasks) -> Table:
    table = Table(show_edge=False, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Min", justify="right")
    table.add_column("Status")
    for t in tasks:
        style = _STATUS_STYLES.get(t.status.value, "")
        table.add_row(
            t.id,
            t.title,
            t.start_time.strftime("%Y-%m-%d %H:%M"),
            t.end_time.strftime("%H:%M"),
            str(t.duration),
            f"[{style}]{t.status.value}[/{style}]" if style else t.status.value,
        )
    return table


async def _with_api(server: str, fn):
    from tasktimeline.client.api import TaskApiClient

    async with TaskApiClient(_server_url(server)) as api:
        return await fn(api)


def _run_api(server: str, fn):
    from tasktimeline.errors import TimelineError

    try:
        return asyncio.run(_with_api(server, fn))
    except TimelineError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)


@app.command("list")
def list_tasks(
    status: str = typer.Option("", "--status", "-s", help="pending | in-progress | completed"),
    start: datetime = typer.Option(None, "--from", formats=_DATETIME_FORMATS),
    end: datetime = typer.Option(None, "--to", formats=_DATETIME_FORMATS),
    server: str = typer.Option("", "--server", help="Server base URL"),
):
    """List tasks ordered by start time."""
    tasks = _run_api(server, lambda api: api.list(start=start, end=end, status=status or None))
    if not tasks:
        console.print("[dim]No tasks found.[/dim]")
        return
    console.print(_task_table(tasks))


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    start: datetime = typer.Option(None, "--start", formats=_DATETIME_FORMATS, help="Default: now"),
    duration: int = typer.Option(60, "--duration", "-d", help="Minutes (>= 15)"),
    color: str = typer.Option("#3B82F6", "--color"),
    status: str = typer.Option("pending", "--status", "-s"),
    server: str = typer.Option("", "--server", help="Server base URL"),
):
    """Create a task."""
    fields = {
        "title": title,
        "startTime": start or datetime.now().replace(second=0, microsecond=0),
        "duration": duration,
        "color": color,
        "status": status,
    }
    task = _run_api(server, lambda api: api.create(fields))
    console.print(f"[green]Created[/green] {task.id}  {task.title}")


@app.command()
def delete(
    task_id: str = typer.Argument(..., help="Task ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    server: str = typer.Option("", "--server", help="Server base URL"),
):
    """Delete a task (asks for confirmation)."""
    if not yes and not typer.confirm(f"Delete task {task_id}?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit()
    _run_api(server, lambda api: api.delete(task_id))
    console.print(f"[green]Deleted[/green] {task_id}")


# -- Live client ---------------------------------------------------------------


@app.command()
def watch(
    server: str = typer.Option("", "--server", help="Server base URL"),
):
    """Follow the timeline live: print every change as it is broadcast."""
    try:
        asyncio.run(_watch(_server_url(server)))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching.[/dim]")


async def _watch(server_url: str) -> None:
    from tasktimeline.client.session import TimelineClient
    from tasktimeline.config.models import ClientConfig
    from tasktimeline.config.settings import get_settings
    from tasktimeline.protocol import EventType

    client_cfg = get_settings().client.model_copy(update={"server_url": server_url})
    client_cfg = ClientConfig.model_validate(client_cfg.model_dump())

    def notify(level: str, message: str) -> None:
        console.print(f"[red]{message}[/red]" if level == "error" else message)

    client = TimelineClient(client_cfg, notify=notify)

    def on_event(event) -> None:
        if event.type == EventType.CREATED:
            console.print(f"[green]+[/green] {event.task_id}  {event.data.get('title', '')}")
        elif event.type == EventType.UPDATED:
            console.print(f"[cyan]~[/cyan] {event.task_id}  {event.data.get('title', '')}")
        elif event.type == EventType.DELETED:
            console.print(f"[red]-[/red] {event.task_id}")
        elif event.type == EventType.SYNC_ACK:
            console.print(f"[dim]synced with server at {event.instant:%H:%M:%S}[/dim]")

    client.agent.add_listener(on_event)

    async with client:
        if len(client.agent):
            console.print(_task_table(client.agent.tasks()))
        console.print(f"[dim]Watching {server_url} (Ctrl+C to stop)[/dim]")
        while True:
            await asyncio.sleep(1)
            if client.supervisor.gave_up:
                console.print("[red]Connection lost; gave up reconnecting.[/red]")
                return


if __name__ == "__main__":
    app()
