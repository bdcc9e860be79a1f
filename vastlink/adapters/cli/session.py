"""
Connect, status and logs CLI commands
"""
import typer
from rich.markup import escape
from rich.table import Table

from ...core.logging import get_logger
from .common import cli_errors, load_orchestrator, stdout_console

logger = get_logger(__name__)


def register_session_commands(app: typer.Typer) -> None:
    """Register session commands directly on the main app"""
    app.command(name="connect")(connect_run)
    app.command(name="status")(status_run)
    app.command(name="logs")(logs_run)


def _level_style(line: str) -> str:
    lowered = line.lower()
    if "error" in lowered:
        return "red"
    if "warn" in lowered:
        return "yellow"
    if "info" in lowered:
        return "cyan"
    if "debug" in lowered:
        return "dim"
    return ""


def connect_run(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Re-run the install script even if already installed"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Stream remote install output"),
):
    """
    Connect to the GPU host and provision it until the gateway is listening

    Examples:
        vastlink connect
        vastlink connect --force --verbose
    """
    with cli_errors("connect"):
        orchestrator = load_orchestrator(ctx.obj.get("config"))
        with orchestrator:
            stdout_console.print(f"Connecting to [cyan]{escape(orchestrator.settings.target.describe())}[/cyan]...")
            result = orchestrator.connect(force=force, verbose=verbose)
            report = orchestrator.last_report

        stdout_console.print(f"[green]✓[/green] Connected to [cyan]{escape(result.host)}[/cyan] ({result.address})")
        if report is not None:
            if report.bootstrapped:
                stdout_console.print("  Bootstrap: [green]installed[/green]")
            stdout_console.print(f"  GPU memory: [yellow]{report.capacity_gb}GB[/yellow]")
            stdout_console.print(f"  Model: [cyan]{escape(report.active_model)}[/cyan]")
            if report.active_model != report.selected_model:
                stdout_console.print(f"  [yellow]Fallback used, selected was {escape(report.selected_model)}[/yellow]")
            gateway_note = "started" if report.gateway_started else "already running"
            stdout_console.print(
                f"  Gateway: [green]{gateway_note}[/green] on port {orchestrator.settings.provision.gateway_port}"
            )


def status_run(
    ctx: typer.Context,
    probe: bool = typer.Option(False, "--probe", "-p", help="Open a connection to query the gateway"),
):
    """
    Show connection, sync and gateway status
    """
    with cli_errors("get status"):
        orchestrator = load_orchestrator(ctx.obj.get("config"))
        with orchestrator:
            snapshot = orchestrator.status(probe=probe)

        connection = snapshot["connection"]
        sync = snapshot["sync"]
        gateway = snapshot["gateway"]

        table = Table(title="vastlink status", show_header=True, header_style="bold cyan")
        table.add_column("Item", style="cyan")
        table.add_column("Value")

        connected = "[green]connected[/green]" if connection["connected"] else "[yellow]disconnected[/yellow]"
        table.add_row("Host", escape(connection["host"] or "(not configured)"))
        table.add_row("Connection", connected)
        table.add_row("Last sync", escape(sync["last_sync"] or "never"))
        table.add_row("Sync root", escape(sync["root"]))
        for name, count in sync["folders"].items():
            table.add_row(f"  {escape(name)}", f"{count} files")
        if gateway["state"] is None:
            table.add_row("Gateway", "[dim]unknown (use --probe)[/dim]")
        else:
            running = "[green]running[/green]" if gateway["running"] else f"[red]{gateway['state']}[/red]"
            table.add_row("Gateway", running)
            table.add_row("Model", escape(gateway["model"] or "none"))
            capacity = gateway["capacity_gb"]
            table.add_row("GPU memory", f"{capacity}GB" if capacity is not None else "unknown")
        table.add_row("Agent mode", escape(gateway["mode"]))

        stdout_console.print(table)


def logs_run(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines"),
    source: str = typer.Option("gateway", "--source", "-s", help="Log source: gateway or ollama"),
):
    """
    Show the tail of the remote gateway or inference server log
    """
    with cli_errors("fetch logs"):
        orchestrator = load_orchestrator(ctx.obj.get("config"))
        with orchestrator:
            text = orchestrator.logs(lines=lines, source=source)

        for line in text.splitlines():
            style = _level_style(line)
            stdout_console.print(escape(line), style=style or None, highlight=False)
