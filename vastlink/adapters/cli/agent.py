"""
Agent CLI commands
"""
import typer

from ...core.logging import get_logger
from .common import cli_errors, load_orchestrator, stdout_console

logger = get_logger(__name__)


def register_agent_app(app: typer.Typer) -> None:
    """Register agent subcommand app"""
    agent_app = typer.Typer(
        name="agent",
        help="Start or stop the remote gateway",
        add_completion=False,
    )

    agent_app.command(name="start")(agent_start)
    agent_app.command(name="stop")(agent_stop)

    app.add_typer(agent_app, name="agent")


def agent_start(ctx: typer.Context):
    """
    Restart the gateway under its watchdog with the current model
    """
    with cli_errors("start agent"):
        orchestrator = load_orchestrator(ctx.obj.get("config"))
        with orchestrator:
            orchestrator.start_agent()
        port = orchestrator.settings.provision.gateway_port
        stdout_console.print(f"[green]✓[/green] Gateway listening on port [cyan]{port}[/cyan]")


def agent_stop(ctx: typer.Context):
    """
    Stop the watchdog, the gateway and the inference server
    """
    with cli_errors("stop agent"):
        orchestrator = load_orchestrator(ctx.obj.get("config"))
        with orchestrator:
            orchestrator.stop_agent()
        stdout_console.print("[green]✓[/green] Gateway stopped")
