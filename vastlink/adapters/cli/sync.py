"""
Sync CLI command
"""
import typer
from rich.markup import escape
from rich.table import Table

from ...core.logging import get_logger
from .common import cli_errors, load_orchestrator, stderr_console, stdout_console

logger = get_logger(__name__)

RESOLUTION_ARROWS = {"upload": "↑", "download": "↓", "keep-both": "⇅"}


def register_sync_command(app: typer.Typer) -> None:
    """Register sync command directly on the main app"""
    app.command(name="sync")(sync_run)


def sync_run(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Report what would change without touching anything"),
):
    """
    Synchronize the local and remote folders

    Examples:
        vastlink sync
        vastlink sync --dry-run
    """
    with cli_errors("sync"):
        orchestrator = load_orchestrator(ctx.obj.get("config"))
        with orchestrator:
            report = orchestrator.run_sync(dry_run=dry_run)

        prefix = "[yellow]Dry run:[/yellow] would have" if dry_run else "[green]✓[/green]"
        stdout_console.print(f"{prefix} uploaded {report.uploaded}, downloaded {report.downloaded}")

        if report.conflicts:
            table = Table(title="Conflicts", show_header=True, header_style="bold cyan")
            table.add_column("Path", style="cyan")
            table.add_column("Resolution")
            for conflict in report.conflicts:
                arrow = RESOLUTION_ARROWS.get(conflict.resolution, "")
                table.add_row(escape(conflict.path), f"{arrow} {conflict.resolution}")
            stdout_console.print(table)

        if report.errors:
            table = Table(title="Errors", show_header=True, header_style="bold red")
            table.add_column("Path", style="cyan")
            table.add_column("Message")
            for error in report.errors:
                table.add_row(escape(error.path), escape(error.message))
            stderr_console.print(table)
            raise typer.Exit(1)
