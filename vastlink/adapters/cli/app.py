"""
Main CLI application
"""
import typer
from pathlib import Path
from typing import Optional

from ...core.logging import setup_logging, get_logger
from .agent import register_agent_app
from .session import register_session_commands
from .sync import register_sync_command

logger = get_logger(__name__)

# Create main app
app = typer.Typer(
    name="vastlink",
    add_completion=False,
    help="Provision a GPU host for the agent gateway and keep folders in sync with it",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

register_session_commands(app)
register_sync_command(app)
register_agent_app(app)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (TOML), default ~/.vastlink/config.toml",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
):
    """
    vastlink - GPU host orchestration

    Use subcommands to perform different operations:
    - connect: provision the host and start the gateway
    - sync: synchronize local and remote folders
    - status / logs: inspect the host
    - agent start|stop: control the gateway
    """
    # Setup logging
    setup_logging(level=log_level, log_file=log_file)
    ctx.obj = {"config": config}


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
