"""
Shared CLI plumbing: settings loading and error reporting
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.markup import escape

from ...core.constants import DEFAULT_CONFIG_PATH
from ...core.exceptions import (
    AuthenticationError,
    CommandError,
    ConfigError,
    ConnectionError,
    ProvisionError,
    SyncError,
    VastlinkError,
)
from ...core.logging import get_logger, get_stderr_console, get_stdout_console
from ...domain.provision.models import PullProgress
from ...orchestrator import Orchestrator
from ..config.loader import ConfigLoader
from ..config.parser import parse_settings
from .connection import ParamikoConnectionFactory

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()

# Most specific first
ERROR_LABELS = (
    (ConfigError, "Config Error"),
    (AuthenticationError, "Authentication Error"),
    (ConnectionError, "Connection Error"),
    (ProvisionError, "Provisioning Error"),
    (CommandError, "Command Error"),
    (SyncError, "Sync Error"),
    (VastlinkError, "Error"),
)


def resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    """Explicit path must exist; the default one is optional"""
    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")
        return path
    default = Path(DEFAULT_CONFIG_PATH).expanduser()
    return default if default.exists() else None


def print_pull_progress(model: str, progress: PullProgress) -> None:
    stdout_console.print(f"  [cyan]↓[/cyan] {escape(model)}  {escape(progress.format())}")


def load_orchestrator(config_path: Optional[str]) -> Orchestrator:
    path = resolve_config_path(config_path)
    cfg = ConfigLoader().load(toml_path=path)
    settings = parse_settings(cfg, config_file_path=path)
    return Orchestrator(settings, ParamikoConnectionFactory(), on_progress=print_pull_progress)


@contextmanager
def cli_errors(action: str) -> Iterator[None]:
    """Map the exception tree to one red line and exit status 1"""
    try:
        yield
    except typer.Exit:
        raise
    except VastlinkError as e:
        label = next(lbl for cls, lbl in ERROR_LABELS if isinstance(e, cls))
        stderr_console.print(f"[red]{label}:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        stderr_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Failed to %s", action)
        stderr_console.print(f"[red]Error:[/red] Failed to {action}: {escape(str(e))}")
        raise typer.Exit(1)
