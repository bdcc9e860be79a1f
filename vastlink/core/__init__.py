"""
Core infrastructure layer
"""
from .client import RemoteClient, ClientConfig
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import ConnectionFactory, CommandExecutor
from .shell import RemotePath, Raw, quote, render
from .utils import load_ssh_config, resolve_local_path, file_sha256

__all__ = [
    "RemoteClient",
    "ClientConfig",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "ConnectionFactory",
    "CommandExecutor",
    "RemotePath",
    "Raw",
    "quote",
    "render",
    "load_ssh_config",
    "resolve_local_path",
    "file_sha256",
]
