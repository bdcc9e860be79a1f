"""
Session domain module
"""
from .models import SessionTarget, ConnectOptions, ConnectResult, RemoteSession, CommandResult
from .manager import SessionManager, is_retryable_connect_error, resolve_host_addresses
from .executor import RemoteExecutor, is_not_connected

__all__ = [
    "SessionTarget",
    "ConnectOptions",
    "ConnectResult",
    "RemoteSession",
    "CommandResult",
    "SessionManager",
    "is_retryable_connect_error",
    "resolve_host_addresses",
    "RemoteExecutor",
    "is_not_connected",
]
