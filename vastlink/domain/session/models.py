"""
Session domain models
"""
import time
from dataclasses import dataclass, field
from typing import Literal, Optional

from ...core.client import RemoteClient
from ...core.constants import (
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_READY_TIMEOUT,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
)


@dataclass
class SessionTarget:
    """Where and how to connect"""
    host: str
    port: int = DEFAULT_SSH_PORT
    user: str = DEFAULT_SSH_USER
    key_path: Optional[str] = None
    password: Optional[str] = None
    ready_timeout: float = DEFAULT_READY_TIMEOUT
    keepalive_interval: int = DEFAULT_KEEPALIVE_INTERVAL
    connect_retries: int = DEFAULT_CONNECT_RETRIES

    @property
    def auth_method(self) -> Literal["key", "password"]:
        return "key" if self.key_path else "password"

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"


@dataclass
class ConnectOptions:
    """Options for one connect call"""
    force: bool = False
    verbose: bool = False
    provision: bool = True


@dataclass
class ConnectResult:
    connected: bool
    host: str
    address: str


@dataclass
class RemoteSession:
    """The single live connection to the managed host"""
    target: SessionTarget
    client: RemoteClient
    address: str
    opened_at: float = field(default_factory=time.time)
    commands_executed: int = 0

    @property
    def alive(self) -> bool:
        return self.client.is_active()

    def close(self) -> None:
        self.client.close()


@dataclass
class CommandResult:
    """Outcome of one remote command"""
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    @property
    def classification(self) -> Optional[str]:
        return None if self.ok else "nonzero-exit"

    def __str__(self) -> str:
        if self.ok:
            return self.stdout
        return f"Error (exit code {self.exit_status}): {self.stderr}"
