"""
Provisioning domain models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from ...core.constants import (
    DEFAULT_AGENT_MODE,
    DEFAULT_GATEWAY_PORT,
    DEFAULT_MODEL_FAMILY,
    DEFAULT_PORT_FREE_TIMEOUT,
    DEFAULT_PULL_POLL_INTERVAL,
    DEFAULT_PULL_TIMEOUT,
    DEFAULT_REMOTE_SYNC_ROOT,
    DEFAULT_SANDBOX_MODE,
    DEFAULT_STARTUP_TIMEOUT,
    DEFAULT_SYNC_FOLDERS,
    DEFAULT_THRESHOLD_HIGH,
    DEFAULT_THRESHOLD_LOW,
    DEFAULT_THRESHOLD_MID,
    DEFAULT_VRAM_GB,
    DEFAULT_WORKSPACE,
)


@dataclass(frozen=True)
class ModelThresholds:
    """GPU memory boundaries (GiB) between model size tiers"""
    low: int = DEFAULT_THRESHOLD_LOW
    mid: int = DEFAULT_THRESHOLD_MID
    high: int = DEFAULT_THRESHOLD_HIGH

    def validate(self) -> None:
        if not (0 < self.low <= self.mid <= self.high):
            raise ValueError(
                f"Thresholds must satisfy 0 < low <= mid <= high, got {self.low}/{self.mid}/{self.high}"
            )


@dataclass
class ProvisionConfig:
    """Everything provisioning needs to know about the desired remote state"""
    family: str = DEFAULT_MODEL_FAMILY
    override: Optional[str] = None
    thresholds: ModelThresholds = field(default_factory=ModelThresholds)
    default_vram_gb: int = DEFAULT_VRAM_GB

    gateway_port: int = DEFAULT_GATEWAY_PORT
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    port_free_timeout: float = DEFAULT_PORT_FREE_TIMEOUT
    pull_timeout: float = DEFAULT_PULL_TIMEOUT
    pull_poll_interval: float = DEFAULT_PULL_POLL_INTERVAL

    workspace: str = DEFAULT_WORKSPACE
    sandbox_mode: str = DEFAULT_SANDBOX_MODE
    agent_mode: str = DEFAULT_AGENT_MODE

    remote_sync_root: str = DEFAULT_REMOTE_SYNC_ROOT
    sync_folders: Tuple[str, ...] = DEFAULT_SYNC_FOLDERS


class GatewayState(str, Enum):
    ABSENT = "absent"
    LISTENING = "listening"
    CRASHED = "crashed"


@dataclass
class GatewayProbe:
    """What one look at the remote gateway found"""
    pid: Optional[str]
    process_alive: bool
    port_listening: bool
    port_check: str = ""
    processes: str = ""
    log_tail: str = ""
    bad_signature: Optional[str] = None

    @property
    def state(self) -> GatewayState:
        if self.bad_signature and (self.process_alive or self.port_listening):
            return GatewayState.CRASHED
        if self.port_listening:
            return GatewayState.LISTENING
        if self.process_alive:
            return GatewayState.CRASHED
        return GatewayState.ABSENT


@dataclass(frozen=True)
class PullProgress:
    """
    Whatever could be read from one line of pull output.

    Every field is optional: tool output drops columns freely.
    """
    percent: Optional[float] = None
    completed: Optional[str] = None
    total: Optional[str] = None
    speed: Optional[str] = None
    eta: Optional[str] = None

    def key(self) -> Tuple[Any, ...]:
        return (self.percent, self.completed, self.total, self.speed, self.eta)

    def format(self) -> str:
        parts = []
        if self.percent is not None:
            parts.append(f"{self.percent:g}%")
        if self.completed and self.total:
            parts.append(f"{self.completed}/{self.total}")
        elif self.completed or self.total:
            parts.append(self.completed or self.total)
        if self.speed:
            parts.append(self.speed)
        if self.eta:
            parts.append(f"ETA {self.eta}")
        return "  ".join(parts)


@dataclass
class ProvisionReport:
    """Summary of one provisioning run"""
    bootstrapped: bool
    capacity_gb: int
    selected_model: str
    active_model: str
    pulled: bool
    gateway_started: bool
