"""
Unified exception definitions
"""
from typing import List, Optional


class VastlinkError(Exception):
    """Base exception class"""
    pass


class ConfigError(VastlinkError):
    """Configuration error"""
    pass


class ConnectionError(VastlinkError):
    """Connection error"""
    pass


class AuthenticationError(ConnectionError):
    """Credential problem: never retried"""
    pass


class SessionNotConnected(ConnectionError):
    """The session transport is gone; the command never reached the host"""

    def __init__(self, message: str = "not connected"):
        super().__init__(message)


class CommandError(VastlinkError):
    """Remote command exited with a non-zero status"""

    def __init__(self, command: str, exit_status: int, stderr: str = "", stdout: str = ""):
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip() or stdout.strip()[-500:]
        super().__init__(f"Command failed with code {exit_status}: {detail}")


class ProvisionError(VastlinkError):
    """Provisioning error"""
    pass


class BootstrapError(ProvisionError):
    """One-shot install script failed"""
    pass


class ModelPullError(ProvisionError):
    """Every model candidate was tried and none became available"""

    def __init__(self, primary: str, attempted: List[str], last_error: Optional[str] = None):
        self.primary = primary
        self.attempted = list(attempted)
        self.last_error = last_error
        super().__init__(
            f"Model pull failed for all candidates ({', '.join(self.attempted)}). "
            f"Primary was {primary!r}. Set VASTLINK_MODEL_OVERRIDE to a model name "
            f"that works with 'ollama pull <model>'. "
            f"Last error: {last_error or 'unknown error'}"
        )


class GatewayStartError(ProvisionError):
    """Gateway could not bind its port within the startup timeout"""

    def __init__(
        self,
        message: str,
        port: int,
        pid: Optional[str] = None,
        port_check: str = "",
        log_tail: str = "",
        processes: str = "",
    ):
        self.port = port
        self.pid = pid
        self.port_check = port_check
        self.log_tail = log_tail
        self.processes = processes
        super().__init__(
            f"{message}\n"
            f"  port: {port}\n"
            f"  pid: {pid or 'none'}\n"
            f"--- port check ---\n{port_check.strip() or '(nothing listening)'}\n"
            f"--- processes ---\n{processes.strip() or '(no matching processes)'}\n"
            f"--- gateway log tail ---\n{log_tail.strip() or '(empty log)'}"
        )


class SyncError(VastlinkError):
    """Sync error"""
    pass


class SyncIOError(SyncError):
    """Per-file read, write or transfer failure"""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")
