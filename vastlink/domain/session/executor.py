"""
Remote command execution with a single reconnect-and-retry
"""
from typing import Optional

from ...core.exceptions import SessionNotConnected
from ...core.interfaces import CommandExecutor
from ...core.logging import get_logger, get_stderr_console, get_stdout_console
from .manager import SessionManager
from .models import CommandResult, RemoteSession

logger = get_logger(__name__)

NOT_CONNECTED_SIGNATURES = ("not connected", "session not active")


def is_not_connected(exc: BaseException) -> bool:
    if isinstance(exc, SessionNotConnected):
        return True
    message = str(exc).lower()
    return any(s in message for s in NOT_CONNECTED_SIGNATURES)


class RemoteExecutor(CommandExecutor):
    """Runs commands through the session manager's live session"""

    def __init__(self, manager: SessionManager):
        self.manager = manager

    def run(
        self,
        command: str,
        verbose: bool = False,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        session = self.manager.ensure_session()
        try:
            return self._run_once(session, command, verbose, timeout)
        except Exception as e:
            if not is_not_connected(e):
                raise
            logger.warning("Session dropped (%s); reconnecting and retrying once", e)

        session = self.manager.reconnect()
        return self._run_once(session, command, verbose, timeout)

    def _run_once(
        self,
        session: RemoteSession,
        command: str,
        verbose: bool,
        timeout: Optional[float],
    ) -> CommandResult:
        logger.debug("$ %s", command if len(command) < 300 else command[:300] + " ...")
        if verbose:
            out_console = get_stdout_console()
            err_console = get_stderr_console()
            out, err, code = session.client.exec_with_code_streaming(
                command,
                stdout_callback=lambda data: out_console.out(data, end="", highlight=False),
                stderr_callback=lambda data: err_console.out(data, end="", highlight=False),
                timeout=timeout,
            )
        else:
            out, err, code = session.client.exec_with_code(command, timeout=timeout)
        session.commands_executed += 1
        return CommandResult(command=command, stdout=out, stderr=err, exit_status=code)
