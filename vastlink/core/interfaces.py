"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .client import RemoteClient
    from ..domain.session.models import CommandResult, SessionTarget


class ConnectionFactory(ABC):
    """SSH connection factory interface"""

    @abstractmethod
    def create(self, target: "SessionTarget", address: str) -> "RemoteClient":
        """Create a client for ``target`` and connect it to ``address``"""
        pass


class CommandExecutor(ABC):
    """Runs shell commands on the managed host"""

    @abstractmethod
    def run(
        self,
        command: str,
        verbose: bool = False,
        timeout: Optional[float] = None,
    ) -> "CommandResult":
        """Run a command and return its full result, whatever the exit status"""
        pass

    def execute(
        self,
        command: str,
        quiet: bool = False,
        verbose: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Run a command and return its stdout.

        A non-zero exit raises ``CommandError`` unless ``quiet`` is set, in
        which case whatever stdout was produced is still returned.
        """
        from .exceptions import CommandError

        result = self.run(command, verbose=verbose, timeout=timeout)
        if result.exit_status != 0 and not quiet:
            raise CommandError(command, result.exit_status, result.stderr, result.stdout)
        return result.stdout
