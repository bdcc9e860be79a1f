"""
Composition root: one configured host, all services wired together
"""
import time
from typing import Any, Callable, Dict, Optional

from .adapters.config.parser import Settings
from .core.interfaces import ConnectionFactory
from .core.logging import get_logger
from .domain.provision.gateway import GatewayController
from .domain.provision.models import ProvisionReport
from .domain.provision.service import ProgressCallback, ProvisioningService
from .domain.session.executor import RemoteExecutor
from .domain.session.manager import SessionManager
from .domain.session.models import ConnectOptions, ConnectResult
from .domain.status import StatusService
from .domain.sync.models import SyncReport
from .domain.sync.service import SyncService

logger = get_logger(__name__)


class Orchestrator:
    """
    Wires session manager, executor, provisioning, sync and status.

    ``connect`` provisions through the session manager's hook, so every
    path that opens a session (including the first command run without an
    explicit connect) leaves the gateway listening.
    """

    def __init__(
        self,
        settings: Settings,
        connection_factory: ConnectionFactory,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.settings = settings
        self.manager = SessionManager(settings.target, connection_factory, sleep=sleep)
        self.executor = RemoteExecutor(self.manager)
        self.gateway = GatewayController(self.executor, settings.provision, sleep=sleep, clock=clock)
        self.provisioning = ProvisioningService(
            self.executor,
            settings.provision,
            gateway=self.gateway,
            sleep=sleep,
            clock=clock,
            on_progress=on_progress,
        )
        self.sync = SyncService(self.executor, settings.sync)
        self.status_service = StatusService(self.manager, self.sync, self.gateway)
        self.last_report: Optional[ProvisionReport] = None

        self.manager.set_provision_hook(self._provision)

    def _provision(self, options: ConnectOptions) -> None:
        self.last_report = self.provisioning.run(force=options.force, verbose=options.verbose)

    # --------------------
    # Operations
    # --------------------
    def connect(self, force: bool = False, verbose: bool = False) -> ConnectResult:
        return self.manager.connect(ConnectOptions(force=force, verbose=verbose))

    def disconnect(self) -> None:
        self.manager.disconnect()

    def run_sync(self, dry_run: bool = False) -> SyncReport:
        return self.sync.run_sync(dry_run=dry_run)

    def status(self, probe: bool = False) -> Dict[str, Any]:
        return self.status_service.snapshot(probe=probe)

    def logs(self, lines: int = 50, source: str = "gateway") -> str:
        self._open_without_provisioning()
        return self.gateway.tail_log(lines=lines, source=source)

    def start_agent(self) -> None:
        """Restart the gateway with the model recorded on the host"""
        self._open_without_provisioning()
        self.gateway.restart()

    def stop_agent(self) -> None:
        self._open_without_provisioning()
        self.gateway.stop()

    def _open_without_provisioning(self) -> None:
        # maintenance commands must not start what they inspect or stop
        if self.manager.session is None:
            self.manager.connect(ConnectOptions(provision=False))

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.disconnect()
