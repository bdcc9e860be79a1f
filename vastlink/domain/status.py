"""
Read-only status snapshot
"""
from typing import Any, Dict, Optional

from ..core.exceptions import VastlinkError
from ..core.logging import get_logger
from .provision.gateway import GatewayController
from .session.manager import SessionManager
from .sync.service import SyncService

logger = get_logger(__name__)


class StatusService:
    """
    Collects connection, sync and gateway state.

    Gateway details need a live session; without one they are reported
    as unknown rather than opening a connection.
    """

    def __init__(self, manager: SessionManager, sync: SyncService, gateway: GatewayController):
        self.manager = manager
        self.sync = sync
        self.gateway = gateway

    def snapshot(self, probe: bool = False) -> Dict[str, Any]:
        connection = self.manager.connection_status(probe=probe)
        return {
            "connection": {"connected": connection["connected"], "host": connection["host"]},
            "sync": self.sync.sync_status(),
            "gateway": self._gateway_status(connection["connected"]),
        }

    def _gateway_status(self, connected: bool) -> Dict[str, Any]:
        unknown: Dict[str, Optional[Any]] = {
            "running": False,
            "state": None,
            "model": None,
            "capacity_gb": None,
            "mode": self.gateway.config.agent_mode,
        }
        if not connected:
            return unknown
        try:
            return self.gateway.status()
        except VastlinkError as e:
            logger.warning("Gateway status unavailable: %s", e)
            return {**unknown, "error": str(e)}
