"""
Sync checkpoint storage implementation
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ...core.exceptions import SyncError
from ...core.logging import get_logger

logger = get_logger(__name__)


class SyncStateStore:
    """
    File-based sync checkpoint storage.

    One JSON document per sync root, ``{"lastSync": "<ISO-8601>"}``.
    Unknown keys already in the file are kept on save.
    """

    def __init__(self, state_file: Path):
        """
        Initialize sync state store.

        Args:
            state_file: Path of the JSON checkpoint file
        """
        self.state_file = Path(state_file).expanduser()

    def load(self) -> Dict[str, Any]:
        """
        Load the checkpoint document.

        Returns:
            Checkpoint dictionary, with ``lastSync`` None if never synced
        """
        if not self.state_file.exists():
            return {"lastSync": None}

        try:
            state = json.loads(self.state_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable sync state %s: %s", self.state_file, e)
            return {"lastSync": None}

        if not isinstance(state, dict):
            return {"lastSync": None}
        state.setdefault("lastSync", None)
        return state

    def save(self, state: Dict[str, Any]) -> None:
        """Write the checkpoint document atomically"""
        tmp = self.state_file.with_name(self.state_file.name + ".tmp")
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(state, indent=2), encoding="utf-8")
            os.replace(tmp, self.state_file)
        except OSError as e:
            raise SyncError(f"Failed to write sync state {self.state_file}: {e}") from e

    def last_sync(self) -> Optional[str]:
        return self.load().get("lastSync")

    def record_sync(self, timestamp: str) -> None:
        state = self.load()
        state["lastSync"] = timestamp
        self.save(state)
