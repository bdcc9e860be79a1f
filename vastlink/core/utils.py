"""
Core utility functions
"""
import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import paramiko

from .constants import SSH_CONFIG_PATH
from .exceptions import ConfigError


# ============================================================
# SSH Config Management
# ============================================================

def load_ssh_config(hostname: str) -> Dict[str, Any]:
    """
    Load configuration for specified Host from ~/.ssh/config.

    Args:
        hostname: Host name in SSH configuration

    Returns:
        Dictionary containing host, user, port, key

    Raises:
        ConfigError: If ~/.ssh/config doesn't exist
    """
    config_path = Path(SSH_CONFIG_PATH).expanduser()
    if not config_path.exists():
        raise ConfigError(f"{SSH_CONFIG_PATH} does not exist")

    ssh_config = paramiko.SSHConfig.from_path(str(config_path))
    entry = ssh_config.lookup(hostname)

    params: Dict[str, Any] = {"host": entry.get("hostname", hostname)}
    if entry.get("user"):
        params["user"] = entry["user"]
    if entry.get("port"):
        params["port"] = int(entry["port"])
    if entry.get("identityfile"):
        params["key"] = entry["identityfile"][0]
    return params


# ============================================================
# Local File Helpers
# ============================================================

def resolve_local_path(path: str) -> Path:
    """Resolve local path, expand ~ and %USERPROFILE%"""
    if "%USERPROFILE%" in path:
        path = path.replace("%USERPROFILE%", str(Path.home()))
    return Path(os.path.expandvars(path)).expanduser()


def file_sha256(path: Path, block_size: int = 1 << 20) -> str:
    """SHA-256 of a local file, streamed"""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(block_size), b""):
            digest.update(block)
    return digest.hexdigest()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def tail_text(text: Optional[str], lines: int = 20) -> str:
    """Last ``lines`` lines of ``text``"""
    if not text:
        return ""
    return "\n".join(text.rstrip("\n").splitlines()[-lines:])
