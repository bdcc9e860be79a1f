"""
Settings parser: merged configuration dictionary -> typed settings
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from ...core.constants import (
    AGENT_MODES,
    CONFLICT_POLICIES,
    DEFAULT_AGENT_MODE,
    DEFAULT_BACKUP_DIR,
    DEFAULT_CONFLICT_POLICY,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_GATEWAY_PORT,
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_MODEL_FAMILY,
    DEFAULT_PULL_POLL_INTERVAL,
    DEFAULT_PULL_TIMEOUT,
    DEFAULT_READY_TIMEOUT,
    DEFAULT_REMOTE_SYNC_ROOT,
    DEFAULT_SANDBOX_MODE,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_STARTUP_TIMEOUT,
    DEFAULT_SYNC_FOLDERS,
    DEFAULT_SYNC_ROOT,
    DEFAULT_THRESHOLD_HIGH,
    DEFAULT_THRESHOLD_LOW,
    DEFAULT_THRESHOLD_MID,
    DEFAULT_WORKSPACE,
    MTIME_TOLERANCE_SECONDS,
)
from ...core.exceptions import ConfigError
from ...core.utils import load_ssh_config, resolve_local_path
from ...domain.provision.models import ModelThresholds, ProvisionConfig
from ...domain.session.models import SessionTarget
from ...domain.sync.models import SyncConfig


@dataclass
class Settings:
    """Everything one run needs, validated"""
    target: SessionTarget
    provision: ProvisionConfig
    sync: SyncConfig


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = cfg.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _as_int(section: str, key: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{section}.{key} must be >= {minimum}, got {number}")
    return number


def _as_float(section: str, key: str, value: Any, minimum: float = 0.0) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{section}.{key} must be >= {minimum}, got {number}")
    return number


def _as_bool(section: str, key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "yes", "1", "false", "no", "0"):
        return value.lower() in ("true", "yes", "1")
    raise ConfigError(f"{section}.{key} must be true or false, got {value!r}")


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_target(cfg: Dict[str, Any]) -> SessionTarget:
    """
    Parse the [host] section.

    ``ssh_config = "name"`` fills missing fields from ~/.ssh/config.
    """
    host = _section(cfg, "host")
    params: Dict[str, Any] = {}
    if host.get("ssh_config"):
        params.update(load_ssh_config(str(host["ssh_config"])))
    params.update({k: v for k, v in host.items() if v is not None and v != ""})

    key = _optional_str(params.get("key"))
    return SessionTarget(
        host=_optional_str(params.get("host")) or "",
        port=_as_int("host", "port", params.get("port", DEFAULT_SSH_PORT), minimum=1),
        user=_optional_str(params.get("user")) or DEFAULT_SSH_USER,
        key_path=str(resolve_local_path(key)) if key else None,
        password=_optional_str(params.get("password")),
        ready_timeout=_as_float("host", "ready_timeout", params.get("ready_timeout", DEFAULT_READY_TIMEOUT), minimum=1),
        keepalive_interval=_as_int(
            "host", "keepalive_interval", params.get("keepalive_interval", DEFAULT_KEEPALIVE_INTERVAL)
        ),
        connect_retries=_as_int(
            "host", "connect_retries", params.get("connect_retries", DEFAULT_CONNECT_RETRIES), minimum=1
        ),
    )


def parse_provision(cfg: Dict[str, Any]) -> ProvisionConfig:
    model = _section(cfg, "model")
    gateway = _section(cfg, "gateway")
    sync = _section(cfg, "sync")

    thresholds = ModelThresholds(
        low=_as_int("model", "threshold_low", model.get("threshold_low", DEFAULT_THRESHOLD_LOW)),
        mid=_as_int("model", "threshold_mid", model.get("threshold_mid", DEFAULT_THRESHOLD_MID)),
        high=_as_int("model", "threshold_high", model.get("threshold_high", DEFAULT_THRESHOLD_HIGH)),
    )
    try:
        thresholds.validate()
    except ValueError as e:
        raise ConfigError(str(e)) from e

    agent_mode = str(gateway.get("agent_mode", DEFAULT_AGENT_MODE))
    if agent_mode not in AGENT_MODES:
        raise ConfigError(f"gateway.agent_mode must be one of: {', '.join(AGENT_MODES)}")

    return ProvisionConfig(
        family=_optional_str(model.get("family")) or DEFAULT_MODEL_FAMILY,
        override=_optional_str(model.get("override")),
        thresholds=thresholds,
        gateway_port=_as_int("gateway", "port", gateway.get("port", DEFAULT_GATEWAY_PORT), minimum=1),
        startup_timeout=_as_float(
            "gateway", "startup_timeout", gateway.get("startup_timeout", DEFAULT_STARTUP_TIMEOUT), minimum=1
        ),
        pull_timeout=_as_float("model", "pull_timeout", model.get("pull_timeout", DEFAULT_PULL_TIMEOUT), minimum=1),
        pull_poll_interval=_as_float(
            "model", "pull_poll_interval", model.get("pull_poll_interval", DEFAULT_PULL_POLL_INTERVAL), minimum=0.1
        ),
        workspace=str(gateway.get("workspace", DEFAULT_WORKSPACE)),
        sandbox_mode=str(gateway.get("sandbox_mode", DEFAULT_SANDBOX_MODE)),
        agent_mode=agent_mode,
        remote_sync_root=str(sync.get("remote_root", DEFAULT_REMOTE_SYNC_ROOT)),
        sync_folders=tuple(sync.get("folders", DEFAULT_SYNC_FOLDERS)),
    )


def parse_sync(cfg: Dict[str, Any]) -> SyncConfig:
    sync = _section(cfg, "sync")

    default_policy = str(sync.get("conflict_policy", DEFAULT_CONFLICT_POLICY))
    policies = sync.get("policies", {})
    if not isinstance(policies, dict):
        raise ConfigError("[sync.policies] must be a table of folder = policy")
    for name, policy in [("conflict_policy", default_policy)] + list(policies.items()):
        if policy not in CONFLICT_POLICIES:
            raise ConfigError(
                f"sync {name}: unknown conflict policy {policy!r}, expected one of: {', '.join(CONFLICT_POLICIES)}"
            )

    folders = sync.get("folders", list(DEFAULT_SYNC_FOLDERS))
    if not isinstance(folders, (list, tuple)) or not all(isinstance(f, str) and f for f in folders):
        raise ConfigError("sync.folders must be a list of folder names")
    unknown = set(policies) - set(folders)
    if unknown:
        raise ConfigError(f"[sync.policies] names unknown folders: {', '.join(sorted(unknown))}")

    return SyncConfig.build(
        local_root=resolve_local_path(str(sync.get("root", DEFAULT_SYNC_ROOT))),
        remote_root=str(sync.get("remote_root", DEFAULT_REMOTE_SYNC_ROOT)),
        folder_names=folders,
        default_policy=default_policy,
        policies=policies,
        backup_dir=str(sync.get("backup_dir", DEFAULT_BACKUP_DIR)),
        mtime_tolerance=_as_float(
            "sync", "mtime_tolerance", sync.get("mtime_tolerance", MTIME_TOLERANCE_SECONDS)
        ),
        hash_check=_as_bool("sync", "hash_check", sync.get("hash_check", False)),
    )


def parse_settings(cfg: Dict[str, Any], config_file_path: Optional[Path] = None) -> Settings:
    """
    Build validated settings from a merged configuration dictionary.

    A relative sync root is taken relative to the configuration file.

    Raises:
        ConfigError: a value is missing its expected type or range
    """
    sync_section = _section(cfg, "sync")
    root = sync_section.get("root")
    if config_file_path and root and not str(root).startswith(("~", "%")) and not Path(str(root)).is_absolute():
        cfg = {**cfg, "sync": {**sync_section, "root": str(config_file_path.parent / str(root))}}

    return Settings(
        target=parse_target(cfg),
        provision=parse_provision(cfg),
        sync=parse_sync(cfg),
    )
