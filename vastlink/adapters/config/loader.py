"""
Configuration loader with priority: env > CLI > TOML > defaults
"""
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from ...core.constants import ENV_PREFIX
from ...core.exceptions import ConfigError

# Environment variable (without prefix) -> dotted config key
ENV_MAPPINGS = {
    "HOST": "host.host",
    "PORT": "host.port",
    "USER": "host.user",
    "SSH_KEY": "host.key",
    "PASSWORD": "host.password",
    "READY_TIMEOUT": "host.ready_timeout",
    "KEEPALIVE_INTERVAL": "host.keepalive_interval",
    "CONNECT_RETRIES": "host.connect_retries",
    "MODEL_FAMILY": "model.family",
    "MODEL_OVERRIDE": "model.override",
    "VRAM_THRESHOLD_LOW": "model.threshold_low",
    "VRAM_THRESHOLD_MID": "model.threshold_mid",
    "VRAM_THRESHOLD_HIGH": "model.threshold_high",
    "PULL_TIMEOUT": "model.pull_timeout",
    "PULL_POLL_INTERVAL": "model.pull_poll_interval",
    "GATEWAY_PORT": "gateway.port",
    "STARTUP_TIMEOUT": "gateway.startup_timeout",
    "WORKSPACE": "gateway.workspace",
    "SANDBOX_MODE": "gateway.sandbox_mode",
    "AGENT_MODE": "gateway.agent_mode",
    "SYNC_ROOT": "sync.root",
    "SYNC_REMOTE_ROOT": "sync.remote_root",
    "SYNC_BACKUP_DIR": "sync.backup_dir",
    "SYNC_CONFLICT_POLICY": "sync.conflict_policy",
    "SYNC_HASH_CHECK": "sync.hash_check",
}

# Free-form values that must never be coerced to numbers or booleans
STRING_KEYS = {"host.host", "host.user", "host.key", "host.password", "model.override", "model.family"}


class ConfigLoader:
    """Configuration loader with priority support"""

    def __init__(self, env_prefix: str = ENV_PREFIX):
        self._env_prefix = env_prefix

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            return tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to parse TOML configuration {path}: {e}") from e

    def load_env(self, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        environ = os.environ if environ is None else environ
        config: Dict[str, Any] = {}

        for suffix, config_key in ENV_MAPPINGS.items():
            value = environ.get(self._env_prefix + suffix)
            if not value:
                continue
            if config_key not in STRING_KEYS:
                value = self._convert_value(value)
            section, key = config_key.split(".", 1)
            config.setdefault(section, {})[key] = value

        return config

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type"""
        # Try boolean
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        # Try number
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass

        # Return as string
        return value

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones.
        """
        result: Dict[str, Any] = {}

        for config in configs:
            result = self._deep_merge(result, config)

        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
        environ: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: env > CLI > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables
            environ: Environment mapping to read instead of ``os.environ``

        Returns:
            Merged configuration dictionary
        """
        configs = []

        # 1. Load TOML if provided
        if toml_path:
            configs.append(self.load_toml(toml_path))

        # 2. Apply CLI overrides
        if cli_overrides:
            configs.append(cli_overrides)

        # 3. Load environment variables (highest priority)
        if use_env:
            env_config = self.load_env(environ)
            if env_config:
                configs.append(env_config)

        # Merge all configs
        return self.merge_configs(*configs)
