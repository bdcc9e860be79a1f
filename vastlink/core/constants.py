"""
Project constants definitions
"""

# ============================================================
# Connection
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_SSH_USER = "root"
DEFAULT_READY_TIMEOUT = 30
DEFAULT_KEEPALIVE_INTERVAL = 10
DEFAULT_CONNECT_RETRIES = 5
BACKOFF_STEP_SECONDS = 2
BACKOFF_CEILING_SECONDS = 10

SSH_CONFIG_PATH = "~/.ssh/config"

# ============================================================
# Remote Software
# ============================================================

GATEWAY_BINARY = "openclaw"
INFERENCE_BINARY = "ollama"
INFERENCE_URL = "http://127.0.0.1:11434"

# ============================================================
# Remote State
# ============================================================

CURRENT_MODEL_MARKER = "~/.openclaw/current_model"
GATEWAY_TOKEN_FILE = "~/.openclaw/gateway.token"
GATEWAY_PID_FILE = "~/.openclaw/gateway.pid"
WATCHDOG_PID_FILE = "~/.openclaw/gateway-watchdog.pid"
WATCHDOG_SCRIPT = "~/.openclaw/gateway-watchdog.sh"
GATEWAY_CONFIG_FILE = "~/.openclaw/openclaw.json"
GATEWAY_LOG = "/tmp/openclaw-gateway.log"
INFERENCE_LOG = "/tmp/ollama.log"
PULL_LOG = "/tmp/ollama-pull.log"

# ============================================================
# Provisioning Defaults
# ============================================================

DEFAULT_MODEL_FAMILY = "qwen3-coder"
DEFAULT_VRAM_GB = 12
DEFAULT_THRESHOLD_LOW = 10
DEFAULT_THRESHOLD_MID = 12
DEFAULT_THRESHOLD_HIGH = 16
SIBLING_FAMILIES = {"qwen3-coder": "qwen2.5-coder"}

DEFAULT_GATEWAY_PORT = 18789
DEFAULT_STARTUP_TIMEOUT = 60
DEFAULT_PORT_FREE_TIMEOUT = 15
DEFAULT_PULL_TIMEOUT = 6 * 60 * 60
DEFAULT_PULL_POLL_INTERVAL = 10
DEFAULT_WORKSPACE = "~/vastlink/agent_runtime/workspace"
DEFAULT_SANDBOX_MODE = "non-main"
DEFAULT_AGENT_MODE = "readonly"
AGENT_MODES = ("readonly", "approval", "autonomous")

# Log lines that mean the gateway is up but unusable
BAD_CONFIG_SIGNATURES = (
    "invalid config",
    "missing credential",
    "no api key",
    "unknown model:",
)

# ============================================================
# Sync
# ============================================================

DEFAULT_SYNC_ROOT = "~/Documents/vastlink"
DEFAULT_REMOTE_SYNC_ROOT = "~/vastlink/sync"
DEFAULT_SYNC_FOLDERS = ("public", "private", "artifacts")
DEFAULT_BACKUP_DIR = ".sync_backups"
SYNC_STATE_DIR = "state"
SYNC_STATE_FILE = "sync_state.json"
DEFAULT_CONFLICT_POLICY = "newest"
CONFLICT_POLICIES = ("newest", "local-wins", "remote-wins", "keep-both")
MTIME_TOLERANCE_SECONDS = 1.0
CONFLICT_SUFFIX = ".sync-conflict-remote"
TRANSFER_CHUNK_BYTES = 64 * 1024

# ============================================================
# Configuration
# ============================================================

ENV_PREFIX = "VASTLINK_"
DEFAULT_CONFIG_PATH = "~/.vastlink/config.toml"
