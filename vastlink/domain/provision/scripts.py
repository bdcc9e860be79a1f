"""
Remote shell scripts used by provisioning
"""
from typing import Iterable

from ...core.constants import (
    GATEWAY_BINARY,
    GATEWAY_CONFIG_FILE,
    INFERENCE_BINARY,
    INFERENCE_LOG,
)
from ...core.shell import RemotePath, quote

WATCHDOG_RESTART_DELAY = 3


def bootstrap_script(sync_dirs: Iterable[RemotePath], workspace: RemotePath) -> str:
    """One-shot installer for the inference server and the gateway"""
    mkdirs = "\n".join(f"mkdir -p {quote(d)}" for d in sync_dirs)
    return f"""#!/bin/bash
set -e

echo "=== vastlink bootstrap ==="

echo "[1/6] Updating packages..."
export DEBIAN_FRONTEND=noninteractive
apt-get update -qq

echo "[2/6] Installing dependencies..."
apt-get install -y -qq git curl python3 python3-pip tmux iproute2 procps

echo "[3/6] Checking Node.js..."
NODE_VERSION=$(node -v 2>/dev/null | cut -d'v' -f2 | cut -d'.' -f1 || echo "0")
if [ -z "$NODE_VERSION" ] || [ "$NODE_VERSION" -lt "22" ]; then
  echo "    Upgrading Node.js to v22..."
  curl -fsSL https://deb.nodesource.com/setup_22.x | bash -
  apt-get install -y -qq nodejs
fi
echo "    Node.js $(node -v)"

echo "[4/6] Installing {INFERENCE_BINARY}..."
if ! command -v {INFERENCE_BINARY} > /dev/null 2>&1; then
  curl -fsSL https://ollama.com/install.sh | sh
fi
if ! pgrep -f '[o]llama serve' > /dev/null 2>&1; then
  nohup {INFERENCE_BINARY} serve > {quote(INFERENCE_LOG)} 2>&1 < /dev/null &
  sleep 3
fi

echo "[5/6] Installing {GATEWAY_BINARY}..."
if ! command -v {GATEWAY_BINARY} > /dev/null 2>&1; then
  npm install -g {GATEWAY_BINARY}@latest
fi

echo "[6/6] Creating workspace..."
mkdir -p {quote(workspace.join("skills"))}
mkdir -p {quote(RemotePath(GATEWAY_CONFIG_FILE).parent())}
{mkdirs}

echo "=== bootstrap complete ==="
"""


def watchdog_script(
    port: int,
    log: RemotePath,
    pid_file: RemotePath,
    token_file: RemotePath,
    delay: int = WATCHDOG_RESTART_DELAY,
) -> str:
    """Loop that relaunches the gateway every time it exits"""
    return f"""#!/bin/bash
# gateway watchdog: relaunch the gateway whenever it exits
export PATH="$PATH:/usr/local/bin:/usr/bin"
PORT={quote(port)}
LOG={quote(log)}
PID_FILE={quote(pid_file)}
TOKEN_FILE={quote(token_file)}

while true; do
  if [ -f "$TOKEN_FILE" ]; then
    export OPENCLAW_GATEWAY_TOKEN="$(cat "$TOKEN_FILE")"
  fi
  {GATEWAY_BINARY} gateway run --bind loopback --port "$PORT" --force >> "$LOG" 2>&1 &
  echo $! > "$PID_FILE"
  wait $!
  status=$?
  echo "[watchdog] $(date -u +%Y-%m-%dT%H:%M:%SZ) gateway exited with status $status, restarting in {delay}s" >> "$LOG"
  sleep {delay}
done
"""
