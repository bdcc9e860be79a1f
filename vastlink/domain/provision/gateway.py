"""
Gateway supervision: probe, configure, start under a watchdog, stop
"""
import copy
import json
import secrets
import time
from typing import Any, Callable, Dict, Optional

from ...core.constants import (
    GATEWAY_CONFIG_FILE,
    GATEWAY_LOG,
    GATEWAY_PID_FILE,
    GATEWAY_TOKEN_FILE,
    INFERENCE_BINARY,
    INFERENCE_LOG,
    INFERENCE_URL,
    WATCHDOG_PID_FILE,
    WATCHDOG_SCRIPT,
)
from ...core.exceptions import CommandError, GatewayStartError, ProvisionError
from ...core.interfaces import CommandExecutor
from ...core.logging import get_logger
from ...core.shell import RemotePath, background_command, render, write_file_command
from ...core.utils import tail_text
from .models import GatewayProbe, GatewayState, ProvisionConfig
from .probes import read_current_model, read_gpu_memory_gb
from .progress import find_bad_config_signature
from .scripts import watchdog_script

logger = get_logger(__name__)

# Bracketed first letters keep pgrep/pkill from matching the shell running them
GATEWAY_PGREP = "'[o]penclaw gateway'"
WATCHDOG_PGREP = "'[g]ateway-watchdog.sh'"
INFERENCE_PGREP = "'[o]llama serve'"

LOG_SOURCES = {
    "gateway": GATEWAY_LOG,
    "ollama": INFERENCE_LOG,
}

INFERENCE_READY_TIMEOUT = 30
PORT_POLL_INTERVAL = 2


def merge_owned(current: Dict[str, Any], owned: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``owned`` into ``current`` without touching any other key.

    A non-object value sitting where an owned object belongs is replaced.
    """
    result = dict(current)
    for key, value in owned.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_owned(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class GatewayController:
    """Keeps the remote gateway configured and listening"""

    def __init__(
        self,
        executor: CommandExecutor,
        config: ProvisionConfig,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.executor = executor
        self.config = config
        self._sleep = sleep
        self._clock = clock

        self.config_file = RemotePath(GATEWAY_CONFIG_FILE)
        self.token_file = RemotePath(GATEWAY_TOKEN_FILE)
        self.pid_file = RemotePath(GATEWAY_PID_FILE)
        self.watchdog_pid_file = RemotePath(WATCHDOG_PID_FILE)
        self.watchdog_file = RemotePath(WATCHDOG_SCRIPT)
        self.log_file = RemotePath(GATEWAY_LOG)

    @property
    def port(self) -> int:
        return self.config.gateway_port

    # --------------------
    # Probing
    # --------------------
    def port_check(self) -> str:
        """Listening sockets on the gateway port, empty if none"""
        return self.executor.execute(
            render(
                "(ss -ltnp 2>/dev/null || netstat -ltnp 2>/dev/null) | grep -E {pattern} || true",
                pattern=f":{self.port}\\b",
            ),
            quiet=True,
        ).strip()

    def probe(self) -> GatewayProbe:
        pid = self.executor.execute(
            render("cat {pid_file} 2>/dev/null || true", pid_file=self.pid_file), quiet=True
        ).strip()
        processes = self.executor.execute(f"pgrep -af {GATEWAY_PGREP} || true", quiet=True).strip()
        port_check = self.port_check()
        log_tail = self.executor.execute(
            render("tail -n 200 {log} 2>/dev/null || true", log=self.log_file), quiet=True
        )
        return GatewayProbe(
            pid=pid or None,
            process_alive=bool(processes),
            port_listening=bool(port_check),
            port_check=port_check,
            processes=processes,
            log_tail=log_tail,
            bad_signature=find_bad_config_signature(log_tail),
        )

    # --------------------
    # Supervision
    # --------------------
    def ensure_running(self, model: str) -> bool:
        """
        Make sure the gateway is listening with a config for ``model``.

        Returns True when a (re)start was needed.
        """
        token = self.ensure_token()
        config_changed = self.reconcile_config(model, token)
        probe = self.probe()
        state = probe.state

        if state == GatewayState.LISTENING and not config_changed:
            logger.info("Gateway already running on port %s", self.port)
            return False

        if state == GatewayState.CRASHED:
            reason = probe.bad_signature or "process up but port not listening"
            logger.warning("Gateway unhealthy (%s), restarting", reason)
        elif state == GatewayState.LISTENING:
            logger.info("Gateway config changed, restarting")
        else:
            logger.info("Gateway not running, starting")

        self.start(model)
        return True

    def start(self, model: str) -> None:
        """
        Stop whatever is there and launch the gateway under the watchdog.

        Raises:
            GatewayStartError: the port never freed or never started listening
        """
        token = self.ensure_token()
        self.reconcile_config(model, token)
        self.ensure_inference_server()
        self.stop_watchdog()
        if not self.wait_port_free():
            raise self._start_failure(
                f"Port {self.port} is still held by another process after {self.config.port_free_timeout}s"
            )

        script = watchdog_script(
            port=self.port,
            log=self.log_file,
            pid_file=self.pid_file,
            token_file=self.token_file,
        )
        self.executor.execute(write_file_command(self.watchdog_file, script, mode="700"))
        self.executor.execute(render(": > {log}", log=self.log_file))
        self.executor.execute(
            render(
                "nohup setsid bash {script} > /dev/null 2>&1 < /dev/null & echo $! > {pid_file}",
                script=self.watchdog_file,
                pid_file=self.watchdog_pid_file,
            )
        )
        logger.info("Gateway watchdog launched, waiting for port %s", self.port)

        deadline = self._clock() + self.config.startup_timeout
        while True:
            if self.port_check():
                logger.info("Gateway listening on port %s", self.port)
                return
            if self._clock() >= deadline:
                break
            self._sleep(PORT_POLL_INTERVAL)

        raise self._start_failure(
            f"Gateway did not listen on port {self.port} within {self.config.startup_timeout}s"
        )

    def _start_failure(self, message: str) -> GatewayStartError:
        probe = self.probe()
        return GatewayStartError(
            message,
            port=self.port,
            pid=probe.pid,
            port_check=probe.port_check,
            log_tail=tail_text(probe.log_tail, 50),
            processes=probe.processes,
        )

    def restart(self, model: Optional[str] = None) -> None:
        """Start again with ``model``, or the model recorded on the host"""
        model = model or read_current_model(self.executor)
        if not model:
            raise ProvisionError("No model recorded on the host; run 'vastlink connect' first")
        self.start(model)

    def stop(self) -> None:
        """Stop the watchdog, the gateway and the inference server"""
        self.stop_watchdog()
        self.executor.execute(f"pkill -f {INFERENCE_PGREP} 2>/dev/null; true", quiet=True)
        logger.info("Gateway and inference server stopped")

    def stop_watchdog(self) -> None:
        """Kill the watchdog first so it cannot relaunch what is killed next"""
        self.executor.execute(
            render(
                "if [ -f {wd_pid} ]; then "
                "WD=$(cat {wd_pid}); kill -TERM -- -\"$WD\" 2>/dev/null || kill \"$WD\" 2>/dev/null; "
                "rm -f {wd_pid}; fi; "
                f"pkill -f {WATCHDOG_PGREP} 2>/dev/null; "
                f"pkill -9 -f {GATEWAY_PGREP} 2>/dev/null; "
                "fuser -k {port}/tcp 2>/dev/null; "
                "rm -f {pid_file}; true",
                wd_pid=self.watchdog_pid_file,
                port=self.port,
                pid_file=self.pid_file,
            ),
            quiet=True,
        )

    def wait_port_free(self) -> bool:
        deadline = self._clock() + self.config.port_free_timeout
        while self.port_check():
            if self._clock() >= deadline:
                logger.warning("Port %s still busy after %ss", self.port, self.config.port_free_timeout)
                return False
            self._sleep(1)
        return True

    # --------------------
    # Inference server
    # --------------------
    def inference_running(self) -> bool:
        out = self.executor.execute(
            f"pgrep -f {INFERENCE_PGREP} > /dev/null 2>&1 && echo running || true", quiet=True
        )
        return "running" in out

    def ensure_inference_server(self) -> bool:
        """Start ``ollama serve`` if needed; True when it had to be started"""
        if self.inference_running():
            return False

        logger.info("Starting inference server")
        self.executor.execute(
            background_command(f"{INFERENCE_BINARY} serve", RemotePath(INFERENCE_LOG), append=True)
        )
        deadline = self._clock() + INFERENCE_READY_TIMEOUT
        while True:
            ready = self.executor.execute(
                f"{INFERENCE_BINARY} list > /dev/null 2>&1 && echo ready || true", quiet=True
            )
            if "ready" in ready:
                return True
            if self._clock() >= deadline:
                break
            self._sleep(1)

        log = self.tail_log(30, source="ollama")
        raise ProvisionError(f"Inference server did not become ready within {INFERENCE_READY_TIMEOUT}s\n{log}")

    # --------------------
    # Token and remote config
    # --------------------
    def ensure_token(self) -> str:
        """The gateway auth token: generated once, then reused"""
        existing = self.executor.execute(
            render("cat {token_file} 2>/dev/null || true", token_file=self.token_file), quiet=True
        ).strip()
        if existing:
            return existing

        token = secrets.token_hex(24)
        self.executor.execute(write_file_command(self.token_file, token + "\n", mode="600"))
        logger.info("Generated gateway auth token")
        return token

    def owned_fields(self, model: str, token: str) -> Dict[str, Any]:
        return {
            "agent": {"model": f"ollama/{model}"},
            "agents": {
                "defaults": {
                    "workspace": self._absolute_workspace(),
                    "sandbox": {"mode": self.config.sandbox_mode},
                },
            },
            "models": {"providers": {"ollama": {"baseUrl": INFERENCE_URL}}},
            "gateway": {
                "mode": "local",
                "port": self.port,
                "auth": {"mode": "token", "token": token},
            },
        }

    def reconcile_config(self, model: str, token: str) -> bool:
        """
        Merge the fields this tool owns into the remote gateway config.

        Unknown fields are preserved. An unparseable file is kept aside
        and replaced. Returns True if the file was written.
        """
        raw = self.executor.execute(
            render("cat {config} 2>/dev/null || true", config=self.config_file), quiet=True
        )
        current: Dict[str, Any] = {}
        if raw.strip():
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as e:
                parsed = None
                logger.warning("Remote gateway config is not valid JSON (%s), replacing it", e)
            if isinstance(parsed, dict):
                current = parsed
            else:
                backup = RemotePath(f"{self.config_file.path}.invalid-{int(time.time())}")
                self.executor.execute(
                    render("cp -f {config} {backup}", config=self.config_file, backup=backup)
                )
                logger.warning("Previous config saved to %s", backup)

        merged = merge_owned(current, self.owned_fields(model, token))
        if merged == current:
            return False

        self.executor.execute(
            write_file_command(self.config_file, json.dumps(merged, indent=2) + "\n", mode="600")
        )
        logger.info("Remote gateway config updated for %s", model)
        return True

    def _absolute_workspace(self) -> str:
        workspace = self.config.workspace
        if workspace.startswith("~/"):
            home = self.executor.execute('printf %s "$HOME"', quiet=True).strip()
            if home:
                return f"{home.rstrip('/')}/{workspace[2:]}"
        return workspace

    # --------------------
    # Read-only views
    # --------------------
    def status(self) -> Dict[str, Any]:
        probe = self.probe()
        try:
            capacity: Optional[int] = read_gpu_memory_gb(self.executor)
        except (CommandError, ValueError) as e:
            logger.debug("GPU query failed: %s", e)
            capacity = None
        return {
            "running": probe.state == GatewayState.LISTENING,
            "state": probe.state.value,
            "model": read_current_model(self.executor),
            "capacity_gb": capacity,
            "mode": self.config.agent_mode,
            "port": self.port,
        }

    def tail_log(self, lines: int = 50, source: str = "gateway") -> str:
        if source not in LOG_SOURCES:
            raise ValueError(f"Unknown log source {source!r}, expected one of: {', '.join(LOG_SOURCES)}")
        if lines <= 0:
            raise ValueError("lines must be positive")
        path = RemotePath(LOG_SOURCES[source])
        return self.executor.execute(
            render(
                "tail -n {lines} {path} 2>/dev/null || echo {missing}",
                lines=lines,
                path=path,
                missing=f"No {source} logs found",
            ),
            quiet=True,
        )
