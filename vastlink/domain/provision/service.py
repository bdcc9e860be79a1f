"""
Provisioning: install, pick and pull a model, keep the gateway up
"""
import time
from typing import Callable, List, Optional, Tuple

from ...core.constants import (
    CURRENT_MODEL_MARKER,
    GATEWAY_BINARY,
    INFERENCE_BINARY,
    PULL_LOG,
    SYNC_STATE_DIR,
)
from ...core.exceptions import BootstrapError, CommandError, ModelPullError, ProvisionError
from ...core.interfaces import CommandExecutor
from ...core.logging import get_logger
from ...core.shell import RemotePath, background_command, render, write_file_command
from ...core.utils import tail_text
from .gateway import GatewayController
from .models import ProvisionConfig, ProvisionReport, PullProgress
from .probes import list_models, read_current_model, read_gpu_memory_gb
from .progress import find_pull_error, parse_pull_progress
from .scripts import bootstrap_script
from .selection import build_model_candidates, is_model_listed, select_model

logger = get_logger(__name__)

BOOTSTRAP_SCRIPT_PATH = "/tmp/vastlink-bootstrap.sh"
PULL_PGREP = "'[o]llama pull'"

ProgressCallback = Callable[[str, PullProgress], None]


class ProvisioningService:
    """
    Idempotent provisioning of the managed host.

    Every step first looks at what is already there, so running it against
    a half-configured host only does the missing work.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        config: ProvisionConfig,
        gateway: Optional[GatewayController] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.executor = executor
        self.config = config
        self.gateway = gateway or GatewayController(executor, config, sleep=sleep, clock=clock)
        self.on_progress = on_progress
        self._sleep = sleep
        self._clock = clock

    def run(self, force: bool = False, verbose: bool = False) -> ProvisionReport:
        bootstrapped = False
        if force or not self.check_installed():
            self.bootstrap(verbose=verbose)
            bootstrapped = True

        capacity = self.detect_capacity()
        selected = select_model(
            self.config.family,
            self.config.override,
            capacity,
            self.config.thresholds,
        )
        logger.info("GPU memory %sGB, selected model %s", capacity, selected)

        active, pulled = self.ensure_model(selected)
        self.ensure_workspace()
        started = self.gateway.ensure_running(active)

        return ProvisionReport(
            bootstrapped=bootstrapped,
            capacity_gb=capacity,
            selected_model=selected,
            active_model=active,
            pulled=pulled,
            gateway_started=started,
        )

    # --------------------
    # Install
    # --------------------
    def check_installed(self) -> bool:
        out = self.executor.execute(
            f"command -v {GATEWAY_BINARY} > /dev/null 2>&1 && "
            f"command -v {INFERENCE_BINARY} > /dev/null 2>&1 && echo installed || true",
            quiet=True,
        )
        return "installed" in out

    def bootstrap(self, verbose: bool = False) -> None:
        """
        Upload and run the one-shot install script.

        Raises:
            BootstrapError: the script exited non-zero
        """
        logger.info("Bootstrapping remote host (this can take several minutes)")
        script_path = RemotePath(BOOTSTRAP_SCRIPT_PATH)
        script = bootstrap_script(self._sync_dirs(), RemotePath(self.config.workspace))
        self.executor.execute(write_file_command(script_path, script, mode="755"))
        try:
            result = self.executor.run(render("bash {script}", script=script_path), verbose=verbose)
        finally:
            self.executor.execute(render("rm -f {script}", script=script_path), quiet=True)

        if not result.ok:
            output = tail_text(result.stderr or result.stdout, 30)
            raise BootstrapError(f"Bootstrap script failed with code {result.exit_status}:\n{output}")
        logger.info("Bootstrap complete")

    # --------------------
    # Hardware and model
    # --------------------
    def detect_capacity(self) -> int:
        try:
            return read_gpu_memory_gb(self.executor)
        except (CommandError, ValueError) as e:
            logger.warning(
                "Could not read GPU memory (%s), assuming %sGB", e, self.config.default_vram_gb
            )
            return self.config.default_vram_gb

    def ensure_model(self, selected: str) -> Tuple[str, bool]:
        """
        Make a model for ``selected`` available.

        Returns the model now active and whether a pull was needed.
        """
        self.gateway.ensure_inference_server()

        marker = read_current_model(self.executor)
        if marker and marker in build_model_candidates(selected):
            if is_model_listed(list_models(self.executor), marker):
                logger.info("Model ready: %s", marker)
                return marker, False
            logger.info("Model %s recorded but missing from catalog", marker)
        elif marker:
            logger.info("Model changed from %s to %s", marker, selected)

        return self.pull_model(selected), True

    def pull_model(self, primary: str) -> str:
        """
        Pull ``primary`` or the first fallback candidate that works.

        Raises:
            ModelPullError: every candidate failed
        """
        attempted: List[str] = []
        last_error: Optional[str] = None

        for model in build_model_candidates(primary):
            attempted.append(model)
            if model == primary:
                logger.info("Pulling model %s", model)
            else:
                logger.warning("Trying fallback model %s", model)

            try:
                self._pull_candidate(model)
            except (ProvisionError, CommandError) as e:
                last_error = str(e)
                logger.warning("Pull of %s failed: %s", model, e)
                self._stop_pull()
                continue

            if not is_model_listed(list_models(self.executor), model):
                last_error = f"{model} missing from catalog after pull"
                logger.warning(last_error)
                continue

            self.executor.execute(write_file_command(RemotePath(CURRENT_MODEL_MARKER), model + "\n"))
            logger.info("Model ready: %s", model)
            return model

        raise ModelPullError(primary, attempted, last_error)

    def _pull_candidate(self, model: str) -> None:
        if is_model_listed(list_models(self.executor), model):
            logger.info("Model %s already present", model)
            return

        log = RemotePath(PULL_LOG)
        self.executor.execute(render(": > {log}", log=log))
        self.executor.execute(background_command(render(f"{INFERENCE_BINARY} pull {{model}}", model=model), log))

        deadline = self._clock() + self.config.pull_timeout
        last_key = None
        while True:
            if is_model_listed(list_models(self.executor), model):
                return

            log_text = self.executor.execute(render("tail -c 8192 {log} 2>/dev/null || true", log=log), quiet=True)
            error = find_pull_error(log_text)
            if error:
                raise ProvisionError(error)

            progress = parse_pull_progress(log_text)
            if progress is not None and progress.key() != last_key:
                last_key = progress.key()
                self._report_progress(model, progress)

            if self._clock() >= deadline:
                raise ProvisionError(
                    f"Timed out after {self.config.pull_timeout}s waiting for {model}. "
                    f"Pull log tail:\n{tail_text(log_text)}"
                )
            self._sleep(self.config.pull_poll_interval)

    def _stop_pull(self) -> None:
        self.executor.execute(f"pkill -f {PULL_PGREP} 2>/dev/null; true", quiet=True)

    def _report_progress(self, model: str, progress: PullProgress) -> None:
        if self.on_progress is not None:
            self.on_progress(model, progress)
        else:
            logger.info("Pulling %s: %s", model, progress.format())

    # --------------------
    # Workspace
    # --------------------
    def _sync_dirs(self) -> List[RemotePath]:
        root = RemotePath(self.config.remote_sync_root)
        return [root.join(name) for name in self.config.sync_folders] + [root.join(SYNC_STATE_DIR)]

    def ensure_workspace(self) -> None:
        dirs = [RemotePath(self.config.workspace).join("skills")] + self._sync_dirs()
        self.executor.execute(" && ".join(render("mkdir -p {d}", d=d) for d in dirs))
