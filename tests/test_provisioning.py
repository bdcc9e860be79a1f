"""Tests for the provisioning state machine."""

import re

import pytest

from vastlink.core.exceptions import BootstrapError, ModelPullError
from vastlink.core.shell import b64encode_text
from vastlink.domain.provision.models import ProvisionConfig
from vastlink.domain.provision.service import ProvisioningService

CATALOG_HEADER = "NAME    ID    SIZE    MODIFIED\n"
MISSING_MANIFEST = "pulling manifest\nError: pull model manifest: file does not exist\n"

EXPECTED_FALLBACKS = [
    "qwen3-coder:14b",
    "qwen3-coder",
    "qwen3-coder:latest",
    "qwen2.5-coder:14b",
    "qwen2.5-coder",
    "qwen2.5-coder:latest",
]


class StubGateway:
    def __init__(self):
        self.ensured = []
        self.inference_checks = 0

    def ensure_inference_server(self):
        self.inference_checks += 1
        return False

    def ensure_running(self, model):
        self.ensured.append(model)
        return True


class FakeOllama:
    """Catalog that gains a model once its pull has been started"""

    def __init__(self, available=(), pullable=()):
        self.models = list(available)
        self.pullable = set(pullable)
        self.pulls = []

    def list(self, cmd):
        return CATALOG_HEADER + "".join(f"{m}    abc    1 GB    now\n" for m in self.models)

    def pull(self, cmd):
        model = re.search(r"ollama pull (\S+)", cmd).group(1)
        self.pulls.append(model)
        if model in self.pullable:
            self.models.append(model)
        return "started\n"


def make_service(scripted, clock, config=None, on_progress=None):
    gateway = StubGateway()
    service = ProvisioningService(
        scripted,
        config or ProvisionConfig(pull_timeout=60, pull_poll_interval=10),
        gateway=gateway,
        sleep=clock.sleep,
        clock=clock,
        on_progress=on_progress,
    )
    return service, gateway


def script_host(scripted, ollama, gpu_mib="16384", marker="", pull_log=""):
    scripted.on(r"command -v openclaw", "installed\n")
    scripted.on(r"nvidia-smi", gpu_mib + "\n")
    scripted.on(r"^ollama list", ollama.list)
    scripted.on(r"ollama pull", ollama.pull)
    scripted.on(r"cat .*current_model", marker)
    scripted.on(r"tail -c 8192", pull_log)


class TestRun:
    def test_fresh_host_pulls_and_starts_gateway(self, scripted, clock):
        ollama = FakeOllama(pullable=["qwen3-coder:30b"])
        script_host(scripted, ollama, gpu_mib="24576")
        service, gateway = make_service(scripted, clock)

        report = service.run()

        assert not report.bootstrapped
        assert report.capacity_gb == 24
        assert report.selected_model == "qwen3-coder:30b"
        assert report.active_model == "qwen3-coder:30b"
        assert report.pulled
        assert gateway.ensured == ["qwen3-coder:30b"]
        assert scripted.ran(re.escape(b64encode_text("qwen3-coder:30b\n")))
        assert scripted.ran(r"mkdir -p .*skills")

    def test_ready_model_is_not_pulled(self, scripted, clock):
        ollama = FakeOllama(available=["qwen3-coder:14b"])
        script_host(scripted, ollama, gpu_mib="12288", marker="qwen3-coder:14b\n")
        service, gateway = make_service(scripted, clock)

        report = service.run()

        assert not report.pulled
        assert ollama.pulls == []
        assert gateway.ensured == ["qwen3-coder:14b"]

    def test_marker_for_fallback_is_accepted(self, scripted, clock):
        ollama = FakeOllama(available=["qwen2.5-coder:14b"])
        script_host(scripted, ollama, gpu_mib="12288", marker="qwen2.5-coder:14b\n")
        service, _ = make_service(scripted, clock)

        report = service.run()

        assert report.active_model == "qwen2.5-coder:14b"
        assert not report.pulled

    def test_marker_without_catalog_entry_repulls(self, scripted, clock):
        ollama = FakeOllama(pullable=["qwen3-coder:14b"])
        script_host(scripted, ollama, gpu_mib="12288", marker="qwen3-coder:14b\n")
        service, _ = make_service(scripted, clock)

        report = service.run()

        assert report.pulled
        assert ollama.pulls == ["qwen3-coder:14b"]

    def test_override_bypasses_selection(self, scripted, clock):
        ollama = FakeOllama(pullable=["llama3.1:8b"])
        script_host(scripted, ollama, gpu_mib="81920")
        config = ProvisionConfig(override="llama3.1:8b", pull_timeout=60, pull_poll_interval=10)
        service, _ = make_service(scripted, clock, config=config)

        assert service.run().active_model == "llama3.1:8b"


class TestBootstrap:
    def test_missing_binaries_trigger_bootstrap(self, scripted, clock):
        ollama = FakeOllama(available=["qwen3-coder:14b"])
        script_host(scripted, ollama, gpu_mib="12288", marker="qwen3-coder:14b")
        scripted.on(r"command -v openclaw", "")
        service, _ = make_service(scripted, clock)

        assert service.run().bootstrapped
        assert scripted.ran(r"^bash /tmp/vastlink-bootstrap.sh$")
        assert scripted.ran(r"^rm -f /tmp/vastlink-bootstrap.sh$")

    def test_force_bootstraps_installed_host(self, scripted, clock):
        ollama = FakeOllama(available=["qwen3-coder:14b"])
        script_host(scripted, ollama, gpu_mib="12288", marker="qwen3-coder:14b")
        service, _ = make_service(scripted, clock)

        assert service.run(force=True).bootstrapped

    def test_failed_bootstrap_is_fatal_and_cleans_up(self, scripted, clock):
        scripted.on(r"^bash /tmp/vastlink-bootstrap.sh", ("", "E: Unable to locate package nodejs\n", 100))
        service, gateway = make_service(scripted, clock)

        with pytest.raises(BootstrapError, match="Unable to locate package"):
            service.run()

        assert scripted.ran(r"^rm -f /tmp/vastlink-bootstrap.sh$")
        assert gateway.ensured == []


class TestDetectCapacity:
    def test_rounds_down_to_gib(self, scripted, clock):
        scripted.on(r"nvidia-smi", "24563\n")
        service, _ = make_service(scripted, clock)
        assert service.detect_capacity() == 23

    def test_missing_gpu_uses_default(self, scripted, clock):
        scripted.on(r"nvidia-smi", ("", "nvidia-smi: command not found", 127))
        service, _ = make_service(scripted, clock)
        assert service.detect_capacity() == 12

    def test_garbage_uses_default(self, scripted, clock):
        scripted.on(r"nvidia-smi", "No devices were found\n")
        service, _ = make_service(scripted, clock)
        assert service.detect_capacity() == 12


class TestPullModel:
    def test_tries_every_fallback_in_order(self, scripted, clock):
        ollama = FakeOllama()
        script_host(scripted, ollama, pull_log=MISSING_MANIFEST)
        service, _ = make_service(scripted, clock)

        with pytest.raises(ModelPullError) as excinfo:
            service.pull_model("qwen3-coder:14b")

        assert ollama.pulls == EXPECTED_FALLBACKS
        assert excinfo.value.attempted == EXPECTED_FALLBACKS
        for name in EXPECTED_FALLBACKS:
            assert name in str(excinfo.value)
        assert "file does not exist" in str(excinfo.value)
        assert "VASTLINK_MODEL_OVERRIDE" in str(excinfo.value)

    def test_timeout_moves_to_next_candidate(self, scripted, clock):
        ollama = FakeOllama(pullable=["qwen3-coder"])
        script_host(scripted, ollama, pull_log="pulling manifest\n")

        def slow_primary(cmd):
            model = re.search(r"ollama pull (\S+)", cmd).group(1)
            ollama.pulls.append(model)
            if model == "qwen3-coder":
                ollama.models.append("qwen3-coder:latest")
            return "started\n"

        scripted.on(r"ollama pull", slow_primary)
        service, _ = make_service(scripted, clock)

        assert service.pull_model("qwen3-coder:14b") == "qwen3-coder"
        assert ollama.pulls == ["qwen3-coder:14b", "qwen3-coder"]
        assert sum(clock.sleeps) >= 60

        stop = scripted.commands.index(scripted.ran(r"^pkill -f '\[o\]llama pull'")[0])
        pulls = [i for i, c in enumerate(scripted.commands) if "ollama pull " in c and "pkill" not in c]
        assert pulls[0] < stop < pulls[1]

    def test_fallback_success_writes_marker(self, scripted, clock):
        ollama = FakeOllama(pullable=["qwen2.5-coder:14b"])
        script_host(scripted, ollama, pull_log=MISSING_MANIFEST)
        service, _ = make_service(scripted, clock)

        assert service.pull_model("qwen3-coder:14b") == "qwen2.5-coder:14b"
        assert scripted.ran(re.escape(b64encode_text("qwen2.5-coder:14b\n")))
        assert not scripted.ran(re.escape(b64encode_text("qwen3-coder:14b\n")))

    def test_marker_not_written_when_model_vanishes_from_catalog(self, scripted, clock):
        ollama = FakeOllama()
        calls = {"n": 0}

        def flaky_catalog(cmd):
            calls["n"] += 1
            if calls["n"] == 2:
                return CATALOG_HEADER + "qwen3-coder:14b    abc    9 GB    now\n"
            return CATALOG_HEADER

        script_host(scripted, ollama, pull_log=MISSING_MANIFEST)
        scripted.on(r"^ollama list", flaky_catalog)
        service, _ = make_service(scripted, clock)

        with pytest.raises(ModelPullError, match="file does not exist"):
            service.pull_model("qwen3-coder:14b")

        assert not scripted.ran(r"current_model")

    def test_pull_log_is_truncated_before_each_pull(self, scripted, clock):
        ollama = FakeOllama(pullable=["qwen3-coder:14b"])
        script_host(scripted, ollama)
        service, _ = make_service(scripted, clock)

        service.pull_model("qwen3-coder:14b")

        truncate = scripted.commands.index(": > /tmp/ollama-pull.log")
        pull = next(i for i, c in enumerate(scripted.commands) if "ollama pull" in c)
        assert truncate < pull

    def test_progress_reported_only_on_change(self, scripted, clock):
        ollama = FakeOllama()
        logs = iter(["", " 10% 1 GB/9 GB", " 10% 1 GB/9 GB", " 55% 5 GB/9 GB", " 55% 5 GB/9 GB"])
        polls = {"n": 0}

        def catalog(cmd):
            polls["n"] += 1
            if polls["n"] > 6:
                return CATALOG_HEADER + "qwen3-coder:14b    abc    9 GB    now\n"
            return CATALOG_HEADER

        script_host(scripted, ollama)
        scripted.on(r"^ollama list", catalog)
        scripted.on(r"tail -c 8192", lambda cmd: next(logs, ""))
        seen = []
        service, _ = make_service(scripted, clock, on_progress=lambda model, p: seen.append(p.percent))

        assert service.pull_model("qwen3-coder:14b") == "qwen3-coder:14b"
        assert seen == [10, 55]
