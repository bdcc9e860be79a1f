"""
Read-only remote queries shared by provisioning and status
"""
from typing import Optional

from ...core.constants import CURRENT_MODEL_MARKER, INFERENCE_BINARY
from ...core.interfaces import CommandExecutor
from ...core.shell import RemotePath, render

GPU_MEMORY_QUERY = "nvidia-smi --query-gpu=memory.total --format=csv,noheader,nounits | head -n 1"


def read_gpu_memory_gb(executor: CommandExecutor) -> int:
    """
    Total memory of the first GPU in GiB, rounded down.

    Raises:
        CommandError: nvidia-smi is missing or failed
        ValueError: output was not a number
    """
    lines = executor.execute(GPU_MEMORY_QUERY).strip().splitlines()
    if not lines:
        raise ValueError("nvidia-smi reported no GPU")
    return int(float(lines[0].strip())) // 1024


def read_current_model(executor: CommandExecutor) -> Optional[str]:
    marker = executor.execute(
        render("cat {marker} 2>/dev/null || true", marker=RemotePath(CURRENT_MODEL_MARKER)),
        quiet=True,
    )
    return marker.strip() or None


def list_models(executor: CommandExecutor) -> str:
    """Raw ``ollama list`` output; empty when the server is unreachable"""
    return executor.execute(f"{INFERENCE_BINARY} list 2>/dev/null || true", quiet=True)
