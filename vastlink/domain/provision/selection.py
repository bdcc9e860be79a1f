"""
Model selection and catalog matching
"""
from typing import List, Optional

from ...core.constants import SIBLING_FAMILIES
from .models import ModelThresholds


def select_model(
    family: str,
    override: Optional[str],
    capacity_gb: int,
    thresholds: ModelThresholds,
) -> str:
    """
    Pick a model tag for the available GPU memory.

    An override always wins. Coder families come in three sizes, other
    families in four.
    """
    if override:
        return override

    if "coder" in family.lower():
        if capacity_gb < thresholds.low:
            return f"{family}:7b"
        if capacity_gb < thresholds.high:
            return f"{family}:14b"
        return f"{family}:30b"

    if capacity_gb < thresholds.low:
        return f"{family}:4b"
    if capacity_gb < thresholds.mid:
        return f"{family}:8b"
    if capacity_gb < thresholds.high:
        return f"{family}:14b"
    return f"{family}:30b"


def build_model_candidates(primary: str) -> List[str]:
    """
    Ordered, de-duplicated names to try when pulling ``primary``.

    primary, bare family, family:latest, then the same three for a known
    sibling family.
    """
    candidates: List[str] = []

    def add(name: Optional[str]) -> None:
        if name and name not in candidates:
            candidates.append(name)

    add(primary)
    name, _, tag = primary.partition(":")
    add(name)
    add(f"{name}:latest")

    sibling = SIBLING_FAMILIES.get(name)
    if tag and sibling:
        add(f"{sibling}:{tag}")
        add(sibling)
        add(f"{sibling}:latest")

    return candidates


def normalize_model_name(model: str) -> str:
    if not model:
        return ""
    return model if ":" in model else f"{model}:latest"


def is_model_listed(catalog: str, model: str) -> bool:
    """True if catalog output names ``model`` or its ``:latest`` form, ignoring case"""
    normalized = normalize_model_name(model.strip()).lower()
    if not normalized:
        return False
    name_only = normalized.split(":", 1)[0]
    haystack = catalog.lower()
    return normalized in haystack or f"{name_only}:latest" in haystack
