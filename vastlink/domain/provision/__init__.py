"""
Provisioning domain module
"""
from .models import (
    ModelThresholds,
    ProvisionConfig,
    GatewayState,
    GatewayProbe,
    PullProgress,
    ProvisionReport,
)
from .selection import select_model, build_model_candidates, normalize_model_name, is_model_listed
from .progress import parse_pull_progress, find_pull_error, find_bad_config_signature
from .gateway import GatewayController, merge_owned
from .service import ProvisioningService

__all__ = [
    "ModelThresholds",
    "ProvisionConfig",
    "GatewayState",
    "GatewayProbe",
    "PullProgress",
    "ProvisionReport",
    "select_model",
    "build_model_candidates",
    "normalize_model_name",
    "is_model_listed",
    "parse_pull_progress",
    "find_pull_error",
    "find_bad_config_signature",
    "GatewayController",
    "merge_owned",
    "ProvisioningService",
]
