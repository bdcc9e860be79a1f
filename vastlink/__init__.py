"""
vastlink - GPU host orchestration tool

Provisions and supervises an inference gateway on a rented GPU machine:
- Resilient SSH session with retry, backoff and reconnect
- Idempotent provisioning (install, model selection and pull, gateway watchdog)
- Bidirectional folder sync with conflict policies and backups
"""

__version__ = "0.1.0"

# Export core components
from .core import (
    RemoteClient,
    ClientConfig,
    load_ssh_config,
)

# Export domain models
from .domain.session import (
    SessionTarget,
    SessionManager,
    RemoteExecutor,
)

from .domain.provision import (
    ProvisionConfig,
    ProvisioningService,
    GatewayController,
    select_model,
)

from .domain.sync import (
    SyncConfig,
    SyncReport,
    SyncService,
)

from .orchestrator import Orchestrator

__all__ = [
    # Version
    "__version__",
    # Client
    "RemoteClient",
    "ClientConfig",
    "load_ssh_config",
    # Session
    "SessionTarget",
    "SessionManager",
    "RemoteExecutor",
    # Provisioning
    "ProvisionConfig",
    "ProvisioningService",
    "GatewayController",
    "select_model",
    # Sync
    "SyncConfig",
    "SyncReport",
    "SyncService",
    # Composition
    "Orchestrator",
]
