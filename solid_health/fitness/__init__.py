"""solid-health fitness sync engine.

This package keeps daily steps, daily distance and heart-rate samples
consistent between a read-only fitness provider and the user's Solid pod.

Subpackages:
    adapters/ - Provider adapters (Google Fit)
    pod/      - Pod access: HTTP client, triple store, profile, type index, observations
    sync/     - Sessions, status channels, diffing and the reconciliation engine

Core modules:
    base          - ProviderClient ABC and canonical data models
    config_loader - Load/validate/hot-reload sync_config.yaml
    errors        - Exception taxonomy
"""

from solid_health.fitness.base import (
    Category,
    DataPoint,
    PodDataPoint,
    Profile,
    ProviderClient,
    SyncStatus,
)
from solid_health.fitness.config_loader import SyncConfig, get_sync_config

__all__ = [
    "Category",
    "DataPoint",
    "PodDataPoint",
    "Profile",
    "ProviderClient",
    "SyncStatus",
    "SyncConfig",
    "get_sync_config",
]
