"""
Sync Engine.

Reconciles the local mutation queue with the authoritative store
whenever connectivity allows.

Components:
- remote_client: Async HTTP client for the authoritative store
- connectivity: Online/offline observers the engine subscribes to
- sync_engine: FIFO per-collection passes with failure isolation
"""

from .connectivity import (
    ConnectivityObserver,
    HealthCheckConnectivityMonitor,
    ManualConnectivity,
)
from .remote_client import MUTATION_TARGETS, RemoteConfig, RemoteStoreClient, RemoteStoreError
from .sync_engine import RetryPolicy, SyncEngine, SyncStats

__all__ = [
    "ConnectivityObserver",
    "HealthCheckConnectivityMonitor",
    "ManualConnectivity",
    "MUTATION_TARGETS",
    "RemoteConfig",
    "RemoteStoreClient",
    "RemoteStoreError",
    "RetryPolicy",
    "SyncEngine",
    "SyncStats",
]
