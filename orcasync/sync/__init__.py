"""Sync engine for offline-first collections.

Push local pending records and deletion tombstones to the remote store,
pull the remote snapshot back as ground truth, and coordinate both under
a single lock driven by connectivity, auth and backlog triggers.
"""

from .connectivity import ConnectivityMonitor
from .coordinator import (
    ForceSyncResult,
    ForceSyncStatus,
    Notice,
    SyncCoordinator,
    SyncSession,
)
from .pull import PullPipeline, PullResult
from .push import PushPipeline, PushResult
from .registry import CollectionCapabilities, build_registry
from .state import SyncCounts, SyncStateStore
from .status import CoordinatorState, SyncStatusSnapshot, describe_status

__all__ = [
    "CollectionCapabilities",
    "ConnectivityMonitor",
    "CoordinatorState",
    "ForceSyncResult",
    "ForceSyncStatus",
    "Notice",
    "PullPipeline",
    "PullResult",
    "PushPipeline",
    "PushResult",
    "SyncCoordinator",
    "SyncCounts",
    "SyncSession",
    "SyncStateStore",
    "SyncStatusSnapshot",
    "build_registry",
    "describe_status",
]
