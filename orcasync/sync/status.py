"""Status snapshot exposed to UI and CLI collaborators."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CoordinatorState(Enum):
    """What the coordinator is doing right now."""

    IDLE = "idle"
    PUSHING = "pushing"
    PULLING = "pulling"


@dataclass
class SyncStatusSnapshot:
    """Point-in-time view of the sync engine."""

    is_online: bool
    is_syncing: bool
    pending_count: int
    error_count: int
    last_sync_timestamp: datetime | None
    state: CoordinatorState = CoordinatorState.IDLE
    user_id: str | None = None
    initial_pull_done: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "is_online": self.is_online,
            "is_syncing": self.is_syncing,
            "pending_count": self.pending_count,
            "error_count": self.error_count,
            "last_sync_timestamp": (
                self.last_sync_timestamp.isoformat()
                if self.last_sync_timestamp
                else None
            ),
            "state": self.state.value,
            "user_id": self.user_id,
            "initial_pull_done": self.initial_pull_done,
        }


def describe_status(status: SyncStatusSnapshot) -> tuple[str, str]:
    """Render the status indicator label and its tooltip text.

    Precedence: errors, offline, syncing, pending, synced.

    Returns:
        Tuple of (label, detail).
    """
    if status.error_count > 0:
        return (
            "Error",
            f"{status.error_count} item(s) failed to sync. Try forcing a sync.",
        )
    if not status.is_online:
        return (
            "Offline",
            "You are offline. Changes will sync when you reconnect.",
        )
    if status.is_syncing:
        items = f" {status.pending_count} item(s)" if status.pending_count else ""
        return "Syncing...", f"Syncing{items}..."
    if status.pending_count > 0:
        noun = "item" if status.pending_count == 1 else "items"
        return "Pending", f"{status.pending_count} {noun} waiting to sync."
    if status.last_sync_timestamp:
        return (
            "Synced",
            f"Synced. Last sync: {status.last_sync_timestamp:%Y-%m-%d %H:%M:%S}",
        )
    return "Synced", "Connected and synced."
