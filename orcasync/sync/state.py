"""Reactive aggregation of pending and errored work per owner."""

import logging
from dataclasses import dataclass
from typing import Callable

from ..records import PUSH_ORDER, CollectionName, SyncStatus
from ..store.local_store import LocalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncCounts:
    """Backlog counts for one owner."""

    pending_count: int = 0
    error_count: int = 0


CountsListener = Callable[[SyncCounts], None]


class SyncStateStore:
    """Computes per-owner pending/error counts and keeps them current.

    Subscribes to LocalStore changes and recomputes the counts of the
    tracked owner after every mutation, notifying listeners only when
    the counts actually change. Tombstones always count as pending.
    """

    def __init__(self, store: LocalStore):
        self._store = store
        self._owner_id: str | None = None
        self._counts = SyncCounts()
        self._listeners: list[CountsListener] = []
        self._store.subscribe(self._on_store_change)

    def get_counts(self, owner_id: str | None) -> SyncCounts:
        """Compute counts for an owner directly from the store.

        Args:
            owner_id: Owner to count for. None yields zero counts.
        """
        if not owner_id:
            return SyncCounts()

        pending = 0
        errors = 0
        for collection in PUSH_ORDER:
            table = self._store.table(collection)
            pending += table.count_by_owner_and_status(owner_id, SyncStatus.PENDING)
            errors += table.count_by_owner_and_status(owner_id, SyncStatus.ERROR)

        pending += self._store.tombstones.count(owner_id)

        return SyncCounts(pending_count=pending, error_count=errors)

    @property
    def counts(self) -> SyncCounts:
        """Latest counts of the tracked owner."""
        return self._counts

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    def track(self, owner_id: str | None) -> SyncCounts:
        """Switch the owner whose counts are kept current."""
        self._owner_id = owner_id
        return self.refresh()

    def refresh(self) -> SyncCounts:
        """Recompute the tracked owner's counts, notifying on change."""
        counts = self.get_counts(self._owner_id)
        if counts != self._counts:
            self._counts = counts
            logger.debug(
                f"Sync counts: pending={counts.pending_count}, "
                f"errors={counts.error_count}"
            )
            for listener in list(self._listeners):
                try:
                    listener(counts)
                except Exception as e:
                    logger.error(f"Counts listener failed: {e}", exc_info=True)
        return counts

    def add_listener(self, listener: CountsListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: CountsListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def close(self) -> None:
        """Detach from the store."""
        self._store.unsubscribe(self._on_store_change)
        self._listeners.clear()

    def _on_store_change(self, collection: CollectionName | None) -> None:
        if self._owner_id:
            self.refresh()
