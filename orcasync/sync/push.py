"""Push pipeline: local pending/error records and tombstones to the remote."""

import logging
from dataclasses import dataclass, field

from ..records import PUSH_ORDER, SyncStatus
from ..store.local_store import LocalStore
from .registry import CollectionRegistry

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Outcome of one push pass."""

    synced: int = 0
    failed: int = 0
    deleted: int = 0
    delete_failures: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.synced + self.failed


def describe_error(error: Exception) -> str:
    """Human-readable failure description stored in `sync_error`."""
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__


class PushPipeline:
    """Propagates local changes and deletions to the remote store.

    Every item is handled in isolation: a failing upsert marks only that
    record as errored, and a failing delete leaves only that tombstone in
    place for the next pass. The pipeline itself never raises for
    per-item remote failures.
    """

    def __init__(self, store: LocalStore, registry: CollectionRegistry):
        self._store = store
        self._registry = registry

    async def run(self, owner_id: str, include_error_items: bool = False) -> PushResult:
        """Push one owner's backlog.

        Args:
            owner_id: Owner whose records and tombstones to push.
            include_error_items: Also retry records currently in error.

        Returns:
            PushResult with per-pass statistics.
        """
        result = PushResult()

        for collection in PUSH_ORDER:
            table = self._store.table(collection)
            push = self._registry[collection].push

            # Re-read each pass so edits made since the last push are included
            records = table.list_by_owner(owner_id)
            selected = [r for r in records if r.sync_status == SyncStatus.PENDING]
            if include_error_items:
                selected += [r for r in records if r.sync_status == SyncStatus.ERROR]

            for record in selected:
                try:
                    await push(record)
                except Exception as e:
                    error = describe_error(e)
                    table.update_status(record.id, SyncStatus.ERROR, error)
                    result.failed += 1
                    result.failed_ids.append(record.id)
                    logger.warning(
                        f"Push failed for {collection.value}/{record.id}: {error}"
                    )
                else:
                    table.update_status(record.id, SyncStatus.SYNCED, None)
                    result.synced += 1

        for tombstone in self._store.tombstones.list(owner_id):
            delete = self._registry[tombstone.collection].delete
            try:
                if delete is not None:
                    await delete(tombstone.id)
                else:
                    logger.warning(
                        f"{tombstone.collection.value} has no remote delete, "
                        f"dropping tombstone {tombstone.id}"
                    )
            except Exception as e:
                error = describe_error(e)
                self._store.tombstones.record_failure(
                    tombstone.collection, tombstone.id, error
                )
                result.delete_failures += 1
                logger.warning(
                    f"Remote delete failed for {tombstone.collection.value}/"
                    f"{tombstone.id} (attempt {tombstone.attempts + 1}): {error}"
                )
            else:
                self._store.tombstones.remove(tombstone.collection, tombstone.id)
                result.deleted += 1

        logger.info(
            f"Push for {owner_id}: synced={result.synced}, failed={result.failed}, "
            f"deleted={result.deleted}, delete_failures={result.delete_failures}"
        )
        return result
