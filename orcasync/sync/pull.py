"""Pull pipeline: reconcile the local store against the remote snapshot."""

import logging
from dataclasses import dataclass, field

from ..errors import PullReconciliationError
from ..records import PULL_ORDER, SyncRecord, SyncStatus
from ..store.local_store import LocalStore
from .registry import CollectionRegistry

logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    """Outcome of one full pull pass."""

    upserted: int = 0
    removed: int = 0
    collections: dict[str, int] = field(default_factory=dict)


class PullPipeline:
    """Makes the remote snapshot authoritative locally.

    For each collection: records present locally but absent remotely are
    deleted, and every remote document overwrites its local copy with
    status synced. Each collection is committed independently; the first
    failure aborts the rest of the pass.
    """

    def __init__(self, store: LocalStore, registry: CollectionRegistry):
        self._store = store
        self._registry = registry

    async def run(self, owner_id: str) -> PullResult:
        """Run a full pull pass for one owner.

        Args:
            owner_id: Owner whose data partition to reconcile.

        Returns:
            PullResult with per-pass statistics.

        Raises:
            PullReconciliationError: If any collection failed to reconcile.
        """
        result = PullResult()

        for collection in PULL_ORDER:
            try:
                remote_docs = await self._registry[collection].pull(owner_id)

                table = self._store.table(collection)
                remote_ids = {doc.id for doc in remote_docs}
                local_ids = {r.id for r in table.list_by_owner(owner_id)}

                orphaned = sorted(local_ids - remote_ids)
                removed = table.bulk_delete(orphaned)

                table.bulk_upsert([
                    SyncRecord(
                        collection=collection,
                        id=doc.id,
                        owner_id=owner_id,
                        payload=doc.document,
                        sync_status=SyncStatus.SYNCED,
                        sync_error=None,
                    )
                    for doc in remote_docs
                ])
            except Exception as e:
                logger.error(f"Pull aborted at {collection.value}: {e}")
                raise PullReconciliationError(
                    f"Failed to reconcile {collection.value}: {e}",
                    collection=collection.value,
                ) from e

            result.upserted += len(remote_docs)
            result.removed += removed
            result.collections[collection.value] = len(remote_docs)

            if removed:
                logger.info(
                    f"Removed {removed} {collection.value} records deleted remotely"
                )

        logger.info(
            f"Pull for {owner_id}: upserted={result.upserted}, "
            f"removed={result.removed}"
        )
        return result
