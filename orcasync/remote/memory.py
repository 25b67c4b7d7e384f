"""In-process remote store for tests, demos and local development."""

import copy
import logging
from typing import Any

from ..errors import RemoteDeleteError, RemoteFetchError, RemoteWriteError
from ..records import CollectionName, RemoteDocument, SyncRecord
from .base import RemoteStore

logger = logging.getLogger(__name__)


class InMemoryRemoteStore(RemoteStore):
    """Dictionary-backed remote store with injectable failures.

    Records every call in `calls` so tests can assert ordering and
    verify that guarded operations made no remote calls at all.
    """

    def __init__(
        self,
        collection: CollectionName,
        documents: dict[str, dict[str, Any]] | None = None,
        allow_delete: bool = True,
    ):
        """Initialize the store.

        Args:
            collection: Collection this store serves.
            documents: Initial documents keyed by id. Each should carry
                an "owner_id" field to be visible to owner queries.
            allow_delete: When False, behaves like a collection without
                a remote delete capability.
        """
        self._collection = collection
        self.documents: dict[str, dict[str, Any]] = dict(documents or {})
        self.allow_delete = allow_delete
        self.fail_upsert_ids: set[str] = set()
        self.fail_delete_ids: set[str] = set()
        self.fail_fetch = False
        self.calls: list[tuple[str, str]] = []

    @property
    def collection(self) -> CollectionName:
        return self._collection

    @property
    def supports_delete(self) -> bool:
        return self.allow_delete

    async def fetch_all_for_owner(self, owner_id: str) -> list[RemoteDocument]:
        self.calls.append(("fetch", owner_id))
        if self.fail_fetch:
            raise RemoteFetchError(
                "Remote snapshot unavailable",
                collection=self._collection.value,
            )

        return [
            RemoteDocument(id=doc_id, document=copy.deepcopy(doc))
            for doc_id, doc in sorted(self.documents.items())
            if doc.get("owner_id") == owner_id
        ]

    async def upsert_one(self, record: SyncRecord) -> None:
        self.calls.append(("upsert", record.id))
        if record.id in self.fail_upsert_ids:
            raise RemoteWriteError(
                f"Rejected write for {record.id}",
                collection=self._collection.value,
                record_id=record.id,
            )
        self.documents[record.id] = copy.deepcopy(record.to_document())

    async def delete_one(self, record_id: str) -> None:
        if not self.allow_delete:
            return await super().delete_one(record_id)

        self.calls.append(("delete", record_id))
        if record_id in self.fail_delete_ids:
            raise RemoteDeleteError(
                f"Rejected delete for {record_id}",
                collection=self._collection.value,
                record_id=record_id,
            )
        self.documents.pop(record_id, None)
