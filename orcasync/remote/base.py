"""Abstract per-collection remote document store."""

from abc import ABC, abstractmethod

from ..records import CollectionName, RemoteDocument, SyncRecord


class RemoteStore(ABC):
    """Abstract base for a remote per-collection document store.

    The remote store is the system of record: pull treats the snapshot
    returned by `fetch_all_for_owner` as authoritative.
    """

    @property
    @abstractmethod
    def collection(self) -> CollectionName:
        """The collection this store serves."""
        pass

    @abstractmethod
    async def fetch_all_for_owner(self, owner_id: str) -> list[RemoteDocument]:
        """Fetch the full snapshot of an owner's documents.

        Args:
            owner_id: Authenticated user whose documents to fetch.

        Returns:
            Every remote document owned by `owner_id`.

        Raises:
            RemoteFetchError: If the snapshot could not be fetched.
        """
        pass

    @abstractmethod
    async def upsert_one(self, record: SyncRecord) -> None:
        """Create or overwrite the remote document for a record.

        Raises:
            RemoteWriteError: On network, auth or validation failure.
        """
        pass

    async def delete_one(self, record_id: str) -> None:
        """Delete a remote document.

        Collections without remote deletion leave this unimplemented.

        Raises:
            RemoteDeleteError: If the delete failed.
        """
        raise NotImplementedError(
            f"Collection {self.collection.value} does not support remote deletes"
        )

    @property
    def supports_delete(self) -> bool:
        """Whether this store overrides `delete_one`."""
        return type(self).delete_one is not RemoteStore.delete_one
