"""Exceptions raised by the sync engine and its remote collaborators."""


class SyncError(Exception):
    """Base class for sync engine errors."""


class RemoteStoreError(SyncError):
    """A call to the remote document store failed."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        record_id: str | None = None,
    ):
        super().__init__(message)
        self.collection = collection
        self.record_id = record_id


class RemoteWriteError(RemoteStoreError):
    """Upserting a document remotely failed (network, auth or validation)."""


class RemoteDeleteError(RemoteStoreError):
    """Deleting a document remotely failed."""


class RemoteFetchError(RemoteStoreError):
    """Fetching an owner's snapshot from the remote store failed."""


class PullReconciliationError(SyncError):
    """A full pull pass was aborted before reconciling every collection."""

    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection


class AlreadySyncingError(SyncError):
    """A push or pull was requested while another one holds the sync lock."""
