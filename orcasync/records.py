"""Record, tombstone and collection types shared by the sync engine."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SyncStatus(Enum):
    """Per-record synchronization status."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class CollectionName(Enum):
    """The closed set of synchronized collections."""

    ORGANIZATION = "organization"
    CLIENTS = "clients"
    ITEMS = "items"
    PROPOSALS = "proposals"


# Parent-like collections go first so dependents reference existing documents
PUSH_ORDER: tuple[CollectionName, ...] = (
    CollectionName.ORGANIZATION,
    CollectionName.CLIENTS,
    CollectionName.ITEMS,
    CollectionName.PROPOSALS,
)

PULL_ORDER: tuple[CollectionName, ...] = (
    CollectionName.CLIENTS,
    CollectionName.ITEMS,
    CollectionName.PROPOSALS,
    CollectionName.ORGANIZATION,
)


@dataclass
class SyncRecord:
    """A locally stored document plus its sync bookkeeping."""

    collection: CollectionName
    id: str
    owner_id: str
    payload: dict[str, Any]
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_error: str | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        """Build the remote document body (payload plus identity fields)."""
        document = dict(self.payload)
        document["id"] = self.id
        document["owner_id"] = self.owner_id
        return document

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "collection": self.collection.value,
            "id": self.id,
            "owner_id": self.owner_id,
            "payload": self.payload,
            "sync_status": self.sync_status.value,
            "sync_error": self.sync_error,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_row(cls, row: Any) -> "SyncRecord":
        """Create from a `records` table row."""
        return cls(
            collection=CollectionName(row["collection"]),
            id=row["id"],
            owner_id=row["owner_id"],
            payload=json.loads(row["payload"]),
            sync_status=SyncStatus(row["sync_status"]),
            sync_error=row["sync_error"],
            updated_at=(
                datetime.fromisoformat(row["updated_at"])
                if row["updated_at"]
                else None
            ),
        )


@dataclass
class DeletionTombstone:
    """Durable marker that an id must no longer exist remotely."""

    collection: CollectionName
    id: str
    owner_id: str
    created_at: datetime = field(default_factory=datetime.now)
    attempts: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "collection": self.collection.value,
            "id": self.id,
            "owner_id": self.owner_id,
            "created_at": self.created_at.isoformat(),
            "attempts": self.attempts,
            "last_error": self.last_error,
        }

    @classmethod
    def from_row(cls, row: Any) -> "DeletionTombstone":
        """Create from a `deletions` table row."""
        return cls(
            collection=CollectionName(row["collection"]),
            id=row["id"],
            owner_id=row["owner_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            attempts=row["attempts"],
            last_error=row["last_error"],
        )


@dataclass
class RemoteDocument:
    """A document as returned by the remote store."""

    id: str
    document: dict[str, Any]
