"""Local SQLite storage for synchronized records and deletion tombstones."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from ..records import (
    CollectionName,
    DeletionTombstone,
    SyncRecord,
    SyncStatus,
)

logger = logging.getLogger(__name__)

# SQL schema for the local database
SCHEMA = """
-- Records: one row per document, table-per-collection via the collection column
CREATE TABLE IF NOT EXISTS records (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    owner_id TEXT NOT NULL,
    payload TEXT NOT NULL,
    sync_status TEXT NOT NULL DEFAULT 'pending',
    sync_error TEXT,
    updated_at TEXT,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_records_owner ON records(collection, owner_id);
CREATE INDEX IF NOT EXISTS idx_records_status ON records(collection, owner_id, sync_status);

-- Deletions: tombstones for local deletes not yet confirmed remotely
CREATE TABLE IF NOT EXISTS deletions (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    owner_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    attempts INTEGER DEFAULT 0,
    last_error TEXT,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_deletions_owner ON deletions(owner_id);

-- Sync metadata that survives restarts (last sync time)
CREATE TABLE IF NOT EXISTS sync_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

ChangeCallback = Callable[[CollectionName | None], None]


class CollectionTable:
    """Owner-scoped view over the records of one collection."""

    def __init__(self, store: "LocalStore", collection: CollectionName):
        self._store = store
        self.collection = collection

    def list_by_owner(self, owner_id: str) -> list[SyncRecord]:
        """Get every record of this collection owned by `owner_id`."""
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            """
            SELECT * FROM records
            WHERE collection = ? AND owner_id = ?
            ORDER BY id
            """,
            (self.collection.value, owner_id),
        )
        return [SyncRecord.from_row(row) for row in cursor]

    def list_by_owner_and_status(
        self, owner_id: str, status: SyncStatus
    ) -> list[SyncRecord]:
        """Get records owned by `owner_id` with the given sync status."""
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            """
            SELECT * FROM records
            WHERE collection = ? AND owner_id = ? AND sync_status = ?
            ORDER BY id
            """,
            (self.collection.value, owner_id, status.value),
        )
        return [SyncRecord.from_row(row) for row in cursor]

    def count_by_owner_and_status(self, owner_id: str, status: SyncStatus) -> int:
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            """
            SELECT COUNT(*) FROM records
            WHERE collection = ? AND owner_id = ? AND sync_status = ?
            """,
            (self.collection.value, owner_id, status.value),
        )
        return cursor.fetchone()[0]

    def get(self, record_id: str) -> SyncRecord | None:
        conn = self._store._ensure_connected()
        row = conn.execute(
            "SELECT * FROM records WHERE collection = ? AND id = ?",
            (self.collection.value, record_id),
        ).fetchone()
        return SyncRecord.from_row(row) if row else None

    def upsert(self, record: SyncRecord) -> None:
        """Insert or replace a single record."""
        self.bulk_upsert([record])

    def bulk_upsert(self, records: list[SyncRecord]) -> int:
        """Insert or replace multiple records in a single transaction.

        Args:
            records: Records to store. Each must belong to this collection.

        Returns:
            Number of records written.
        """
        if not records:
            return 0

        conn = self._store._ensure_connected()

        rows = []
        for record in records:
            if record.collection != self.collection:
                raise ValueError(
                    f"Record {record.id} belongs to {record.collection.value}, "
                    f"not {self.collection.value}"
                )
            rows.append((
                self.collection.value,
                record.id,
                record.owner_id,
                json.dumps(record.payload),
                record.sync_status.value,
                record.sync_error,
                record.updated_at.isoformat() if record.updated_at else None,
            ))

        conn.executemany(
            """
            INSERT OR REPLACE INTO records (
                collection, id, owner_id, payload,
                sync_status, sync_error, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        conn.commit()

        self._store._notify(self.collection)
        return len(rows)

    def update_status(
        self,
        record_id: str,
        status: SyncStatus,
        error: str | None = None,
    ) -> bool:
        """Set the sync status of one record, leaving its payload untouched.

        Returns:
            True if the record exists and was updated.
        """
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            """
            UPDATE records
            SET sync_status = ?, sync_error = ?
            WHERE collection = ? AND id = ?
            """,
            (status.value, error, self.collection.value, record_id),
        )
        conn.commit()

        if cursor.rowcount > 0:
            self._store._notify(self.collection)
        return cursor.rowcount > 0

    def delete(self, record_id: str) -> bool:
        return self.bulk_delete([record_id]) > 0

    def bulk_delete(self, record_ids: Iterable[str]) -> int:
        """Delete records by id.

        Returns:
            Number of records deleted.
        """
        record_ids = list(record_ids)
        if not record_ids:
            return 0

        conn = self._store._ensure_connected()
        placeholders = ",".join("?" * len(record_ids))
        cursor = conn.execute(
            f"""
            DELETE FROM records
            WHERE collection = ? AND id IN ({placeholders})
            """,
            (self.collection.value, *record_ids),
        )
        conn.commit()

        deleted = cursor.rowcount
        if deleted > 0:
            self._store._notify(self.collection)
        return deleted


class TombstoneTable:
    """Access to the `deletions` table."""

    def __init__(self, store: "LocalStore"):
        self._store = store

    def list(self, owner_id: str) -> list[DeletionTombstone]:
        """Get all outstanding tombstones for an owner, oldest first."""
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            """
            SELECT * FROM deletions
            WHERE owner_id = ?
            ORDER BY created_at ASC
            """,
            (owner_id,),
        )
        return [DeletionTombstone.from_row(row) for row in cursor]

    def count(self, owner_id: str) -> int:
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            "SELECT COUNT(*) FROM deletions WHERE owner_id = ?", (owner_id,)
        )
        return cursor.fetchone()[0]

    def add(self, tombstone: DeletionTombstone) -> None:
        """Record a pending remote delete. Adding an existing tombstone is a no-op."""
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO deletions (
                collection, id, owner_id, created_at, attempts, last_error
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                tombstone.collection.value,
                tombstone.id,
                tombstone.owner_id,
                tombstone.created_at.isoformat(),
                tombstone.attempts,
                tombstone.last_error,
            ),
        )
        conn.commit()

        if cursor.rowcount > 0:
            self._store._notify(None)

    def remove(self, collection: CollectionName, record_id: str) -> bool:
        conn = self._store._ensure_connected()
        cursor = conn.execute(
            "DELETE FROM deletions WHERE collection = ? AND id = ?",
            (collection.value, record_id),
        )
        conn.commit()

        if cursor.rowcount > 0:
            self._store._notify(None)
        return cursor.rowcount > 0

    def record_failure(
        self, collection: CollectionName, record_id: str, error: str
    ) -> None:
        """Bump the attempt counter of a tombstone whose remote delete failed.

        Diagnostic only: subscribers are not notified since pending counts
        are unchanged.
        """
        conn = self._store._ensure_connected()
        conn.execute(
            """
            UPDATE deletions
            SET attempts = attempts + 1, last_error = ?
            WHERE collection = ? AND id = ?
            """,
            (error, collection.value, record_id),
        )
        conn.commit()


class LocalStore:
    """SQLite-based local storage with per-record sync status."""

    def __init__(self, db_path: str | Path):
        """Initialize the local store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None
        self._tables = {
            collection: CollectionTable(self, collection)
            for collection in CollectionName
        }
        self.tombstones = TombstoneTable(self)
        self._subscribers: list[ChangeCallback] = []

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if self._conn is not None:
            return

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA)
        self._conn.commit()

        logger.info(f"LocalStore connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("LocalStore connection closed")

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure we have a database connection."""
        if self._conn is None:
            self.connect()
        return self._conn

    def table(self, collection: CollectionName) -> CollectionTable:
        """Get the owner-scoped table for a collection."""
        return self._tables[collection]

    # ==================== Change Observation ====================

    def subscribe(self, callback: ChangeCallback) -> None:
        """Register a callback invoked after every mutation.

        The callback receives the mutated collection, or None when the
        change touched the deletions table.
        """
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: ChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, collection: CollectionName | None) -> None:
        for callback in list(self._subscribers):
            try:
                callback(collection)
            except Exception as e:
                logger.error(f"Store change subscriber failed: {e}", exc_info=True)

    # ==================== Domain Write Path ====================

    def save_local(
        self,
        collection: CollectionName,
        record_id: str,
        owner_id: str,
        payload: dict[str, Any],
    ) -> SyncRecord:
        """Store a local edit and mark it pending for the next push.

        Args:
            collection: Collection the document belongs to.
            record_id: Document id.
            owner_id: Authenticated user owning the document.
            payload: Domain document body.

        Returns:
            The stored record.
        """
        record = SyncRecord(
            collection=collection,
            id=record_id,
            owner_id=owner_id,
            payload=payload,
            sync_status=SyncStatus.PENDING,
            sync_error=None,
            updated_at=datetime.now(),
        )
        self.table(collection).upsert(record)
        return record

    def delete_local(
        self,
        collection: CollectionName,
        record_id: str,
        owner_id: str,
    ) -> DeletionTombstone:
        """Delete a record locally and queue its remote deletion."""
        tombstone = DeletionTombstone(
            collection=collection,
            id=record_id,
            owner_id=owner_id,
        )
        self.tombstones.add(tombstone)
        self.table(collection).delete(record_id)
        return tombstone

    # ==================== Metadata ====================

    def get_meta(self, key: str) -> str | None:
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT value FROM sync_meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str | None) -> None:
        conn = self._ensure_connected()
        conn.execute(
            "INSERT OR REPLACE INTO sync_meta (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    # ==================== Maintenance ====================

    def get_stats(self, owner_id: str | None = None) -> dict[str, Any]:
        """Get database statistics.

        Args:
            owner_id: Restrict record and tombstone counts to one owner.

        Returns:
            Dict with per-collection status counts and size info.
        """
        conn = self._ensure_connected()

        stats: dict[str, Any] = {"collections": {}}

        where = "WHERE owner_id = ?" if owner_id else ""
        params: tuple = (owner_id,) if owner_id else ()

        cursor = conn.execute(
            f"""
            SELECT collection, sync_status, COUNT(*) AS n
            FROM records {where}
            GROUP BY collection, sync_status
            """,
            params,
        )
        for row in cursor:
            by_status = stats["collections"].setdefault(row["collection"], {})
            by_status[row["sync_status"]] = row["n"]

        cursor = conn.execute(f"SELECT COUNT(*) FROM deletions {where}", params)
        stats["tombstones_count"] = cursor.fetchone()[0]

        # Database file size
        if self.db_path.exists():
            stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)

        return stats
