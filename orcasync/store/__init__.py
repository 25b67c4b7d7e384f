"""Local persistent store for synchronized records."""

from .local_store import CollectionTable, LocalStore, TombstoneTable

__all__ = ["CollectionTable", "LocalStore", "TombstoneTable"]
