"""Offline-first synchronization between a local SQLite store and a remote document store."""

__version__ = "0.1.0"
