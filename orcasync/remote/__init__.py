"""Remote document store collaborators."""

from .base import RemoteStore
from .http_store import HttpRemoteStore, NoDeleteHttpRemoteStore
from .memory import InMemoryRemoteStore

__all__ = [
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "NoDeleteHttpRemoteStore",
    "RemoteStore",
]
