"""Closed mapping from collection to its remote sync capabilities."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping

from ..records import CollectionName, RemoteDocument, SyncRecord
from ..remote.base import RemoteStore

PushFn = Callable[[SyncRecord], Awaitable[None]]
PullFn = Callable[[str], Awaitable[list[RemoteDocument]]]
DeleteFn = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class CollectionCapabilities:
    """What the engine can do with one collection remotely."""

    collection: CollectionName
    push: PushFn
    pull: PullFn
    delete: DeleteFn | None = None


CollectionRegistry = dict[CollectionName, CollectionCapabilities]


def capabilities_for(remote: RemoteStore) -> CollectionCapabilities:
    """Derive the capability set of a remote store."""
    return CollectionCapabilities(
        collection=remote.collection,
        push=remote.upsert_one,
        pull=remote.fetch_all_for_owner,
        delete=remote.delete_one if remote.supports_delete else None,
    )


def build_registry(
    remotes: Mapping[CollectionName, RemoteStore] | list[RemoteStore],
) -> CollectionRegistry:
    """Build the registry covering every collection.

    Args:
        remotes: One remote store per collection, as a list or a mapping.

    Returns:
        Mapping from every CollectionName to its capabilities.

    Raises:
        ValueError: If a collection is missing or mapped to the wrong store.
    """
    if isinstance(remotes, Mapping):
        stores = dict(remotes)
        for name, remote in stores.items():
            if remote.collection != name:
                raise ValueError(
                    f"Store for {remote.collection.value} registered as {name.value}"
                )
    else:
        stores = {remote.collection: remote for remote in remotes}

    missing = [c.value for c in CollectionName if c not in stores]
    if missing:
        raise ValueError(f"No remote store for collections: {', '.join(missing)}")

    return {name: capabilities_for(stores[name]) for name in CollectionName}
