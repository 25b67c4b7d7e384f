"""Wires the local store, remote stores and coordinator into a running node."""

import asyncio
import logging

import httpx

from .config import Config
from .records import CollectionName
from .remote import HttpRemoteStore, NoDeleteHttpRemoteStore, RemoteStore
from .store import LocalStore
from .sync import ConnectivityMonitor, SyncCoordinator, build_registry

logger = logging.getLogger(__name__)

# Singleton collections are never deleted remotely
NO_REMOTE_DELETE = {CollectionName.ORGANIZATION}


def create_remote_stores(
    config: Config,
    client: httpx.AsyncClient | None = None,
) -> dict[CollectionName, RemoteStore]:
    """Create one HTTP remote store per collection.

    Args:
        config: Configuration with the remote base URL.
        client: Shared AsyncClient for all collections.

    Raises:
        ValueError: If no remote base URL is configured.
    """
    if not config.remote.base_url:
        raise ValueError("No remote base URL configured (remote.base_url)")

    stores: dict[CollectionName, RemoteStore] = {}
    for collection in CollectionName:
        store_cls = (
            NoDeleteHttpRemoteStore
            if collection in NO_REMOTE_DELETE
            else HttpRemoteStore
        )
        stores[collection] = store_cls(
            collection=collection,
            base_url=config.remote.base_url,
            api_token=config.remote.api_token,
            timeout=config.remote.timeout_seconds,
            client=client,
        )
    return stores


class SyncNode:
    """A local node synchronizing one user's data with the remote store."""

    def __init__(
        self,
        config: Config,
        remotes: dict[CollectionName, RemoteStore] | None = None,
        store: LocalStore | None = None,
    ):
        """Initialize the node.

        Args:
            config: Node configuration.
            remotes: Remote stores per collection. HTTP stores are built
                from the config when omitted.
            store: Local store. Opened from `config.local.db_path` when omitted.
        """
        self.config = config
        self._client: httpx.AsyncClient | None = None

        if remotes is None:
            if not config.remote.base_url:
                raise ValueError("No remote base URL configured (remote.base_url)")

            headers = {}
            if config.remote.api_token:
                headers["Authorization"] = f"Bearer {config.remote.api_token}"
            self._client = httpx.AsyncClient(
                base_url=config.remote.base_url,
                timeout=config.remote.timeout_seconds,
                headers=headers,
            )
            remotes = create_remote_stores(config, client=self._client)

        self.store = store or LocalStore(config.local.db_path)
        self.store.connect()

        self.connectivity = ConnectivityMonitor(
            probe_url=config.connectivity.probe_url,
            probe_interval_seconds=config.connectivity.probe_interval_seconds,
            timeout=config.connectivity.probe_timeout_seconds,
        )
        self.coordinator = SyncCoordinator(
            store=self.store,
            registry=build_registry(remotes),
            connectivity=self.connectivity,
            user_id=config.auth.user_id,
            auto_pull_on_start=config.sync.auto_pull_on_start,
            backlog_interval_seconds=config.sync.backlog_interval_seconds,
        )
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Probe connectivity once, then start the probe loop and triggers."""
        logger.info(f"Starting orcasync node: {self.config.node.name}")

        if self.connectivity.probe_url:
            await self.connectivity.check_once()
            await self.connectivity.start()

        await self.coordinator.start()
        logger.info("Node started")

    async def stop(self) -> None:
        """Stop background work and release resources."""
        logger.info("Stopping node...")
        self._stop_event.set()
        await self.coordinator.stop()
        await self.connectivity.stop()

        if self._client:
            await self._client.aclose()
            self._client = None

        self.store.close()
        logger.info("Node stopped")

    async def wait(self) -> None:
        """Block until `stop()` is called."""
        await self._stop_event.wait()


async def run_node(config: Config) -> None:
    """Run a sync node until interrupted.

    Args:
        config: Node configuration.
    """
    node = SyncNode(config)

    try:
        await node.start()
        await node.wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await node.stop()
