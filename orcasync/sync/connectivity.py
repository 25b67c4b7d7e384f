"""Online/offline tracking with optional HTTP reachability probing."""

import asyncio
import logging
from typing import Callable

import httpx

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Tracks online/offline transitions and notifies listeners.

    Defaults to online until told otherwise, either by the platform via
    `set_online()` or by the probe loop.
    """

    def __init__(
        self,
        probe_url: str | None = None,
        probe_interval_seconds: float = 30.0,
        timeout: float = 5.0,
        initially_online: bool = True,
    ):
        """Initialize the monitor.

        Args:
            probe_url: URL polled to detect reachability. Probing is
                disabled when None.
            probe_interval_seconds: Seconds between probes.
            timeout: Probe request timeout in seconds.
            initially_online: Starting state.
        """
        self.probe_url = probe_url
        self.probe_interval = probe_interval_seconds
        self.timeout = timeout
        self._online = initially_online
        self._listeners: list[ConnectivityListener] = []
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_online(self, online: bool) -> bool:
        """Record the current state, notifying listeners on a transition.

        Returns:
            True if the state changed.
        """
        if online == self._online:
            return False

        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")

        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception as e:
                logger.error(f"Connectivity listener failed: {e}", exc_info=True)

        return True

    async def check_once(self) -> bool:
        """Probe `probe_url` once and apply the result.

        Any HTTP response counts as online; only transport failures
        count as offline.

        Returns:
            The probed online state.
        """
        if not self.probe_url:
            return self._online

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                await client.get(self.probe_url)
            online = True
        except httpx.TransportError as e:
            logger.debug(f"Connectivity probe failed: {e}")
            online = False

        self.set_online(online)
        return online

    async def start(self) -> None:
        """Start the probe loop as a background task."""
        if self._running or not self.probe_url:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            f"Connectivity probe started ({self.probe_url}, "
            f"every {self.probe_interval}s)"
        )

    async def stop(self) -> None:
        """Stop the probe loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Connectivity probe stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.check_once()
            except Exception as e:
                logger.error(f"Connectivity probe error: {e}", exc_info=True)

            await asyncio.sleep(self.probe_interval)
