"""Sync coordinator: global lock, session lifecycle and triggers."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine

from ..errors import AlreadySyncingError, PullReconciliationError
from ..store.local_store import LocalStore
from .connectivity import ConnectivityMonitor
from .pull import PullPipeline, PullResult
from .push import PushPipeline, PushResult
from .registry import CollectionRegistry
from .state import SyncCounts, SyncStateStore
from .status import CoordinatorState, SyncStatusSnapshot

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync_timestamp"


class ForceSyncStatus(Enum):
    """Outcome of a manual sync request."""

    COMPLETED = "completed"
    FAILED = "failed"  # Pull aborted
    ALREADY_SYNCING = "already_syncing"
    SKIPPED = "skipped"  # Offline or signed out


@dataclass
class ForceSyncResult:
    """Result of `SyncCoordinator.force_sync()`."""

    status: ForceSyncStatus
    push: PushResult | None = None
    pull: PullResult | None = None
    error: str | None = None


@dataclass
class Notice:
    """Transient user-facing message (toast)."""

    level: str  # "info" or "error"
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SyncSession:
    """Process-wide sync session state."""

    user_id: str | None = None
    lock_held: bool = False
    initial_pull_done: bool = False
    last_sync_timestamp: datetime | None = None


NoticeListener = Callable[[Notice], None]


class SyncCoordinator:
    """Owns the sync lock and decides when to push and pull.

    At most one push or pull runs at a time. The lock is a plain flag:
    everything runs on one event loop and the flag is checked and set
    before the first await of an operation, so no other task can slip in
    between. Callers sharing a coordinator across threads must route all
    calls through the loop that owns it.

    Triggers:
    - backlog: pending work exists while online, pushes without error items
    - session start: authenticated and online without an initial pull
    - manual: `force_sync()` pushes everything (errors included), then pulls
    """

    def __init__(
        self,
        store: LocalStore,
        registry: CollectionRegistry,
        connectivity: ConnectivityMonitor | None = None,
        state_store: SyncStateStore | None = None,
        user_id: str | None = None,
        auto_pull_on_start: bool = True,
        backlog_interval_seconds: float = 0,
    ):
        """Initialize the coordinator.

        Args:
            store: Local store shared with the domain layer.
            registry: Capabilities for every collection.
            connectivity: Online/offline monitor. A default (online) one
                is created when omitted.
            state_store: Counts aggregator. Created when omitted.
            user_id: Currently authenticated user, if any.
            auto_pull_on_start: Pull once per session when online.
            backlog_interval_seconds: Period of the background backlog
                check started by `start()`. Zero disables it.
        """
        self._store = store
        self._push_pipeline = PushPipeline(store, registry)
        self._pull_pipeline = PullPipeline(store, registry)
        self.connectivity = connectivity or ConnectivityMonitor()
        self.state_store = state_store or SyncStateStore(store)
        self.auto_pull_on_start = auto_pull_on_start
        self.backlog_interval = backlog_interval_seconds

        self.session = SyncSession(
            user_id=user_id,
            last_sync_timestamp=self._load_last_sync(),
        )
        self._state = CoordinatorState.IDLE
        self.state_store.track(user_id)

        self._notice_listeners: list[NoticeListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._loop_task: asyncio.Task | None = None
        self._started = False
        self._applying_connectivity = False

    # ==================== Properties ====================

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self.session.lock_held

    @property
    def user_id(self) -> str | None:
        return self.session.user_id

    @property
    def last_sync_timestamp(self) -> datetime | None:
        return self.session.last_sync_timestamp

    # ==================== Lock ====================

    def _acquire(self, state: CoordinatorState) -> None:
        """Take the sync lock. Must run before the operation's first await."""
        if self.session.lock_held:
            raise AlreadySyncingError(f"Cannot start {state.value}: sync in progress")
        self.session.lock_held = True
        self._state = state

    def _release(self) -> None:
        self.session.lock_held = False
        self._state = CoordinatorState.IDLE

    def _blocked_reason(self) -> str | None:
        """Why a sync cannot start right now, or None if it can."""
        if not self.session.user_id:
            return "not authenticated"
        if not self.connectivity.is_online:
            return "offline"
        return None

    # ==================== Operations ====================

    async def push(self, include_error_items: bool = False) -> PushResult | None:
        """Push the current user's backlog.

        No-op (returns None) while locked, signed out or offline.

        Args:
            include_error_items: Also retry records in error.
        """
        if self._blocked_reason():
            return None

        try:
            self._acquire(CoordinatorState.PUSHING)
        except AlreadySyncingError as e:
            logger.debug(f"Push skipped: {e}")
            return None

        try:
            return await self._run_push(include_error_items)
        finally:
            self._release()

    async def pull(self) -> PullResult | None:
        """Reconcile the local store with the remote snapshot.

        No-op (returns None) while locked, signed out or offline.

        Raises:
            PullReconciliationError: If the pass was aborted. The session's
                initial pull stays pending so a later trigger retries.
        """
        if self._blocked_reason():
            return None

        try:
            self._acquire(CoordinatorState.PULLING)
        except AlreadySyncingError as e:
            logger.debug(f"Pull skipped: {e}")
            return None

        try:
            return await self._run_pull()
        finally:
            self._release()

    async def force_sync(self) -> ForceSyncResult:
        """Manually push everything (errors included), then pull.

        Holds the lock across both phases so the push always completes
        before the authoritative pull starts. Never raises for sync
        failures; the outcome is reported in the result and as notices.
        """
        try:
            self._acquire(CoordinatorState.PUSHING)
        except AlreadySyncingError:
            self._notify("info", "Sync already in progress.")
            return ForceSyncResult(status=ForceSyncStatus.ALREADY_SYNCING)

        reason = self._blocked_reason()
        if reason:
            self._release()
            self._notify("info", f"Sync skipped: {reason}.")
            return ForceSyncResult(status=ForceSyncStatus.SKIPPED, error=reason)

        self._notify("info", "Starting manual sync...")
        try:
            push_result = await self._run_push(include_error_items=True)

            self._state = CoordinatorState.PULLING
            try:
                pull_result = await self._run_pull()
            except PullReconciliationError as e:
                self._notify("error", "Failed to fetch data from the cloud.")
                return ForceSyncResult(
                    status=ForceSyncStatus.FAILED,
                    push=push_result,
                    error=str(e),
                )
        finally:
            self._release()

        self._notify("info", "Sync complete.")
        return ForceSyncResult(
            status=ForceSyncStatus.COMPLETED,
            push=push_result,
            pull=pull_result,
        )

    async def _run_push(self, include_error_items: bool) -> PushResult:
        owner_id = self.session.user_id
        result = await self._push_pipeline.run(owner_id, include_error_items)
        self._mark_synced()
        return result

    async def _run_pull(self) -> PullResult:
        owner_id = self.session.user_id
        result = await self._pull_pipeline.run(owner_id)

        # A sign-out or user switch during the pull starts a new session
        if self.session.user_id == owner_id:
            self.session.initial_pull_done = True
        self._mark_synced()
        return result

    def _mark_synced(self) -> None:
        now = datetime.now()
        self.session.last_sync_timestamp = now
        self._store.set_meta(LAST_SYNC_KEY, now.isoformat())

    def _load_last_sync(self) -> datetime | None:
        value = self._store.get_meta(LAST_SYNC_KEY)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning(f"Ignoring malformed last sync timestamp: {value!r}")
            return None

    # ==================== Triggers ====================

    async def check_backlog(self) -> PushResult | None:
        """Push if the current user has pending work."""
        counts = self.state_store.get_counts(self.session.user_id)
        if counts.pending_count <= 0:
            return None
        return await self.push(include_error_items=False)

    async def ensure_initial_pull(self) -> PullResult | None:
        """Run the session-start pull if it has not succeeded yet.

        Failures are reported as a notice, not raised.
        """
        if not self.auto_pull_on_start or self.session.initial_pull_done:
            return None

        try:
            return await self.pull()
        except PullReconciliationError as e:
            logger.warning(f"Initial pull failed: {e}")
            self._notify("error", "Failed to fetch data from the cloud.")
            return None

    async def run_triggers(self) -> None:
        """Evaluate the automatic triggers: backlog push, then session pull."""
        await self.check_backlog()
        await self.ensure_initial_pull()

    async def on_connectivity_change(self, online: bool) -> None:
        """Platform signal that connectivity changed."""
        self._applying_connectivity = True
        try:
            self.connectivity.set_online(online)
        finally:
            self._applying_connectivity = False

        if online:
            await self.run_triggers()

    async def on_auth_change(self, user_id: str | None) -> None:
        """Authentication signal: sign-in, sign-out or user switch.

        A different user starts a new session: the initial pull flag is
        reset and counts are tracked for the new owner. An in-flight
        operation keeps the lock until it finishes.
        """
        if user_id == self.session.user_id:
            return

        logger.info(f"Sync session changed: {self.session.user_id} -> {user_id}")
        self.session.user_id = user_id
        self.session.initial_pull_done = False
        self.state_store.track(user_id)

        if user_id and self.connectivity.is_online:
            await self.run_triggers()

    def get_status(self) -> SyncStatusSnapshot:
        """Current status for status indicators."""
        counts = self.state_store.get_counts(self.session.user_id)
        return SyncStatusSnapshot(
            is_online=self.connectivity.is_online,
            is_syncing=self.session.lock_held,
            pending_count=counts.pending_count,
            error_count=counts.error_count,
            last_sync_timestamp=self.session.last_sync_timestamp,
            state=self._state,
            user_id=self.session.user_id,
            initial_pull_done=self.session.initial_pull_done,
        )

    # ==================== Notices ====================

    def add_notice_listener(self, listener: NoticeListener) -> None:
        if listener not in self._notice_listeners:
            self._notice_listeners.append(listener)

    def remove_notice_listener(self, listener: NoticeListener) -> None:
        if listener in self._notice_listeners:
            self._notice_listeners.remove(listener)

    def _notify(self, level: str, message: str) -> None:
        notice = Notice(level=level, message=message)
        if level == "error":
            logger.warning(message)
        else:
            logger.info(message)

        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.error(f"Notice listener failed: {e}", exc_info=True)

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        """Attach to connectivity and count changes and run the triggers.

        Must be called from the running event loop.
        """
        if self._started:
            return

        self._started = True
        self.connectivity.add_listener(self._on_connectivity_event)
        self.state_store.add_listener(self._on_counts_changed)

        if self.backlog_interval > 0:
            self._loop_task = asyncio.create_task(self._backlog_loop())

        self._schedule(self.run_triggers())
        logger.info(f"Sync coordinator started for {self.session.user_id}")

    async def stop(self) -> None:
        """Detach listeners and cancel outstanding trigger tasks."""
        self._started = False
        self.connectivity.remove_listener(self._on_connectivity_event)
        self.state_store.remove_listener(self._on_counts_changed)

        tasks = list(self._tasks)
        if self._loop_task:
            tasks.append(self._loop_task)
            self._loop_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        logger.info("Sync coordinator stopped")

    async def drain(self) -> None:
        """Wait until all scheduled trigger tasks have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(self._guarded(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guarded(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await coro
        except Exception as e:
            logger.error(f"Sync trigger failed: {e}", exc_info=True)

    def _on_connectivity_event(self, online: bool) -> None:
        # Changes applied through on_connectivity_change run their own triggers
        if self._applying_connectivity or not online or not self._started:
            return
        self._schedule(self.run_triggers())

    def _on_counts_changed(self, counts: SyncCounts) -> None:
        if not self._started or counts.pending_count <= 0:
            return
        if self.session.lock_held or not self.connectivity.is_online:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Mutation made outside the event loop; the backlog loop picks it up
            return
        self._schedule(self.check_backlog())

    async def _backlog_loop(self) -> None:
        """Periodically retry outstanding work without user action."""
        while self._started:
            await asyncio.sleep(self.backlog_interval)
            try:
                if self.connectivity.is_online:
                    await self.run_triggers()
            except Exception as e:
                logger.error(f"Backlog check failed: {e}", exc_info=True)
