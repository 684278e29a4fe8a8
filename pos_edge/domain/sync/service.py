# pos_edge/domain/sync/service.py
import asyncio
import logging
from typing import Callable, Optional

from pos_edge.core.backoff import ExponentialBackoff
from pos_edge.core.clock import now_ms
from pos_edge.core.errors import TransportError
from pos_edge.core.events import EventBus
from pos_edge.db.repositories.documents import ORDER_ITEMS, ORDERS, PRODUCTS
from pos_edge.domain.store.service import OfflineDataStore
from .client import RemoteSyncClient
from .schemas import SyncResult, SyncStatus

logger = logging.getLogger(__name__)

PULL_COLLECTIONS = (PRODUCTS, ORDERS, ORDER_ITEMS)


class SyncEngine:
    """Pushes the outbox to the remote authority and pulls remote changes back.

    One pass is push-then-pull. Passes are serialized: the periodic timer and
    out-of-band triggers never run two passes at once. Failures inside the
    timer loop are logged and paced by the backoff policy; they never stop it.
    """

    def __init__(
        self,
        store: OfflineDataStore,
        client: Optional[RemoteSyncClient] = None,
        batch_size: int = 50,
        backoff: Optional[ExponentialBackoff] = None,
        connectivity: Optional[EventBus] = None,
        events: Optional[EventBus] = None,
    ):
        self.store = store
        self.client = client
        self.batch_size = max(1, int(batch_size))
        self.backoff = backoff or ExponentialBackoff(base_ms=1000, max_ms=30000, factor=2, jitter=0.25)
        self.connectivity = connectivity
        self.events = events or EventBus()

        self.running = False
        self.online = True
        self._interval_ms = 15000
        self.last_sync_at: Optional[int] = None
        self.last_error: Optional[str] = None

        self._timer: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._tasks = set()
        self._lock = asyncio.Lock()
        self._unsubscribe = []

    def on(self, event_name: str, handler: Callable) -> Callable[[], None]:
        return self.events.on(event_name, handler)

    # Scheduling

    def start(self, interval_ms: int = 15000) -> None:
        if self.running:
            return
        self.running = True
        self._interval_ms = interval_ms
        if self.connectivity is not None:
            self._unsubscribe = [
                self.connectivity.on("online", lambda _=None: self.notify_online()),
                self.connectivity.on("visible", lambda _=None: self.notify_online()),
            ]
        self._generation += 1
        self._spawn(self._tick(self._generation))

    def stop(self) -> None:
        self.running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def notify_online(self) -> None:
        """Run an immediate pass unless one is already in flight."""
        if not self.running or self._lock.locked():
            return
        self._spawn(self._out_of_band())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _out_of_band(self) -> None:
        try:
            await self.sync_once()
        except Exception as e:
            logger.warning("Out-of-band sync failed: %s", e)

    def _is_current(self, generation: int) -> bool:
        return self.running and generation == self._generation

    async def _tick(self, generation: Optional[int] = None) -> None:
        # a tick left over from before stop() never re-arms after a restart
        if generation is None:
            generation = self._generation
        if not self._is_current(generation):
            return
        try:
            await self.sync_once()
            self.backoff.reset()
        except Exception as e:
            logger.warning("Sync pass failed, retrying with backoff: %s", e)
        finally:
            if self._is_current(generation):
                delay_ms = max(self._interval_ms, self.backoff.next_delay_ms())
                if self._timer is not None:
                    self._timer.cancel()
                loop = asyncio.get_running_loop()
                self._timer = loop.call_later(delay_ms / 1000, lambda: self._spawn(self._tick(generation)))

    # Passes

    async def sync_once(self) -> SyncResult:
        async with self._lock:
            try:
                pushed = await self.push()
                pulled = await self.pull() if self.client is not None else 0
            except Exception as e:
                self.online = False
                self.last_error = str(e)
                raise
            self.online = True
            self.last_error = None
            self.last_sync_at = now_ms()
        result = SyncResult(pushed=pushed, pulled=pulled)
        logger.info("Sync complete: pushed=%s pulled=%s", pushed, pulled)
        self.events.emit("sync:complete", result.model_dump())
        return result

    async def push(self) -> int:
        """Drain the outbox oldest-first in batches of ``batch_size``.

        A batch is deleted only after the remote acknowledged it. A failed
        transmission stops the phase; earlier batches stay acknowledged and
        the rest stays queued.
        """
        total = 0
        while True:
            operations = await self.store.pending_operations(self.batch_size)
            if not operations:
                break
            self.events.emit("sync:push", {"batch": len(operations)})
            if self.client is not None:
                try:
                    await self.client.push([op.to_wire() for op in operations])
                except TransportError as e:
                    self.events.emit("sync:error", {"phase": "push", "error": str(e)})
                    raise
            await self.store.acknowledge(op.id for op in operations)
            total += len(operations)
            if len(operations) < self.batch_size:
                break
        return total

    async def pull(self) -> int:
        """Pull remote changes for each collection since its stored cursor.

        A failing collection keeps its cursor at the last applied batch and
        does not stop the others; the first failure is re-raised at the end.
        """
        if self.client is None:
            return 0
        total = 0
        failure: Optional[TransportError] = None
        for collection in PULL_COLLECTIONS:
            try:
                total += await self._pull_collection(collection)
            except TransportError as e:
                self.events.emit("sync:error", {"phase": "pull", "collection": collection, "error": str(e)})
                logger.warning("Pull for %s failed: %s", collection, e)
                failure = failure or e
        if failure is not None:
            raise failure
        return total

    async def _pull_collection(self, collection: str) -> int:
        cursor = await self.store.get_cursor(collection)
        pulled = 0
        while True:
            self.events.emit("sync:pull", {"collection": collection, "cursor": cursor})
            response = await self.client.pull(collection, cursor, self.batch_size)
            changes = response.changes
            if not changes:
                break
            next_cursor = response.next_cursor if response.next_cursor is not None else cursor
            await self.store.apply_remote_changes(collection, changes, next_cursor)
            cursor = next_cursor
            pulled += len(changes)
            if not response.has_more or len(changes) < self.batch_size:
                break
        return pulled

    async def status(self) -> SyncStatus:
        return SyncStatus(
            running=self.running,
            online=self.online,
            last_sync_at=self.last_sync_at,
            last_error=self.last_error,
            pending_operations=await self.store.outbox_size(),
        )
