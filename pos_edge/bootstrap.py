# pos_edge/bootstrap.py
import logging
from dataclasses import dataclass, field

from pos_edge.core.backoff import ExponentialBackoff
from pos_edge.core.config import Settings
from pos_edge.core.events import EventBus
from pos_edge.db.transport import LocalTransport
from pos_edge.domain.printing.service import PrintJobProcessor
from pos_edge.domain.store.service import OfflineDataStore
from pos_edge.domain.sync.client import RemoteSyncClient
from pos_edge.domain.sync.service import SyncEngine

logger = logging.getLogger(__name__)


@dataclass
class Core:
    transport: LocalTransport
    store: OfflineDataStore
    sync: SyncEngine
    printer: PrintJobProcessor
    connectivity: EventBus = field(default_factory=EventBus)

    def stop(self) -> None:
        self.sync.stop()
        self.printer.stop()


async def bootstrap_core(settings: Settings, start: bool = True) -> Core:
    """Open the local database and wire the store, sync engine and printer.

    All three components share one transport, so they see the same durable
    collections.
    """
    transport = LocalTransport(
        settings.DB_URL,
        retries=settings.STORE_TX_RETRIES,
        retry_delay_ms=settings.STORE_TX_RETRY_DELAY_MS,
        echo=settings.DB_ECHO,
    )
    await transport.init_models()

    store = OfflineDataStore(transport, cache_size=settings.STORE_CACHE_SIZE)

    client = None
    if settings.SYNC_ENDPOINT:
        client = RemoteSyncClient(settings.SYNC_ENDPOINT, timeout=settings.SYNC_TIMEOUT_SECONDS)
    else:
        logger.info("No SYNC_ENDPOINT configured, running in local-only mode")

    connectivity = EventBus()
    sync = SyncEngine(
        store,
        client=client,
        batch_size=settings.SYNC_BATCH_SIZE,
        backoff=ExponentialBackoff(
            base_ms=settings.SYNC_BACKOFF_BASE_MS,
            max_ms=settings.SYNC_BACKOFF_MAX_MS,
            factor=settings.SYNC_BACKOFF_FACTOR,
            jitter=settings.SYNC_BACKOFF_JITTER,
        ),
        connectivity=connectivity,
    )
    printer = PrintJobProcessor(
        transport,
        max_attempts=settings.PRINT_MAX_ATTEMPTS,
        retry_base_ms=settings.PRINT_RETRY_BASE_MS,
        retry_max_ms=settings.PRINT_RETRY_MAX_MS,
        idle_ms=settings.PRINT_IDLE_MS,
        loop_delay_ms=settings.PRINT_LOOP_DELAY_MS,
    )
    await printer.requeue_interrupted()

    if start and settings.SYNC_AUTOSTART:
        sync.start(settings.SYNC_INTERVAL_MS)
    if start and settings.PRINT_AUTOSTART:
        printer.start()

    return Core(transport=transport, store=store, sync=sync, printer=printer, connectivity=connectivity)
