import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio.session import AsyncSession

from pos_edge.core.errors import StorageError
from pos_edge.db.base import Base, make_engine, make_session_factory

# imported for their side effect of registering tables on Base.metadata
from pos_edge.db.models import order_items, orders, outbox, print_jobs, products, sync_meta  # noqa: F401

logger = logging.getLogger(__name__)

T = TypeVar("T")
UnitOfWork = Callable[[AsyncSession], Awaitable[T]]


class LocalTransport:
    """Transactional access to the durable local collections.

    Every unit of work runs in its own session and transaction: it commits when
    the callable returns and rolls back when it raises, so nothing is ever
    partially visible. Driver-level failures (lock conflicts, I/O errors) retry
    the whole unit with linear backoff before surfacing as ``StorageError``.
    """

    def __init__(self, db_url: str, retries: int = 2, retry_delay_ms: int = 100, echo: bool = False):
        self.db_url = db_url
        self.retries = retries
        self.retry_delay_ms = retry_delay_ms
        self.engine = make_engine(db_url, echo=echo)
        self.session_factory = make_session_factory(self.engine)

    async def init_models(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def transaction(self, fn: UnitOfWork, retries: Optional[int] = None) -> T:
        budget = self.retries if retries is None else retries
        attempt = 0
        while True:
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        return await fn(db)
            except SQLAlchemyError as e:
                if attempt >= budget:
                    raise StorageError(f"Transaction failed after {attempt + 1} attempt(s): {e}") from e
                attempt += 1
                logger.warning("Transaction failed (attempt %s/%s), retrying: %s", attempt, budget + 1, e)
                await asyncio.sleep(self.retry_delay_ms * attempt / 1000)

    async def read(self, fn: UnitOfWork) -> T:
        try:
            async with self.session_factory() as db:
                return await fn(db)
        except SQLAlchemyError as e:
            raise StorageError(f"Read failed: {e}") from e
