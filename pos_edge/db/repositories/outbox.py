from typing import Iterable, List

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from pos_edge.db.models.outbox import OutboxEntry


async def add_operation(db: AsyncSession, entry: OutboxEntry) -> OutboxEntry:
    db.add(entry)
    await db.flush()
    return entry


async def list_pending(db: AsyncSession, limit: int) -> List[OutboxEntry]:
    result = await db.execute(
        select(OutboxEntry).order_by(OutboxEntry.created_at, OutboxEntry.id).limit(limit)
    )
    return list(result.scalars().all())


async def delete_operations(db: AsyncSession, ids: Iterable[str]) -> int:
    ids = list(ids)
    if not ids:
        return 0
    result = await db.execute(delete(OutboxEntry).where(OutboxEntry.id.in_(ids)))
    return result.rowcount or 0


async def count_operations(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(OutboxEntry))
    return int(result.scalar() or 0)
