from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from pos_edge.db.models.sync_meta import SyncMeta


def cursor_key(collection: str) -> str:
    return f"cursor:{collection}"


async def get_value(db: AsyncSession, key: str, default: Any = None) -> Any:
    row = await db.get(SyncMeta, key)
    if row is None or row.value is None:
        return default
    return row.value


async def set_value(db: AsyncSession, key: str, value: Any, now: int) -> None:
    await db.merge(SyncMeta(key=key, value=value, updated_at=now))
    await db.flush()
