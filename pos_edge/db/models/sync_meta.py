# pos_edge/db/models/sync_meta.py
from sqlalchemy import JSON, BigInteger, Column, String

from pos_edge.db.base import Base


class SyncMeta(Base):
    __tablename__ = "sync_meta"

    """Key-value metadata for synchronization streams.

    Holds one pull cursor per collection under ``cursor:<collection>``. Cursor
    values are opaque and written in the same transaction as the documents of
    the batch they acknowledge.
    """

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)

    updated_at = Column(BigInteger, nullable=False, default=0)
