# pos_edge/db/models/outbox.py
import enum

from sqlalchemy import JSON, BigInteger, Column, Index, String

from pos_edge.db.base import Base


class OpType(str, enum.Enum):
    UPSERT = "upsert"
    CREATE = "create"
    DELETE = "delete"
    UPDATE = "update"


class OutboxEntry(Base):
    __tablename__ = "outbox"

    """Outbox record describing one committed local mutation.

    Rows are written in the same transaction as the mutation they describe and
    are removed only after the remote service has acknowledged the batch that
    carried them. Delivery order is ``(created_at, id)``.
    """

    id = Column(String, primary_key=True)
    collection = Column(String, nullable=False, index=True)
    op_type = Column(String, nullable=False)
    doc_id = Column(String, nullable=False)

    payload = Column(JSON, nullable=True)

    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_outbox_created_at_id", "created_at", "id"),
    )
