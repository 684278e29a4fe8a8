# pos_edge/db/models/orders.py
import enum

from sqlalchemy import JSON, BigInteger, Column, Index, String

from pos_edge.db.base import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"


class Order(Base):
    __tablename__ = "orders"

    """A single POS order (receipt header).

    The order document (note, subtotal, timestamps) is kept in ``data``; status
    and ``updated_at`` are projected into columns for the recent-orders view.
    """

    id = Column(String, primary_key=True)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)

    data = Column(JSON, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_orders_updated_at_id", "updated_at", "id"),
    )

    @classmethod
    def from_document(cls, doc: dict) -> "Order":
        status = doc.get("status") or OrderStatus.PENDING.value
        return cls(
            id=doc["id"],
            status=status.value if isinstance(status, OrderStatus) else str(status),
            data=doc,
            updated_at=int(doc.get("updatedAt") or 0),
        )
