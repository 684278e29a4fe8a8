# pos_edge/db/models/order_items.py
from sqlalchemy import JSON, BigInteger, Column, String

from pos_edge.db.base import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    """A single product line within an order.

    ``order_id`` is a back-reference only: there is no foreign key and deleting
    an order leaves its items in place.
    """

    id = Column(String, primary_key=True)
    order_id = Column(String, nullable=True, index=True)

    data = Column(JSON, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    @classmethod
    def from_document(cls, doc: dict) -> "OrderItem":
        return cls(
            id=doc["id"],
            order_id=doc.get("orderId"),
            data=doc,
            updated_at=int(doc.get("updatedAt") or 0),
        )
