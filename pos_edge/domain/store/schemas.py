# pos_edge/domain/store/schemas.py
from typing import Any, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from pos_edge.db.models.orders import OrderStatus
from pos_edge.db.models.outbox import OpType

# Forward-only progression used by the order board; ``failed`` is set explicitly.
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}


def next_status(status) -> Optional[OrderStatus]:
    return NEXT_STATUS.get(OrderStatus(status))


class ProductRef(BaseModel):
    id: str
    name: str = ""
    price: int = 0

    class Config:
        extra = "allow"


class CartItem(BaseModel):
    product: ProductRef
    qty: int = Field(gt=0)


class Totals(BaseModel):
    subtotal: int = 0

    class Config:
        extra = "allow"


class OrderCreate(BaseModel):
    items: List[CartItem]
    note: Optional[str] = ""
    totals: Totals = Field(default_factory=Totals)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OutboxOperation(BaseModel):
    """Wire form of an outbox entry, camelCased as the sync service expects."""

    id: str
    collection: str
    op_type: OpType
    doc_id: str
    payload: Optional[Any] = None
    created_at: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True

    @classmethod
    def from_entry(cls, entry) -> "OutboxOperation":
        return cls(
            id=entry.id,
            collection=entry.collection,
            op_type=entry.op_type,
            doc_id=entry.doc_id,
            payload=entry.payload,
            created_at=entry.created_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class CreatedOrder(BaseModel):
    order: dict
    order_items: List[dict]

    class Config:
        alias_generator = to_camel
        populate_by_name = True
