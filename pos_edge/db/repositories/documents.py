from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from pos_edge.core.errors import UnknownCollectionError
from pos_edge.db.models.order_items import OrderItem
from pos_edge.db.models.orders import Order
from pos_edge.db.models.products import Product

PRODUCTS = "products"
ORDERS = "orders"
ORDER_ITEMS = "order_items"

COLLECTIONS = {
    PRODUCTS: Product,
    ORDERS: Order,
    ORDER_ITEMS: OrderItem,
}


def model_for(collection: str):
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise UnknownCollectionError(f"Unknown collection: {collection}") from None


async def get_document(db: AsyncSession, collection: str, doc_id: str) -> Optional[dict]:
    model = model_for(collection)
    row = await db.get(model, doc_id)
    return dict(row.data) if row is not None else None


async def upsert_document(db: AsyncSession, collection: str, doc: dict) -> None:
    model = model_for(collection)
    await db.merge(model.from_document(doc))
    await db.flush()


async def delete_document(db: AsyncSession, collection: str, doc_id: str) -> bool:
    model = model_for(collection)
    row = await db.get(model, doc_id)
    if row is None:
        return False
    await db.delete(row)
    await db.flush()
    return True


async def find_products_by_prefix(db: AsyncSession, prefix: str) -> List[dict]:
    needle = (prefix or "").lower()
    query = select(Product).order_by(Product.name_lower, Product.id)
    if needle:
        query = query.where(Product.name_lower.startswith(needle, autoescape=True))
    result = await db.execute(query)
    return [dict(row.data) for row in result.scalars().all()]


async def list_recent_orders(db: AsyncSession, limit: int) -> List[dict]:
    result = await db.execute(
        select(Order).order_by(Order.updated_at.desc(), Order.id.desc()).limit(max(0, int(limit)))
    )
    return [dict(row.data) for row in result.scalars().all()]


async def list_order_items(db: AsyncSession, order_id: str) -> List[dict]:
    result = await db.execute(
        select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
    )
    return [dict(row.data) for row in result.scalars().all()]
