# pos_edge/domain/store/service.py
import copy
import inspect
import logging
import uuid
from collections import OrderedDict
from typing import Any, Callable, Iterable, List, Optional, Union

from pos_edge.core.clock import now_ms
from pos_edge.core.errors import NotFoundError
from pos_edge.core.events import EventBus
from pos_edge.db.models.orders import OrderStatus
from pos_edge.db.models.outbox import OpType, OutboxEntry
from pos_edge.db.repositories.documents import (
    ORDER_ITEMS,
    ORDERS,
    delete_document,
    find_products_by_prefix,
    get_document,
    list_order_items,
    list_recent_orders,
    model_for,
    upsert_document,
)
from pos_edge.db.repositories.outbox import add_operation, count_operations, delete_operations, list_pending
from pos_edge.db.repositories.sync_meta import cursor_key, get_value, set_value
from pos_edge.db.transport import LocalTransport
from .schemas import CreatedOrder, OrderCreate, OutboxOperation

logger = logging.getLogger(__name__)


class DocumentCache:
    """Bounded LRU of documents keyed by ``collection:id``.

    Values are deep-copied on the way in and out so callers never share state
    with the cache.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max(1, int(max_size))
        self._entries: "OrderedDict[str, dict]" = OrderedDict()

    @staticmethod
    def _key(collection: str, doc_id: str) -> str:
        return f"{collection}:{doc_id}"

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        key = self._key(collection, doc_id)
        doc = self._entries.get(key)
        if doc is None:
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(doc)

    def set(self, collection: str, doc_id: str, doc: dict) -> None:
        key = self._key(collection, doc_id)
        self._entries[key] = copy.deepcopy(doc)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def evict(self, collection: str, doc_id: str) -> None:
        self._entries.pop(self._key(collection, doc_id), None)

    def __contains__(self, key) -> bool:
        return self._key(*key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _new_operation(collection: str, op_type: OpType, doc_id: str, payload: Any, now: int) -> OutboxEntry:
    return OutboxEntry(
        id=f"{now}-{uuid.uuid4().hex[:12]}",
        collection=collection,
        op_type=op_type.value,
        doc_id=doc_id,
        payload=payload,
        created_at=now,
    )


class OfflineDataStore:
    """Authoritative local data layer for the till.

    Every mutation commits together with the outbox operation that describes
    it, then updates the read cache and emits a ``change`` event. Reads go
    through the cache first.
    """

    def __init__(self, transport: LocalTransport, cache_size: int = 1000, events: Optional[EventBus] = None):
        self.transport = transport
        self.events = events or EventBus()
        self.cache = DocumentCache(cache_size)

    def on(self, event_name: str, handler: Callable) -> Callable[[], None]:
        return self.events.on(event_name, handler)

    async def put(self, collection: str, document: dict) -> dict:
        model_for(collection)
        if not document.get("id"):
            raise ValueError("document requires an 'id'")
        now = now_ms()
        doc = {**document, "updatedAt": now}

        async def work(db):
            await upsert_document(db, collection, doc)
            await add_operation(db, _new_operation(collection, OpType.UPSERT, doc["id"], doc, now))

        await self.transport.transaction(work)
        self.cache.set(collection, doc["id"], doc)
        self.events.emit("change", {"collection": collection, "type": "put", "doc": doc})
        return doc

    async def create_order(self, data: Union[OrderCreate, dict]) -> CreatedOrder:
        if not isinstance(data, OrderCreate):
            data = OrderCreate.model_validate(data)
        now = now_ms()
        order_id = f"o_{now}_{uuid.uuid4().hex[:8]}"
        order = {
            "id": order_id,
            "status": OrderStatus.PENDING.value,
            "note": data.note or "",
            "subtotal": data.totals.subtotal,
            "createdAt": now,
            "updatedAt": now,
        }
        order_items = [
            {
                "id": f"{order_id}_{item.product.id}",
                "orderId": order_id,
                "productId": item.product.id,
                "name": item.product.name,
                "price": item.product.price,
                "qty": item.qty,
                "updatedAt": now,
            }
            for item in data.items
        ]

        async def work(db):
            await upsert_document(db, ORDERS, order)
            for item in order_items:
                await upsert_document(db, ORDER_ITEMS, item)
            payload = {"order": order, "orderItems": order_items}
            await add_operation(db, _new_operation(ORDERS, OpType.CREATE, order_id, payload, now))

        await self.transport.transaction(work)
        self.cache.set(ORDERS, order_id, order)
        for item in order_items:
            self.cache.set(ORDER_ITEMS, item["id"], item)
        logger.info("Order %s created with %s item(s)", order_id, len(order_items))
        self.events.emit(
            "change",
            {"collection": ORDERS, "type": "create", "doc": order, "items": order_items},
        )
        return CreatedOrder(order=order, order_items=order_items)

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        model_for(collection)
        cached = self.cache.get(collection, doc_id)
        if cached is not None:
            return cached
        doc = await self.transport.read(lambda db: get_document(db, collection, doc_id))
        if doc is not None:
            self.cache.set(collection, doc_id, doc)
        return doc

    async def query_products_by_prefix(self, prefix: str) -> List[dict]:
        return await self.transport.read(lambda db: find_products_by_prefix(db, prefix))

    async def delete(self, collection: str, doc_id: str) -> None:
        model_for(collection)
        now = now_ms()

        async def work(db):
            await delete_document(db, collection, doc_id)
            await add_operation(db, _new_operation(collection, OpType.DELETE, doc_id, None, now))

        await self.transport.transaction(work)
        self.cache.evict(collection, doc_id)
        self.events.emit("change", {"collection": collection, "type": "delete", "id": doc_id})

    async def update(self, collection: str, doc_id: str, mutate: Callable[[dict], Any]) -> dict:
        # Read and write run in separate transactions; a concurrent writer
        # between the two is overwritten (last write wins).
        current = await self.get(collection, doc_id)
        updated = mutate({**(current or {}), "id": doc_id})
        if inspect.isawaitable(updated):
            updated = await updated
        return await self.put(collection, updated)

    async def update_order_status(self, order_id: str, next_status: Union[OrderStatus, str]) -> dict:
        status = OrderStatus(next_status)
        now = now_ms()

        async def work(db):
            order = await get_document(db, ORDERS, order_id)
            if order is None:
                raise NotFoundError(f"Order not found: {order_id}")
            updated = {**order, "status": status.value, "updatedAt": now}
            await upsert_document(db, ORDERS, updated)
            payload = {"status": status.value, "updatedAt": now}
            await add_operation(db, _new_operation(ORDERS, OpType.UPDATE, order_id, payload, now))
            return updated

        updated = await self.transport.transaction(work)
        self.cache.evict(ORDERS, order_id)
        self.events.emit(
            "change",
            {"collection": ORDERS, "type": "status", "id": order_id, "status": status.value},
        )
        return updated

    async def get_recent_orders(self, limit: int = 10) -> List[dict]:
        return await self.transport.read(lambda db: list_recent_orders(db, limit))

    async def get_order_items(self, order_id: str) -> List[dict]:
        return await self.transport.read(lambda db: list_order_items(db, order_id))

    # Sync bookkeeping

    async def pending_operations(self, limit: int) -> List[OutboxOperation]:
        entries = await self.transport.read(lambda db: list_pending(db, limit))
        return [OutboxOperation.from_entry(e) for e in entries]

    async def outbox_size(self) -> int:
        return await self.transport.read(count_operations)

    async def acknowledge(self, operation_ids: Iterable[str]) -> int:
        ids = list(operation_ids)
        return await self.transport.transaction(lambda db: delete_operations(db, ids))

    async def get_cursor(self, collection: str) -> Optional[Any]:
        return await self.transport.read(lambda db: get_value(db, cursor_key(collection)))

    async def apply_remote_changes(self, collection: str, changes: list, cursor: Any) -> List[str]:
        """Apply a pulled batch and advance the collection cursor atomically.

        Pulled changes are not logged to the outbox. Re-applying the same
        batch leaves the store unchanged.
        """
        model_for(collection)

        async def work(db):
            touched = []
            for change in changes:
                if change.type == "delete":
                    doc_id = change.id or change.document["id"]
                    await delete_document(db, collection, doc_id)
                else:
                    doc_id = change.document["id"]
                    await upsert_document(db, collection, change.document)
                touched.append(doc_id)
            await set_value(db, cursor_key(collection), cursor, now_ms())
            return touched

        touched = await self.transport.transaction(work)
        for doc_id in touched:
            self.cache.evict(collection, doc_id)
        if touched:
            self.events.emit("change", {"collection": collection, "type": "pull", "ids": touched})
        return touched
