# pos_edge/api/v1/routes_orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from pos_edge.api.deps import get_printer, get_store
from pos_edge.core.errors import NotFoundError
from pos_edge.db.repositories.documents import ORDERS
from pos_edge.domain.printing.service import PrintJobProcessor
from pos_edge.domain.store.schemas import CreatedOrder, OrderCreate, OrderStatusUpdate, next_status
from pos_edge.domain.store.service import OfflineDataStore


router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.post("", response_model=CreatedOrder, response_model_by_alias=True, status_code=201)
async def charge_order_endpoint(
    payload: OrderCreate,
    store: OfflineDataStore = Depends(get_store),
    printer: PrintJobProcessor = Depends(get_printer),
):
    created = await store.create_order(payload)
    await printer.enqueue_receipt(created.order, created.order_items)
    return created


@router.get("", response_model=List[dict])
async def recent_orders_endpoint(
    limit: int = Query(10, ge=1, le=200),
    store: OfflineDataStore = Depends(get_store),
):
    return await store.get_recent_orders(limit)


@router.get("/{order_id}")
async def get_order_endpoint(
    order_id: str,
    store: OfflineDataStore = Depends(get_store),
):
    order = await store.get(ORDERS, order_id)
    if order is None:
        raise NotFoundError(f"Order not found: {order_id}")
    return order


@router.get("/{order_id}/items", response_model=List[dict])
async def order_items_endpoint(
    order_id: str,
    store: OfflineDataStore = Depends(get_store),
):
    return await store.get_order_items(order_id)


@router.patch("/{order_id}/status")
async def update_status_endpoint(
    order_id: str,
    payload: OrderStatusUpdate,
    store: OfflineDataStore = Depends(get_store),
):
    return await store.update_order_status(order_id, payload.status)


@router.post("/{order_id}/advance")
async def advance_order_endpoint(
    order_id: str,
    store: OfflineDataStore = Depends(get_store),
):
    order = await store.get(ORDERS, order_id)
    if order is None:
        raise NotFoundError(f"Order not found: {order_id}")
    target = next_status(order["status"])
    if target is None:
        raise HTTPException(status_code=409, detail=f"Order {order_id} is already {order['status']}")
    return await store.update_order_status(order_id, target)
