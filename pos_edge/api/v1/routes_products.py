# pos_edge/api/v1/routes_products.py
from typing import List

from fastapi import APIRouter, Body, Depends, Response

from pos_edge.api.deps import get_store
from pos_edge.core.errors import NotFoundError
from pos_edge.db.repositories.documents import PRODUCTS
from pos_edge.domain.store.service import OfflineDataStore


router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.get("", response_model=List[dict])
async def search_products_endpoint(
    prefix: str = "",
    store: OfflineDataStore = Depends(get_store),
):
    return await store.query_products_by_prefix(prefix)


@router.get("/{product_id}")
async def get_product_endpoint(
    product_id: str,
    store: OfflineDataStore = Depends(get_store),
):
    doc = await store.get(PRODUCTS, product_id)
    if doc is None:
        raise NotFoundError(f"Product not found: {product_id}")
    return doc


@router.put("/{product_id}")
async def put_product_endpoint(
    product_id: str,
    payload: dict = Body(...),
    store: OfflineDataStore = Depends(get_store),
):
    return await store.put(PRODUCTS, {**payload, "id": product_id})


@router.delete("/{product_id}", status_code=204)
async def delete_product_endpoint(
    product_id: str,
    store: OfflineDataStore = Depends(get_store),
):
    await store.delete(PRODUCTS, product_id)
    return Response(status_code=204)
