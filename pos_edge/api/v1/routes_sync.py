# pos_edge/api/v1/routes_sync.py
from fastapi import APIRouter, Depends, Request

from pos_edge.api.deps import get_sync
from pos_edge.domain.sync.schemas import SyncResult, SyncStatus
from pos_edge.domain.sync.service import SyncEngine


router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


@router.post("", response_model=SyncResult)
async def sync_now_endpoint(sync: SyncEngine = Depends(get_sync)):
    return await sync.sync_once()


@router.get("/status", response_model=SyncStatus, response_model_by_alias=True)
async def sync_status_endpoint(sync: SyncEngine = Depends(get_sync)):
    return await sync.status()


@router.post("/online", status_code=202)
async def connectivity_restored_endpoint(request: Request):
    request.app.state.core.connectivity.emit("online")
    return {"status": "accepted"}
