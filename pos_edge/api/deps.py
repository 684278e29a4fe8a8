from fastapi import Request

from pos_edge.domain.printing.service import PrintJobProcessor
from pos_edge.domain.store.service import OfflineDataStore
from pos_edge.domain.sync.service import SyncEngine


def get_store(request: Request) -> OfflineDataStore:
    return request.app.state.core.store


def get_sync(request: Request) -> SyncEngine:
    return request.app.state.core.sync


def get_printer(request: Request) -> PrintJobProcessor:
    return request.app.state.core.printer
