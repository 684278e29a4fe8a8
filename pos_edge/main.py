import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pos_edge.api.v1.routes_orders import router as orders_router
from pos_edge.api.v1.routes_print_jobs import router as print_jobs_router
from pos_edge.api.v1.routes_products import router as products_router
from pos_edge.api.v1.routes_sync import router as sync_router
from pos_edge.bootstrap import bootstrap_core
from pos_edge.core.config import Settings, settings as default_settings
from pos_edge.core.errors import NotFoundError, StorageError, TransportError, UnknownCollectionError
from pos_edge.core.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        core = await bootstrap_core(settings)
        app.state.core = core
        try:
            yield
        finally:
            core.stop()
            await core.transport.dispose()

    app = FastAPI(title="pos-edge", lifespan=lifespan)

    app.include_router(products_router)
    app.include_router(orders_router)
    app.include_router(sync_router)
    app.include_router(print_jobs_router)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(UnknownCollectionError)
    async def unknown_collection_handler(request: Request, exc: UnknownCollectionError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()
