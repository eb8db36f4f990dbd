from __future__ import annotations
import logging
from typing import Optional
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .auth import AuthGate, router as auth_router
from .blob_store import BlobStore, LocalBlobStore, build_blob_store
from .catalog_api import build_router
from .catalog_service import CatalogService, SINGLE
from .config import Settings, get_settings
from .errors import install_error_handlers
from .gallery import GalleryManager
from .order_service import OrderService
from .orders_api import router as orders_router
from .record_store import RecordStore, build_record_store

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None,
               store: Optional[RecordStore] = None,
               blobs: Optional[BlobStore] = None) -> FastAPI:
    """Build the app; backends are chosen once here and injected into the services."""
    sett = settings or get_settings()
    logging.basicConfig(level=sett.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    store = store or build_record_store(sett)
    blobs = blobs or build_blob_store(sett)
    gallery = GalleryManager(store, blobs)

    app = FastAPI(title="Storefront API", version="1.0.0")
    app.state.settings = sett
    app.state.store = store
    app.state.blobs = blobs
    app.state.auth = AuthGate(store, sett)
    app.state.catalog = CatalogService(store, blobs, gallery, sett.catalog_variant)
    app.state.orders = OrderService(store)

    install_error_handlers(app)
    app.include_router(auth_router)
    if sett.catalog_variant == SINGLE:
        app.include_router(build_router("/api/hoodies", SINGLE, "Hoodie"))
    else:
        app.include_router(build_router("/api/products", sett.catalog_variant, "Product"))
        app.include_router(build_router("/api/photos", sett.catalog_variant, "Photo set"))
    app.include_router(orders_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sett.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if isinstance(blobs, LocalBlobStore):
        app.mount(
            sett.uploads_url_prefix,
            StaticFiles(directory=str(blobs.root), html=False),
            name="uploads",
        )

    @app.get("/health")
    def health():
        return {"ok": True, "store": store.name, "blobs": blobs.name, "variant": sett.catalog_variant}

    logger.info("storefront ready: %s records, %s blobs, %s catalog",
                store.name, blobs.name, sett.catalog_variant)
    return app


def serve() -> None:
    """Console entry point; uvicorn builds a fresh app from the factory."""
    sett = get_settings()
    uvicorn.run("storefront.main:create_app", factory=True,
                host=sett.host, port=sett.port, log_level=sett.log_level.lower())
