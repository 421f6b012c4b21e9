"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imgshare.api.middleware import register_error_handlers
from imgshare.api.routes import router
from imgshare.config import Settings, get_settings
from imgshare.media.pipeline import MediaPipeline
from imgshare.media.pool import ProcessingPool
from imgshare.storage.object_store import build_object_store
from imgshare.storage.record_store import InMemoryRecordStore

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings) -> None:
    """Attach settings, stores, pipeline and worker pool to ``app.state``."""
    object_store = build_object_store(settings)
    app.state.settings = settings
    app.state.object_store = object_store
    app.state.record_store = InMemoryRecordStore()
    app.state.pipeline = MediaPipeline.from_settings(settings, object_store)
    app.state.processing_pool = ProcessingPool(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting imgshare (storage=%s, max_concurrent=%s, max_upload_bytes=%s)",
        settings.storage_backend,
        settings.max_concurrent,
        settings.max_upload_bytes,
    )

    init_state(app, settings)

    logger.info("imgshare ready")
    yield

    logger.info("Shutting down imgshare")
    app.state.processing_pool.shutdown()
    logger.info("imgshare shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="imgshare",
        description="Image upload ingestion: validation, derivation, metadata extraction and publishing",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("imgshare.main:app", host=settings.host, port=settings.port)
