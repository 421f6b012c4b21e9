"""API route definitions."""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Form, Header, HTTPException, Request, UploadFile, status
from pydantic import ValidationError

from imgshare.api.middleware import verify_api_key
from imgshare.api.schemas import ErrorResponse, HealthResponse, UploadResponse
from imgshare.media.models import ImageRecord, ProcessingOptions

if TYPE_CHECKING:
    import threading

    from imgshare.config import Settings
    from imgshare.media.models import PipelineResult
    from imgshare.media.pipeline import MediaPipeline
    from imgshare.media.pool import ProcessingPool
    from imgshare.storage.object_store import ObjectStore
    from imgshare.storage.record_store import InMemoryRecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_PIPELINE_ERRORS = {
    status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
    status.HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_processing_pool(request: Request) -> ProcessingPool:
    pool: ProcessingPool = request.app.state.processing_pool
    return pool


def _get_pipeline(request: Request) -> MediaPipeline:
    pipeline: MediaPipeline = request.app.state.pipeline
    return pipeline


def _get_record_store(request: Request) -> InMemoryRecordStore:
    store: InMemoryRecordStore = request.app.state.record_store
    return store


def _get_object_store(request: Request) -> ObjectStore:
    store: ObjectStore = request.app.state.object_store
    return store


def _parse_options(raw: str | None) -> ProcessingOptions:
    if not raw:
        return ProcessingOptions()
    try:
        return ProcessingOptions.model_validate_json(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Invalid processing options: {exc.errors(include_url=False)}",
        ) from exc


@router.post(
    "/images",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_PIPELINE_ERRORS,
    summary="Upload and process an image",
)
async def upload_image(
    request: Request,
    file: UploadFile,
    options: Annotated[str | None, Form(description="JSON-encoded processing options")] = None,
) -> UploadResponse:
    """Run an upload through the media pipeline and store the resulting record."""
    processing_options = _parse_options(options)
    data = await file.read()
    filename = file.filename or ""
    mime_type = file.content_type or "application/octet-stream"

    settings = _get_settings(request)
    pipeline = _get_pipeline(request)

    def _process(cancel_event: threading.Event) -> PipelineResult:
        return pipeline.process(data, filename, mime_type, processing_options, cancel_event=cancel_event)

    result = await _get_processing_pool(request).run(
        _process,
        timeout=settings.request_timeout,
        discard=pipeline.discard,
    )
    _get_record_store(request).insert(result.image)
    logger.info("Stored image record %s", result.image.id)
    return UploadResponse(image=result.image, thumbnail=result.thumbnail)


@router.get(
    "/images/{image_id}",
    response_model=ImageRecord,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_410_GONE: {"model": ErrorResponse},
    },
    summary="Fetch an image record",
)
async def get_image(
    request: Request,
    image_id: str,
    x_image_password: Annotated[str | None, Header(description="Password of a protected image")] = None,
) -> ImageRecord:
    """Return a previously stored image record.

    Expired records are dropped on read and answer 410. Password-protected
    records answer 401 unless the ``X-Image-Password`` header matches.
    """
    records = _get_record_store(request)
    record = records.get(image_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Image {image_id} not found")

    if record.auto_delete_at is not None and record.auto_delete_at <= datetime.now(UTC):
        records.delete(image_id)
        logger.info("Image record %s expired at %s", image_id, record.auto_delete_at.isoformat())
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Image has expired")

    if record.password is not None and (
        x_image_password is None
        or not secrets.compare_digest(x_image_password.encode(), record.password.get_secret_value().encode())
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Password required")
    return record


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_processing_pool(request)
    return HealthResponse(
        status="ok",
        storage_backend=_get_object_store(request).name,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
