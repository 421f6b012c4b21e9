"""Pydantic request/response schemas for the imgshare API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from imgshare.media.models import ImageRecord, ThumbnailRecord


class UploadResponse(BaseModel):
    """Records produced by a successful upload."""

    image: ImageRecord
    thumbnail: ThumbnailRecord


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    storage_backend: str
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    kind: str | None = Field(default=None, description="Pipeline error kind, when the pipeline rejected the upload")
