"""Middleware: API key check and pipeline error mapping."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from imgshare.media.errors import PipelineError, PipelineErrorKind

if TYPE_CHECKING:
    from fastapi import FastAPI

    from imgshare.config import Settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

ERROR_STATUS: dict[PipelineErrorKind, int] = {
    PipelineErrorKind.UNSUPPORTED_FORMAT: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    PipelineErrorKind.PAYLOAD_TOO_LARGE: status.HTTP_413_CONTENT_TOO_LARGE,
    PipelineErrorKind.TYPE_MISMATCH: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    PipelineErrorKind.DECODE_ERROR: status.HTTP_422_UNPROCESSABLE_CONTENT,
    PipelineErrorKind.PUBLISH_ERROR: status.HTTP_502_BAD_GATEWAY,
    PipelineErrorKind.CANCELLED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Require 'Authorization: Bearer <key>' when IMGSHARE_API_KEY is set."""
    settings: Settings = request.app.state.settings
    if settings.api_key is None:
        return

    if credentials is None or not secrets.compare_digest(credentials.credentials.encode(), settings.api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """Surface a pipeline rejection verbatim with a status matching its kind."""
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Upload to %s failed: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=status_code, content={"detail": exc.detail, "kind": exc.kind.value})


async def queue_timeout_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("No processing slot available for %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Server is busy, retry later"},
    )


def register_error_handlers(application: FastAPI) -> None:
    application.add_exception_handler(PipelineError, pipeline_error_handler)  # type: ignore[arg-type]
    application.add_exception_handler(TimeoutError, queue_timeout_handler)
