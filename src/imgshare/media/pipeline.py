"""Media ingestion pipeline.

Stages run in a fixed order per upload::

    Received -> Validated -> Decoded -> Transformed -> MetadataExtracted
             -> Published -> Assembled

Any stage may end the run with a ``PipelineError``; there is no resume.
Nothing here holds state between invocations, so one ``MediaPipeline`` can
serve many concurrent uploads.
"""

from __future__ import annotations

import logging
import uuid
from enum import StrEnum
from typing import TYPE_CHECKING

from imgshare.media.codec import DEFAULT_MAX_IMAGE_PIXELS, decode
from imgshare.media.errors import DecodeError, PipelineCancelledError, PipelineError
from imgshare.media.metadata import extract_metadata
from imgshare.media.models import PipelineResult, ProcessingOptions, UploadRequest
from imgshare.media.publisher import PublishedArtifact, publish, retract
from imgshare.media.record import assemble_records
from imgshare.media.thumbnail import generate_thumbnail
from imgshare.media.transform import NORMALIZED_EXTENSION, transform
from imgshare.media.validator import MAX_UPLOAD_BYTES, validate_upload

if TYPE_CHECKING:
    import threading

    from imgshare.config import Settings
    from imgshare.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

ANONYMOUS_OWNER = "anonymous"


class PipelineStage(StrEnum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DECODED = "decoded"
    TRANSFORMED = "transformed"
    METADATA_EXTRACTED = "metadata_extracted"
    PUBLISHED = "published"
    ASSEMBLED = "assembled"
    FAILED = "failed"


class MediaPipeline:
    """Validates, decodes, derives, publishes and assembles one upload at a time."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        max_image_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
        default_public: bool = True,
    ) -> None:
        self._store = store
        self._max_upload_bytes = max_upload_bytes
        self._max_image_pixels = max_image_pixels
        self._default_public = default_public

    @classmethod
    def from_settings(cls, settings: Settings, store: ObjectStore) -> MediaPipeline:
        return cls(
            store,
            max_upload_bytes=settings.max_upload_bytes,
            max_image_pixels=settings.max_image_pixels,
            default_public=settings.default_public,
        )

    def process(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        options: ProcessingOptions | None = None,
        *,
        owner_id: str = ANONYMOUS_OWNER,
        cancel_event: threading.Event | None = None,
    ) -> PipelineResult:
        """Run the full pipeline for one upload.

        Args:
            data: Raw uploaded bytes.
            filename: Filename declared by the client.
            mime_type: MIME type declared by the client.
            options: Processing options; defaults apply when omitted.
            owner_id: Owner reference stored on the record.
            cancel_event: Set by the caller to abandon the run. Checked at
                stage boundaries; artifacts already published are removed.

        Raises:
            PipelineError: One of its subclasses, naming the failed constraint.
        """
        options = options or ProcessingOptions()
        upload = UploadRequest(data=data, filename=filename, mime_type=mime_type)
        record_id = str(uuid.uuid4())
        stage = PipelineStage.RECEIVED
        published: list[PublishedArtifact] = []

        def advance(next_stage: PipelineStage) -> None:
            nonlocal stage
            self._check_cancelled(cancel_event, published)
            stage = next_stage
            logger.debug("Upload %s: %s", record_id, stage)

        try:
            validate_upload(upload.size, upload.filename, upload.mime_type, max_bytes=self._max_upload_bytes)
            advance(PipelineStage.VALIDATED)

            decoded = decode(upload.data, max_pixels=self._max_image_pixels)
            try:
                advance(PipelineStage.DECODED)
                try:
                    primary = transform(decoded, options, upload.data)
                    thumbnail = generate_thumbnail(decoded)
                except (OSError, ValueError) as exc:
                    raise DecodeError(f"Unable to re-encode image data: {exc}") from exc
                advance(PipelineStage.TRANSFORMED)
                metadata = extract_metadata(decoded, primary)
            finally:
                decoded.close()
            advance(PipelineStage.METADATA_EXTRACTED)

            published.append(publish(self._store, primary, f"{record_id}.{primary.extension}"))
            self._check_cancelled(cancel_event, published)
            try:
                published.append(publish(self._store, thumbnail, f"{record_id}_thumb.{NORMALIZED_EXTENSION}"))
            except PipelineError:
                retract(self._store, [item.key for item in published])
                raise
            advance(PipelineStage.PUBLISHED)

            result = assemble_records(
                record_id,
                owner_id,
                upload,
                published[0],
                published[1],
                metadata,
                options,
                default_public=self._default_public,
            )
            # A timeout may have fired while the records were being built.
            self._check_cancelled(cancel_event, published)
            stage = PipelineStage.ASSEMBLED
        except PipelineError as exc:
            logger.info("Upload %s: %s -> %s(%s): %s", record_id, stage, PipelineStage.FAILED, exc.kind, exc.detail)
            raise

        logger.info(
            "Processed upload %s: %s %dx%d -> %s (%d bytes), thumbnail %d bytes",
            record_id,
            upload.filename,
            result.image.width,
            result.image.height,
            published[0].mime_type,
            published[0].size,
            published[1].size,
        )
        return result

    def discard(self, result: PipelineResult) -> None:
        """Remove the artifacts of a finished run whose record will never be stored."""
        logger.warning("Discarding artifacts of abandoned upload %s", result.image.id)
        retract(self._store, [result.image.filename, result.thumbnail.filename])

    def _check_cancelled(self, cancel_event: threading.Event | None, published: list[PublishedArtifact]) -> None:
        if cancel_event is None or not cancel_event.is_set():
            return
        if published:
            retract(self._store, [item.key for item in published])
            published.clear()
        raise PipelineCancelledError("Upload processing was cancelled by the caller")
