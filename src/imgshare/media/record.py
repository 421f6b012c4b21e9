"""Record assembler: pure composition of the persisted entity."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from imgshare.media.models import ImageMetadata, ImageRecord, PipelineResult, ThumbnailRecord

if TYPE_CHECKING:
    from imgshare.media.models import ProcessingOptions, UploadRequest
    from imgshare.media.publisher import PublishedArtifact


def expiry_from(now: datetime, minutes: int | None) -> datetime | None:
    """Absolute expiry ``minutes`` after ``now``, or None when not requested."""
    if not minutes:
        return None
    return now + timedelta(minutes=minutes)


def assemble_records(
    record_id: str,
    owner_id: str,
    upload: UploadRequest,
    primary: PublishedArtifact,
    thumbnail: PublishedArtifact,
    metadata: ImageMetadata,
    options: ProcessingOptions,
    *,
    default_public: bool = True,
    now: datetime | None = None,
) -> PipelineResult:
    """Build the image record and its thumbnail companion.

    Width and height always come from the primary artifact. Counters start
    at zero and timestamps are taken once so created/updated match.
    """
    now = now or datetime.now(UTC)
    is_public = options.is_public if options.is_public is not None else default_public

    image = ImageRecord(
        id=record_id,
        user_id=owner_id,
        filename=primary.key,
        original_name=upload.filename,
        mime_type=upload.mime_type,
        size=upload.size,
        width=primary.width,
        height=primary.height,
        primary_size=primary.size,
        url=primary.url,
        thumbnail_url=thumbnail.url,
        thumbnail_width=thumbnail.width,
        thumbnail_height=thumbnail.height,
        thumbnail_size=thumbnail.size,
        is_public=is_public,
        password=options.password,
        album_id=options.album_id,
        auto_delete_at=expiry_from(now, options.auto_delete_after_minutes),
        created_at=now,
        updated_at=now,
        view_count=0,
        download_count=0,
        tags=list(options.tags),
        metadata=metadata,
    )
    thumb = ThumbnailRecord(
        id=f"{record_id}_thumb",
        user_id=owner_id,
        filename=thumbnail.key,
        original_name=f"{upload.filename}_thumbnail",
        mime_type=thumbnail.mime_type,
        size=thumbnail.size,
        width=thumbnail.width,
        height=thumbnail.height,
        url=thumbnail.url,
        is_public=is_public,
        created_at=now,
        updated_at=now,
    )
    return PipelineResult(image=image, thumbnail=thumb)
