"""Data model shared by the pipeline stages and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic.alias_generators import to_camel

# Scalar variants allowed in the opaque structural tag bag.
TagValue = str | int | float | bool


class ProcessingOptions(BaseModel):
    """Per-invocation options supplied by the caller.

    Both camelCase (``maxWidth``) and snake_case (``max_width``) keys are
    accepted. All fields default to the platform behaviour, so
    ``ProcessingOptions()`` is the "no options" configuration.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    max_width: int | None = Field(default=None, gt=0)
    max_height: int | None = Field(default=None, gt=0)
    quality: int | None = Field(default=None, ge=0, le=100)
    convert_to_normalized_format: bool = True
    auto_delete_after_minutes: int | None = Field(default=None, gt=0)

    # Record-level options
    is_public: bool | None = None
    password: SecretStr | None = None
    album_id: str | None = None
    tags: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class UploadRequest:
    """Raw upload as received from the transport layer. Never persisted."""

    data: bytes
    filename: str
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class DerivedArtifact:
    """One encoded output buffer (primary or thumbnail)."""

    data: bytes
    width: int
    height: int
    mime_type: str
    extension: str

    @property
    def size(self) -> int:
        return len(self.data)


class ImageMetadata(BaseModel):
    """Extracted facts about an upload.

    An instance with every field unset is the degraded "empty bag" produced
    when extraction fails.
    """

    exif: dict[str, TagValue] | None = None
    color_palette: list[str] | None = None
    dominant_color: str | None = None
    is_animated: bool | None = None
    duration: float | None = Field(default=None, description="Seconds, animated input only")
    quality_score: int | None = Field(default=None, ge=0, le=100)


class ImageRecord(BaseModel):
    """The persisted entity handed to the metadata store."""

    id: str
    user_id: str
    filename: str
    original_name: str
    mime_type: str
    size: int = Field(description="Declared upload size in bytes")
    width: int = Field(description="Primary artifact width")
    height: int = Field(description="Primary artifact height")
    primary_size: int
    url: str
    thumbnail_url: str
    thumbnail_width: int
    thumbnail_height: int
    thumbnail_size: int
    is_public: bool
    password: SecretStr | None = None
    album_id: str | None = None
    auto_delete_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    view_count: int = 0
    download_count: int = 0
    tags: list[str] = Field(default_factory=list)
    metadata: ImageMetadata = Field(default_factory=ImageMetadata)


class ThumbnailRecord(BaseModel):
    """Companion record describing the thumbnail artifact."""

    id: str
    user_id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    width: int
    height: int
    url: str
    is_public: bool
    created_at: datetime
    updated_at: datetime
    view_count: int = 0
    download_count: int = 0
    tags: list[str] = Field(default_factory=list)
    metadata: ImageMetadata = Field(default_factory=ImageMetadata)


@dataclass(frozen=True)
class PipelineResult:
    """Successful outcome of one pipeline invocation."""

    image: ImageRecord
    thumbnail: ThumbnailRecord
