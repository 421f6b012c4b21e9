"""Metadata extractor.

Extraction degrades instead of failing: any error while reading tags,
sampling colors or scoring collapses to an empty ``ImageMetadata`` and is
logged, never raised.
"""

from __future__ import annotations

import logging
from numbers import Rational

from PIL import Image
from PIL.ExifTags import TAGS

from imgshare.media.codec import DecodedImage
from imgshare.media.color import analyze_colors, quality_score
from imgshare.media.models import DerivedArtifact, ImageMetadata, TagValue

logger = logging.getLogger(__name__)


def _coerce_tag(value: object) -> TagValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore").rstrip("\x00")
    if isinstance(value, Rational):
        return float(value)
    return str(value)


def extract_tags(raster: Image.Image) -> dict[str, TagValue] | None:
    """Read EXIF tags into a flat name -> scalar mapping, or None if absent.

    Values are passed through without interpretation; unknown tag ids keep
    their numeric id as the key.
    """
    exif = raster.getexif()
    if not exif:
        return None
    tags: dict[str, TagValue] = {}
    for tag_id, value in exif.items():
        name = TAGS.get(tag_id, str(tag_id))
        tags[str(name)] = _coerce_tag(value)
    return tags


def extract_metadata(decoded: DecodedImage, primary: DerivedArtifact) -> ImageMetadata:
    """Collect tags, palette, animation facts and quality score for an upload.

    Scoring uses the primary artifact's dimensions and byte size together
    with the density declared by the original.
    """
    try:
        colors = analyze_colors(decoded.raster)
        return ImageMetadata(
            exif=extract_tags(decoded.raster),
            color_palette=colors.palette,
            dominant_color=colors.dominant_color,
            is_animated=decoded.is_animated,
            duration=decoded.duration if decoded.is_animated else None,
            quality_score=quality_score(primary.width, primary.height, decoded.density, primary.size),
        )
    except Exception:
        logger.warning("Failed to extract metadata, continuing with empty metadata", exc_info=True)
        return ImageMetadata()
