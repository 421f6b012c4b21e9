"""Transform engine: constrained resize and format normalization."""

from __future__ import annotations

import io
import logging

from PIL import Image

from imgshare.media.codec import DecodedImage
from imgshare.media.models import DerivedArtifact, ProcessingOptions

logger = logging.getLogger(__name__)

NORMALIZED_FORMAT = "WEBP"
NORMALIZED_MIME_TYPE = "image/webp"
NORMALIZED_EXTENSION = "webp"

QUALITY_LOW = 60
QUALITY_MEDIUM = 80
QUALITY_HIGH = 90
QUALITY_ORIGINAL = 100

# Fixed libwebp effort so repeated encodes of the same raster are byte-identical.
WEBP_METHOD = 4

# Formats that can be re-encoded in place when normalization is disabled.
_PASSTHROUGH_FORMATS: dict[str, tuple[str, str]] = {
    "JPEG": ("image/jpeg", "jpg"),
    "PNG": ("image/png", "png"),
    "GIF": ("image/gif", "gif"),
    "WEBP": ("image/webp", "webp"),
}


def resolve_quality_tier(quality: int | None) -> int:
    """Map a 0-100 quality preference onto an encoder quality tier.

    ``None`` and ``0`` both mean "not requested" and resolve to medium.
    """
    if not quality:
        return QUALITY_MEDIUM
    if quality <= 30:
        return QUALITY_LOW
    if quality <= 70:
        return QUALITY_MEDIUM
    if quality <= 90:
        return QUALITY_HIGH
    return QUALITY_ORIGINAL


def containment_size(
    width: int, height: int, max_width: int | None, max_height: int | None
) -> tuple[int, int]:
    """Largest size within the bounds that keeps the aspect ratio and never enlarges."""
    scale = 1.0
    if max_width:
        scale = min(scale, max_width / width)
    if max_height:
        scale = min(scale, max_height / height)
    if scale >= 1.0:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def normalize_mode(img: Image.Image) -> Image.Image:
    """Convert ``img`` to RGB, or RGBA when it carries transparency."""
    has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    target = "RGBA" if has_alpha else "RGB"
    if img.mode == target:
        return img
    return img.convert(target)


def encode(img: Image.Image, image_format: str, quality: int) -> bytes:
    """Encode ``img`` deterministically, without carrying over source metadata."""
    output = io.BytesIO()
    if image_format == "WEBP":
        img.save(output, format="WEBP", quality=quality, method=WEBP_METHOD)
    elif image_format == "JPEG":
        img.convert("RGB").save(output, format="JPEG", quality=quality, optimize=True)
    else:
        img.save(output, format=image_format, optimize=True)
    return output.getvalue()


def transform(decoded: DecodedImage, options: ProcessingOptions, original: bytes) -> DerivedArtifact:
    """Produce the primary artifact from a decoded upload.

    Args:
        decoded: The decoded original.
        options: Caller processing options.
        original: The raw upload, passed through untouched when neither a
            resize nor a conversion is requested. The stored extension
            follows the decoded format, not the declared filename.
    """
    target_size = containment_size(decoded.width, decoded.height, options.max_width, options.max_height)
    needs_resize = target_size != (decoded.width, decoded.height)
    quality = resolve_quality_tier(options.quality)

    passthrough = _PASSTHROUGH_FORMATS.get(decoded.format or "")
    if not options.convert_to_normalized_format and passthrough is not None and not needs_resize:
        mime_type, extension = passthrough
        logger.debug("Passing original %s through unchanged", decoded.format)
        return DerivedArtifact(
            data=original,
            width=decoded.width,
            height=decoded.height,
            mime_type=mime_type,
            extension=extension,
        )

    img = normalize_mode(decoded.raster)
    if needs_resize:
        img = img.resize(target_size, Image.Resampling.LANCZOS)
        logger.debug("Resized %dx%d -> %dx%d", decoded.width, decoded.height, *target_size)

    if options.convert_to_normalized_format or passthrough is None:
        image_format, mime_type, out_extension = NORMALIZED_FORMAT, NORMALIZED_MIME_TYPE, NORMALIZED_EXTENSION
    else:
        image_format = decoded.format or NORMALIZED_FORMAT
        mime_type, out_extension = passthrough

    data = encode(img, image_format, quality)
    logger.debug("Encoded primary as %s q=%d (%d bytes)", image_format, quality, len(data))
    return DerivedArtifact(
        data=data,
        width=img.width,
        height=img.height,
        mime_type=mime_type,
        extension=out_extension,
    )
