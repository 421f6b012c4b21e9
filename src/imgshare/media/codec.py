"""Codec adapter: the only place that parses format-specific binary data.

Decoding goes through Pillow. Every parser failure is converted into a
``DecodeError`` so callers never see library-specific exceptions.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageSequence, UnidentifiedImageError

from imgshare.media.errors import DecodeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_PIXELS: int = 89_478_485

# Exceptions Pillow raises for malformed, truncated or hostile input.
_DECODE_FAILURES: tuple[type[BaseException], ...] = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    ValueError,
    SyntaxError,
    EOFError,
    MemoryError,
)


@dataclass
class DecodedImage:
    """A decoded raster plus the format facts read from its header."""

    raster: Image.Image
    format: str | None
    width: int
    height: int
    frame_count: int = 1
    density: float | None = None
    duration: float | None = None

    @property
    def is_animated(self) -> bool:
        return self.frame_count > 1

    @property
    def has_alpha(self) -> bool:
        return self.raster.mode in ("RGBA", "LA", "PA") or "transparency" in self.raster.info

    def close(self) -> None:
        self.raster.close()


@dataclass(frozen=True)
class ImageInfo:
    """Header-level facts about an image, without running the pipeline."""

    width: int
    height: int
    size: int
    format: str
    has_alpha: bool


def _read_density(img: Image.Image) -> float | None:
    dpi = img.info.get("dpi")
    if not dpi:
        return None
    try:
        return float(dpi[0])
    except (TypeError, ValueError, IndexError):
        return None


def _total_duration(img: Image.Image) -> float | None:
    """Sum per-frame durations (milliseconds) into seconds."""
    total_ms = 0.0
    for frame in ImageSequence.Iterator(img):
        total_ms += float(frame.info.get("duration", 0) or 0)
    img.seek(0)
    return total_ms / 1000.0 if total_ms > 0 else None


def decode(data: bytes, *, max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS) -> DecodedImage:
    """Decode ``data`` into a fully loaded raster.

    The pixel ceiling is checked against the header before any pixel data
    is read, since decoded size grows with pixel count rather than with
    input byte size.

    Raises:
        DecodeError: The data is malformed, truncated, of an unknown format,
            or declares more than ``max_pixels`` pixels.
    """
    img: Image.Image | None = None
    try:
        img = Image.open(io.BytesIO(data))
        width, height = img.size
        if width <= 0 or height <= 0:
            raise DecodeError(f"Image declares invalid dimensions {width}x{height}")
        if width * height > max_pixels:
            raise DecodeError(f"Image has {width * height} pixels, exceeding the limit of {max_pixels}")

        frame_count = int(getattr(img, "n_frames", 1) or 1)
        duration = _total_duration(img) if frame_count > 1 else None
        img.load()
    except DecodeError:
        if img is not None:
            img.close()
        raise
    except _DECODE_FAILURES as exc:
        if img is not None:
            img.close()
        logger.debug("Decode failed: %s", exc)
        raise DecodeError(f"Unable to decode image data: {exc}") from exc

    decoded = DecodedImage(
        raster=img,
        format=img.format,
        width=width,
        height=height,
        frame_count=frame_count,
        density=_read_density(img),
        duration=duration,
    )
    logger.debug(
        "Decoded %s %dx%d (frames=%d, density=%s)",
        decoded.format,
        decoded.width,
        decoded.height,
        decoded.frame_count,
        decoded.density,
    )
    return decoded


def inspect(data: bytes) -> ImageInfo:
    """Read width, height, format and alpha presence from ``data``'s header.

    Raises:
        DecodeError: The header cannot be parsed.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
            return ImageInfo(
                width=img.width,
                height=img.height,
                size=len(data),
                format=(img.format or "unknown").lower(),
                has_alpha=has_alpha,
            )
    except _DECODE_FAILURES as exc:
        raise DecodeError(f"Unable to read image header: {exc}") from exc
