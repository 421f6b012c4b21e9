"""Thumbnail generator: fixed-size center cover crop of the original raster."""

from __future__ import annotations

import logging

from PIL import Image, ImageOps

from imgshare.media.codec import DecodedImage
from imgshare.media.models import DerivedArtifact
from imgshare.media.transform import NORMALIZED_EXTENSION, NORMALIZED_FORMAT, NORMALIZED_MIME_TYPE, encode, normalize_mode

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE: tuple[int, int] = (300, 300)
THUMBNAIL_QUALITY = 80


def generate_thumbnail(decoded: DecodedImage) -> DerivedArtifact:
    """Cover-crop the original raster to ``THUMBNAIL_SIZE``.

    Reads ``decoded`` directly, never the primary artifact, so primary
    encoding losses do not compound. Processing options are ignored.
    """
    img = ImageOps.fit(
        normalize_mode(decoded.raster),
        THUMBNAIL_SIZE,
        method=Image.Resampling.LANCZOS,
        centering=(0.5, 0.5),
    )
    data = encode(img, NORMALIZED_FORMAT, THUMBNAIL_QUALITY)
    logger.debug("Generated %dx%d thumbnail (%d bytes)", img.width, img.height, len(data))
    return DerivedArtifact(
        data=data,
        width=img.width,
        height=img.height,
        mime_type=NORMALIZED_MIME_TYPE,
        extension=NORMALIZED_EXTENSION,
    )
