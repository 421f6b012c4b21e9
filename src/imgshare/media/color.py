"""Color analyzer and quality scorer.

The palette is a coarse sampling heuristic: pixels are bucketed by exact
hex value with no quantization, so it is only meaningful as a rough
impression of an image's colors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageOps

from imgshare.media.transform import normalize_mode

logger = logging.getLogger(__name__)

WORKING_SIZE: tuple[int, int] = (150, 150)
SAMPLE_STRIDE = 10
ALPHA_THRESHOLD = 128
PALETTE_SIZE = 10
FALLBACK_COLOR = "#000000"

# Quality score penalties
MIN_WIDTH = 800
MIN_HEIGHT = 600
LOW_RESOLUTION_PENALTY = 20
MIN_DENSITY = 72
LOW_DENSITY_PENALTY = 15
MIN_FILE_SIZE = 50_000
SMALL_FILE_PENALTY = 10


@dataclass(frozen=True)
class ColorAnalysis:
    palette: list[str]
    dominant_color: str


def extract_palette(raster: Image.Image) -> list[str]:
    """Return up to ``PALETTE_SIZE`` hex colors, most frequent first.

    The raster is cover-fitted to ``WORKING_SIZE`` in RGBA, every
    ``SAMPLE_STRIDE``-th pixel is sampled, and pixels with alpha below
    ``ALPHA_THRESHOLD`` are skipped. Ties keep first-encountered order.
    """
    img = normalize_mode(raster)
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    img = ImageOps.fit(img, WORKING_SIZE, method=Image.Resampling.BILINEAR)

    pixels = np.asarray(img, dtype=np.uint8).reshape(-1, 4)
    sampled = pixels[::SAMPLE_STRIDE]
    visible = sampled[sampled[:, 3] >= ALPHA_THRESHOLD]
    if visible.size == 0:
        return []

    rgb = visible[:, :3].astype(np.uint32)
    packed = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
    values, first_seen, counts = np.unique(packed, return_index=True, return_counts=True)
    # Descending count, then ascending first occurrence.
    order = np.lexsort((first_seen, -counts))[:PALETTE_SIZE]
    return [f"#{int(values[i]):06x}" for i in order]


def dominant_color(palette: list[str]) -> str:
    return palette[0] if palette else FALLBACK_COLOR


def analyze_colors(raster: Image.Image) -> ColorAnalysis:
    palette = extract_palette(raster)
    return ColorAnalysis(palette=palette, dominant_color=dominant_color(palette))


def quality_score(width: int, height: int, density: float | None, size: int | None) -> int:
    """Heuristic 0-100 quality score from resolution, density and byte size.

    ``density`` and ``size`` only count when known.
    """
    score = 100
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        score -= LOW_RESOLUTION_PENALTY
    if density and density < MIN_DENSITY:
        score -= LOW_DENSITY_PENALTY
    if size and size < MIN_FILE_SIZE:
        score -= SMALL_FILE_PENALTY
    return max(0, min(100, score))
