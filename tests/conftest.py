"""Shared fixtures: in-process image builders and stores."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from imgshare.storage.object_store import InMemoryObjectStore, ObjectStoreError

if TYPE_CHECKING:
    from collections.abc import Callable


def encode_image(img: Image.Image, fmt: str = "PNG", **save_kwargs: object) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


def solid_image(width: int, height: int, color: tuple[int, ...] = (200, 30, 30), mode: str = "RGB") -> Image.Image:
    return Image.new(mode, (width, height), color)


def noise_image(width: int, height: int, seed: int = 0) -> Image.Image:
    """Seeded RGB noise: compresses badly, so encodes stay large."""
    rng = np.random.default_rng(seed)
    return Image.fromarray(rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8), mode="RGB")


class FlakyObjectStore(InMemoryObjectStore):
    """In-memory store that fails uploads whose key contains ``fail_on``."""

    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self.fail_on = fail_on

    def put(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_on in key:
            raise ObjectStoreError(f"connection reset while uploading {key}")
        return super().put(key, data, content_type)


@pytest.fixture()
def make_png() -> Callable[..., bytes]:
    def _make(width: int = 64, height: int = 48, color: tuple[int, ...] = (200, 30, 30), mode: str = "RGB") -> bytes:
        return encode_image(solid_image(width, height, color, mode), "PNG")

    return _make


@pytest.fixture()
def photo_jpeg() -> bytes:
    """A 1920x1080 opaque photograph-like JPEG at 72 DPI."""
    return encode_image(noise_image(1920, 1080), "JPEG", quality=90, dpi=(72, 72))


@pytest.fixture()
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()
