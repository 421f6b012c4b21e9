"""Artifact publisher: the pipeline's only storage side effect."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from imgshare.media.errors import PublishError
from imgshare.storage.object_store import ObjectStoreError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from imgshare.media.models import DerivedArtifact
    from imgshare.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishedArtifact:
    """Where an artifact landed, plus the facts the record needs about it.

    The byte buffer is not kept: once published, the store owns the data.
    """

    key: str
    url: str
    width: int
    height: int
    size: int
    mime_type: str


def publish(store: ObjectStore, artifact: DerivedArtifact, filename: str) -> PublishedArtifact:
    """Upload one artifact under ``filename``.

    No retries happen here; retry policy belongs to the storage client or
    the caller.

    Raises:
        PublishError: The store reported a transport or storage failure.
    """
    try:
        url = store.put(filename, artifact.data, artifact.mime_type)
    except (ObjectStoreError, OSError) as exc:
        logger.error("Failed to publish %s: %s", filename, exc)
        raise PublishError(f"Failed to publish {filename}: {exc}") from exc

    logger.debug("Published %s (%d bytes) -> %s", filename, artifact.size, url)
    return PublishedArtifact(
        key=filename,
        url=url,
        width=artifact.width,
        height=artifact.height,
        size=artifact.size,
        mime_type=artifact.mime_type,
    )


def retract(store: ObjectStore, keys: Iterable[str]) -> None:
    """Best-effort removal of stored objects that will never be referenced by a record.

    Cleanup failures are logged and swallowed so they never mask the error
    that caused the rollback.
    """
    for key in keys:
        try:
            store.delete(key)
            logger.info("Removed orphaned artifact %s", key)
        except (ObjectStoreError, OSError):
            logger.error("Failed to remove orphaned artifact %s", key, exc_info=True)
