"""Metadata store boundary for assembled image records."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from imgshare.media.models import ImageRecord


class RecordStore(Protocol):
    """Receives fully assembled records. The pipeline never reads it back."""

    def insert(self, record: ImageRecord) -> None:
        """Persist a newly assembled record."""
        ...


class InMemoryRecordStore:
    """Process-local record store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, ImageRecord] = {}

    def insert(self, record: ImageRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise KeyError(f"Record {record.id} already exists")
            self._records[record.id] = record

    def get(self, record_id: str) -> ImageRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def delete(self, record_id: str) -> None:
        with self._lock:
            self._records.pop(record_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
