"""Pipeline error taxonomy.

Every failure an upload can hit is a ``PipelineError`` carrying a ``kind``
and a ``detail`` that names the violated constraint. Metadata extraction
problems are never raised; they degrade inside the metadata extractor.
"""

from __future__ import annotations

from enum import StrEnum


class PipelineErrorKind(StrEnum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    TYPE_MISMATCH = "type_mismatch"
    DECODE_ERROR = "decode_error"
    PUBLISH_ERROR = "publish_error"
    CANCELLED = "cancelled"


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    kind: PipelineErrorKind

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, detail={self.detail!r})"


class UnsupportedFormatError(PipelineError):
    kind = PipelineErrorKind.UNSUPPORTED_FORMAT


class PayloadTooLargeError(PipelineError):
    kind = PipelineErrorKind.PAYLOAD_TOO_LARGE


class TypeMismatchError(PipelineError):
    kind = PipelineErrorKind.TYPE_MISMATCH


class DecodeError(PipelineError):
    kind = PipelineErrorKind.DECODE_ERROR


class PublishError(PipelineError):
    kind = PipelineErrorKind.PUBLISH_ERROR


class PipelineCancelledError(PipelineError):
    """Raised when the caller cancelled or timed out the invocation."""

    kind = PipelineErrorKind.CANCELLED
