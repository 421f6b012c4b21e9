"""Input validation, run before any decode is attempted."""

from __future__ import annotations

from pathlib import PurePosixPath

from imgshare.media.errors import PayloadTooLargeError, TypeMismatchError, UnsupportedFormatError

MAX_UPLOAD_BYTES: int = 32 * 1024 * 1024
SUPPORTED_EXTENSIONS: tuple[str, ...] = ("jpg", "jpeg", "png", "gif", "webp", "heic", "avif", "pdf")
PDF_MIME_TYPE = "application/pdf"


def file_extension(filename: str) -> str:
    """Return the lowercased text after the last dot of the basename ('' if there is no dot).

    A bare ".png" counts as a png file.
    """
    _, dot, extension = PurePosixPath(filename.replace("\\", "/")).name.rpartition(".")
    return extension.lower() if dot else ""


def validate_upload(size: int, filename: str, mime_type: str, *, max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    """Check an upload against the size, extension and MIME constraints.

    Size is checked first since it needs no parsing at all.

    Returns:
        The normalized file extension.

    Raises:
        PayloadTooLargeError: ``size`` exceeds ``max_bytes``.
        UnsupportedFormatError: the extension is not in the allow-list.
        TypeMismatchError: the MIME type is neither ``image/*`` nor PDF.
    """
    if size > max_bytes:
        raise PayloadTooLargeError(f"File size {size} bytes exceeds maximum limit of {max_bytes // (1024 * 1024)}MB")

    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported file format {extension or '(none)'!r}. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    essence = mime_type.split(";", 1)[0].strip().lower()
    if not essence.startswith("image/") and essence != PDF_MIME_TYPE:
        raise TypeMismatchError(f"File must be an image or PDF, got MIME type {mime_type!r}")

    return extension
