# =============================================================================
# core/services/file_validator.py - Image File Validation
# =============================================================================
# Pure checks run on a selected file before any network call:
# 1. declared size must not exceed the limit (default 5 MiB)
# 2. declared MIME type must be on the image allow-list
# =============================================================================

from collections.abc import Iterable

from app.exceptions import FileTooLargeError, UnsupportedFileTypeError
from core.models.upload import ALLOWED_IMAGE_TYPES, DEFAULT_MAX_SIZE_BYTES, CandidateFile


def validate_image(
    file: CandidateFile,
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
    allowed_types: Iterable[str] = ALLOWED_IMAGE_TYPES,
) -> CandidateFile:
    """
    Validate a candidate image.

    Size is checked first: an oversized file is always reported as TooLarge,
    whatever its declared type.

    Args:
        file: The selected file
        max_size_bytes: Size limit in bytes
        allowed_types: Accepted MIME types

    Returns:
        The same file, for chaining

    Raises:
        FileTooLargeError: declared size above the limit
        UnsupportedFileTypeError: declared type not allowed
    """
    if file.size > max_size_bytes:
        raise FileTooLargeError(file.size, max_size_bytes / (1024 * 1024))

    allowed = [mime.lower() for mime in allowed_types]
    if (file.content_type or "").lower() not in allowed:
        raise UnsupportedFileTypeError(file.content_type, allowed)

    return file
