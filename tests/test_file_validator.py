# =============================================================================
# tests/test_file_validator.py - Image Validation Tests
# =============================================================================
# Validation is pure: it must decide before any backend call is made.
#
# Run with: poetry run pytest tests/test_file_validator.py -v
# =============================================================================

import pytest

from app.exceptions import FileTooLargeError, UnsupportedFileTypeError
from core.models.upload import CandidateFile
from core.services.file_validator import validate_image

MB = 1024 * 1024


def candidate(content_type: str = "image/png", size: int = 2 * MB, name: str = "logo.png") -> CandidateFile:
    return CandidateFile(name=name, content_type=content_type, size=size)


class TestAllowedTypes:
    """Tests for the MIME allow-list."""

    @pytest.mark.parametrize("content_type", ["image/png", "image/jpeg", "image/jpg", "image/webp"])
    def test_accepts_allowed_types(self, content_type):
        """Every allow-listed image type passes."""
        file = candidate(content_type=content_type)
        assert validate_image(file) is file

    def test_type_check_is_case_insensitive(self):
        """Declared types are compared case-insensitively."""
        validate_image(candidate(content_type="IMAGE/PNG"))

    @pytest.mark.parametrize("content_type", ["image/gif", "application/pdf", "text/plain", ""])
    def test_rejects_other_types(self, content_type):
        """Anything else is UnsupportedType with the remediation message."""
        with pytest.raises(UnsupportedFileTypeError) as exc_info:
            validate_image(candidate(content_type=content_type))

        assert exc_info.value.error_kind == "UnsupportedType"
        assert exc_info.value.user_message == "Please upload a PNG, JPG, JPEG, or WebP image"


class TestSizeLimit:
    """Tests for the size limit."""

    def test_exactly_at_limit_is_accepted(self):
        """The limit itself is allowed (strictly greater is rejected)."""
        validate_image(candidate(size=5 * MB))

    def test_ten_megabyte_jpeg_is_too_large(self):
        """A 10MB JPEG is rejected with the 5MB message."""
        with pytest.raises(FileTooLargeError) as exc_info:
            validate_image(candidate(content_type="image/jpeg", size=10 * MB))

        assert exc_info.value.error_kind == "TooLarge"
        assert exc_info.value.user_message == "Image size should be less than 5MB"

    def test_oversized_file_is_too_large_whatever_its_type(self):
        """Size wins over type: an oversized GIF is TooLarge, not UnsupportedType."""
        with pytest.raises(FileTooLargeError):
            validate_image(candidate(content_type="image/gif", size=6 * MB))

    def test_custom_limit(self):
        """The limit is configurable per uploader."""
        with pytest.raises(FileTooLargeError) as exc_info:
            validate_image(candidate(size=2 * MB), max_size_bytes=1 * MB)

        assert exc_info.value.limit_mb == 1
        assert "less than 1MB" in exc_info.value.user_message

    def test_custom_allow_list(self):
        """Callers can narrow the allow-list."""
        with pytest.raises(UnsupportedFileTypeError):
            validate_image(candidate(content_type="image/webp"), allowed_types=["image/png"])
