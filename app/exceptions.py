# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized error taxonomy for the image upload pipeline.
# Every error tells HOW to fix, not just WHAT failed: `suggestion` carries the
# remediation text shown to the user, `error_kind` is the stable name the UI
# branches on.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class CRMMediaException(Exception):
    """
    Base exception for the CRM media API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    error_kind = "Error"

    # Validation-style errors show the remediation text instead of the message
    show_suggestion = False

    def __init__(
        self,
        message: str,
        code: str = "CRM_MEDIA_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    @property
    def user_message(self) -> str:
        """Short human-readable text for the UI."""
        if self.show_suggestion and self.suggestion:
            return self.suggestion
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
            "error_kind": self.error_kind,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation Exceptions
# =============================================================================

class UnsupportedFileTypeError(CRMMediaException):
    """Raised when the declared MIME type is not on the allow-list."""

    error_kind = "UnsupportedType"
    show_suggestion = True

    def __init__(self, content_type: str | None, allowed: list[str]):
        super().__init__(
            message=f"Unsupported file type: {content_type or 'unknown'}",
            code="UNSUPPORTED_TYPE",
            status_code=400,
            suggestion="Please upload a PNG, JPG, JPEG, or WebP image",
            details={"content_type": content_type, "allowed_types": allowed}
        )


class FileTooLargeError(CRMMediaException):
    """Raised when an image exceeds the size limit."""

    error_kind = "TooLarge"
    show_suggestion = True

    def __init__(self, size_bytes: int, limit_mb: float):
        size_mb = size_bytes / (1024 * 1024)
        limit_label = f"{limit_mb:g}"
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {limit_label}MB)",
            code="TOO_LARGE",
            status_code=413,
            suggestion=f"Image size should be less than {limit_label}MB",
            details={"size_bytes": size_bytes, "limit_mb": limit_mb}
        )
        self.limit_mb = limit_mb


# =============================================================================
# Storage Readiness Exceptions
# =============================================================================

class StorageConnectivityError(CRMMediaException):
    """Raised when the storage service cannot be reached at all."""

    error_kind = "ConnectivityError"

    def __init__(self, error: str):
        super().__init__(
            message=f"Cannot access storage service: {error}",
            code="STORAGE_UNREACHABLE",
            status_code=503,
            suggestion="Check SUPABASE_URL and your network connection, then retry",
            details={"error": error}
        )


class MissingBucketsError(CRMMediaException):
    """Raised when required storage buckets do not exist."""

    error_kind = "MissingContainers"

    def __init__(self, missing: list[str]):
        super().__init__(
            message=(
                f"Missing storage buckets: {', '.join(missing)}. "
                "Please create them in Supabase Dashboard."
            ),
            code="MISSING_BUCKETS",
            status_code=503,
            suggestion="Use Auto-Fix to create the buckets, or create them in Supabase Dashboard",
            details={"missing_buckets": missing}
        )
        self.missing = missing


class StoragePermissionError(CRMMediaException):
    """Raised when storage rejects a write because of row-level security."""

    error_kind = "PermissionError"

    def __init__(self, error: str, during_probe: bool = False):
        if during_probe:
            message = (
                "Storage buckets exist but RLS policies need to be configured. "
                "Please check the setup guide."
            )
        else:
            message = (
                "Storage permissions not set up. "
                "Please check the bucket policies in Supabase Dashboard."
            )
        super().__init__(
            message=message,
            code="STORAGE_PERMISSION_DENIED",
            status_code=403,
            suggestion="Add insert/select policies for the bucket in Supabase Dashboard",
            details={"error": error}
        )


class ProvisioningError(CRMMediaException):
    """Raised when buckets are still missing after an auto-fix attempt."""

    error_kind = "ProvisioningError"

    def __init__(self, missing: list[str], failures: dict[str, str] | None = None):
        super().__init__(
            message="Storage setup failed. Please check Supabase Dashboard.",
            code="PROVISIONING_FAILED",
            status_code=503,
            suggestion=(
                "Buckets could not be created automatically: "
                f"{', '.join(missing)}. Create them in Supabase Dashboard."
            ),
            details={"missing_buckets": missing, "failures": failures or {}}
        )
        self.missing = missing


# =============================================================================
# Upload Exceptions
# =============================================================================

class MissingEntityIdError(CRMMediaException):
    """Raised when an upload is attempted for a record that has no id yet."""

    error_kind = "MissingEntityId"
    show_suggestion = True

    def __init__(self, kind: str):
        super().__init__(
            message=f"No entity ID provided for {kind} upload",
            code="MISSING_ENTITY_ID",
            status_code=400,
            suggestion="Please save the record first before uploading an image",
            details={"kind": kind}
        )


class UploadFailedError(CRMMediaException):
    """Raised when the storage write fails for an unclassified reason."""

    error_kind = "UploadFailed"

    def __init__(self, error: str, bucket: str | None = None, path: str | None = None):
        super().__init__(
            message=f"Upload failed: {error}",
            code="UPLOAD_FAILED",
            status_code=502,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error, "bucket": bucket, "path": path}
        )


class BucketNotFoundError(CRMMediaException):
    """Raised when the upload targets a bucket that does not exist."""

    error_kind = "ContainerNotFound"

    def __init__(self, bucket: str, error: str | None = None):
        super().__init__(
            message=f'Storage bucket "{bucket}" not found. Please create it in Supabase Dashboard.',
            code="BUCKET_NOT_FOUND",
            status_code=404,
            suggestion="Use Auto-Fix to create the missing bucket",
            details={"bucket": bucket, "error": error}
        )


# =============================================================================
# Record Synchronization Exceptions
# =============================================================================

class EntityNotFoundError(CRMMediaException):
    """Raised when no user record matches the external id."""

    error_kind = "EntityNotFound"

    def __init__(self, entity_id: str):
        super().__init__(
            message=f"No user found with user_id: {entity_id}",
            code="ENTITY_NOT_FOUND",
            status_code=404,
            suggestion="Check that the user profile exists before uploading an avatar",
            details={"entity_id": entity_id}
        )


class SyncFailedError(CRMMediaException):
    """Raised when the record lookup or update fails."""

    error_kind = "SyncFailed"

    def __init__(self, entity_id: str, error: str, stage: str):
        super().__init__(
            message=f"Failed to update user record: {error}",
            code="SYNC_FAILED",
            status_code=502,
            suggestion="The image was stored; refresh the profile or re-upload later",
            details={"entity_id": entity_id, "error": error, "stage": stage}
        )


# =============================================================================
# API Exceptions
# =============================================================================

class UploaderNotFoundError(CRMMediaException):
    """Raised when an uploader ID doesn't exist."""

    error_kind = "UploaderNotFound"

    def __init__(self, uploader_id: str):
        super().__init__(
            message=f"Uploader not found: {uploader_id}",
            code="UPLOADER_NOT_FOUND",
            status_code=404,
            suggestion="Create an uploader first using POST /api/v1/uploaders",
            details={"uploader_id": uploader_id}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def crm_media_exception_handler(
    request: Request,
    exc: CRMMediaException
) -> JSONResponse:
    """
    Convert CRMMediaException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - error_kind: Taxonomy name
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
