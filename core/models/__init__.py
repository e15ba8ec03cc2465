# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for the image upload pipeline:
# - upload.py: UploadTarget, CandidateFile, StoredAsset, bucket declarations
# - readiness.py: storage readiness and provisioning results
# - record.py: the user record written after avatar uploads
# - diagnostics.py: diagnostic events and comprehensive check results
# - uploader.py: UI boundary schemas (snapshots, outcomes)
#
# These models define the "contract" between the core and its callers.
# =============================================================================

# -----------------------------------------------------------------------------
# Upload Models
# -----------------------------------------------------------------------------
from .upload import (
    ALLOWED_IMAGE_TYPES,
    DEFAULT_MAX_SIZE_BYTES,
    REQUIRED_BUCKETS,
    BucketSpec,
    CandidateFile,
    StoredAsset,
    TargetKind,
    UploadTarget,
    bucket_for,
)

# -----------------------------------------------------------------------------
# Readiness Models
# -----------------------------------------------------------------------------
from .readiness import (
    ProvisionResult,
    ReadinessResult,
    ReadinessStatus,
)

# -----------------------------------------------------------------------------
# Record Models
# -----------------------------------------------------------------------------
from .record import UserRecord

# -----------------------------------------------------------------------------
# Diagnostic Models
# -----------------------------------------------------------------------------
from .diagnostics import (
    CheckStep,
    ComprehensiveCheckRequest,
    ComprehensiveCheckResult,
    DiagnosticEvent,
    DiagnosticEventCreate,
    DiagnosticExport,
)

# -----------------------------------------------------------------------------
# Uploader Models
# -----------------------------------------------------------------------------
from .uploader import (
    CandidateSummary,
    FileSelection,
    ReadinessView,
    UploadOutcome,
    UploaderCreate,
    UploaderSnapshot,
)

__all__ = [
    # Upload
    "ALLOWED_IMAGE_TYPES",
    "DEFAULT_MAX_SIZE_BYTES",
    "REQUIRED_BUCKETS",
    "BucketSpec",
    "CandidateFile",
    "StoredAsset",
    "TargetKind",
    "UploadTarget",
    "bucket_for",
    # Readiness
    "ProvisionResult",
    "ReadinessResult",
    "ReadinessStatus",
    # Record
    "UserRecord",
    # Diagnostics
    "CheckStep",
    "ComprehensiveCheckRequest",
    "ComprehensiveCheckResult",
    "DiagnosticEvent",
    "DiagnosticEventCreate",
    "DiagnosticExport",
    # Uploader
    "CandidateSummary",
    "FileSelection",
    "ReadinessView",
    "UploadOutcome",
    "UploaderCreate",
    "UploaderSnapshot",
]
