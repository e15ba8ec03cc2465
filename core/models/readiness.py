# =============================================================================
# core/models/readiness.py - Storage Readiness Schemas
# =============================================================================
# - ReadinessStatus: the client-observed backend health
# - ReadinessResult: what one readiness probe found
# - ProvisionResult: what one bucket provisioning pass did
#
# State machine (owned by UploadStateMachine):
#     unknown -> checking -> ready
#                        \-> error
#     error -> checking (retry / auto-fix)
#     ready -> checking (re-check before an upload)
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field, computed_field


class ReadinessStatus(str, Enum):
    """Client-side belief about the storage backend."""
    UNKNOWN = "unknown"
    CHECKING = "checking"
    READY = "ready"
    ERROR = "error"


class ReadinessResult(BaseModel):
    """
    Outcome of one StorageReadinessProbe.probe() call.

    Example (buckets missing):
        {
            "ready": false,
            "missing_buckets": ["contact-photos"],
            "error": "Missing storage buckets: contact-photos. ...",
            "error_kind": "MissingContainers"
        }
    """

    ready: bool = Field(..., description="True when uploads may proceed")

    existing_buckets: list[str] = Field(
        default_factory=list,
        description="Bucket names the backend enumerated"
    )

    missing_buckets: list[str] = Field(
        default_factory=list,
        description="Required buckets that do not exist"
    )

    error: str | None = Field(default=None, description="Human-readable error")

    error_kind: str | None = Field(
        default=None,
        description="ConnectivityError, MissingContainers or PermissionError"
    )

    # Non-blocking note from the write-permission probe
    warning: str | None = Field(
        default=None,
        description="Write probe failure that did not block readiness"
    )


class ProvisionResult(BaseModel):
    """
    Outcome of one StorageProvisioner.provision() pass.

    Not authoritative: re-probe readiness to learn whether buckets exist.
    """

    created: list[str] = Field(default_factory=list, description="Newly created buckets")

    already_existed: list[str] = Field(
        default_factory=list,
        description="Buckets the backend reported as existing"
    )

    failed: dict[str, str] = Field(
        default_factory=dict,
        description="bucket id -> error message for failed creations"
    )

    @computed_field
    @property
    def success(self) -> bool:
        return not self.failed
