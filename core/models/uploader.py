# =============================================================================
# core/models/uploader.py - Uploader (UI Boundary) Schemas
# =============================================================================
# These models define the contract between the UploadStateMachine and any
# rendering layer (the HTTP API in app/ is one such layer):
# - ReadinessView: result of probe / retry / auto-fix
# - FileSelection: result of selecting or dropping a file
# - UploadOutcome: result of confirming an upload
# - UploaderSnapshot: everything a view needs to render the widget
# - UploaderCreate: request body for opening an uploader over HTTP
# =============================================================================

from pydantic import BaseModel, Field

from .readiness import ReadinessStatus
from .upload import TargetKind


class ReadinessView(BaseModel):
    """
    Readiness as seen by the UI.

    Example:
        {"ready": false, "status": "error",
         "error": "Cannot access storage service: timeout",
         "error_kind": "ConnectivityError", "missing_buckets": []}
    """

    ready: bool
    status: ReadinessStatus
    error: str | None = None
    error_kind: str | None = None
    missing_buckets: list[str] = Field(default_factory=list)


class FileSelection(BaseModel):
    """
    Result of handing a file to the uploader.

    rejection_reason is one of: UnsupportedType, TooLarge, StorageNotReady.
    """

    accepted: bool
    rejection_reason: str | None = None
    message: str | None = None


class UploadOutcome(BaseModel):
    """
    Result of confirmUpload.

    Success carries asset_url; failure carries error_kind and message.
    `cancelled` is set when the user cancelled while the upload was in flight.
    """

    success: bool
    asset_url: str | None = None
    path: str | None = None
    error_kind: str | None = None
    message: str | None = None
    cancelled: bool = False

    # Non-fatal record sync failure, only visible here and in the diagnostic log
    sync_error_kind: str | None = None


class CandidateSummary(BaseModel):
    """Metadata of the pending file (bytes are never echoed back)."""

    name: str
    content_type: str
    size: int


class UploaderSnapshot(BaseModel):
    """Render state of one uploader widget."""

    uploader_id: str | None = None
    kind: TargetKind
    entity_id: str | None = None
    status: ReadinessStatus
    error: str | None = None
    error_kind: str | None = None
    missing_buckets: list[str] = Field(default_factory=list)
    candidate: CandidateSummary | None = None

    # Data URL of the candidate, or the current asset URL when nothing is selected
    preview: str | None = None
    current_asset_url: str | None = None
    uploading: bool = False
    can_select_file: bool = False
    preview_mode: bool = True
    max_size_mb: float = 5


class UploaderCreate(BaseModel):
    """
    Request body for opening an uploader.

    Example:
        {"kind": "company", "entity_id": "c1", "current_asset_url": null}
    """

    kind: TargetKind
    entity_id: str | None = Field(default=None, max_length=255)
    current_asset_url: str | None = None
    preview_mode: bool = True
    max_size_mb: float | None = Field(default=None, gt=0, le=50)
