# =============================================================================
# core/models/diagnostics.py - Diagnostic Event Schemas
# =============================================================================
# - DiagnosticEvent: one forensic log line kept in the DiagnosticLog
# - DiagnosticExport: a JSON document ready to download
# - CheckStep / ComprehensiveCheckRequest / ComprehensiveCheckResult: the full
#   diagnostics run and its output
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field, computed_field


class DiagnosticEvent(BaseModel):
    """
    One structured entry in the diagnostic ring buffer.

    Example:
        {
            "timestamp": "2026-10-19T08:15:02.114Z",
            "context": "STORAGE_TEST",
            "message": "Missing required buckets",
            "data": {"missing": ["company-logos"]}
        }
    """

    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    context: str = Field(..., min_length=1, description="Subsystem tag")
    message: str = Field(..., description="Free-text message")
    data: dict[str, Any] | None = Field(default=None, description="Structured payload")


class DiagnosticEventCreate(BaseModel):
    """Request body for appending an event from a client."""

    context: str = Field(..., min_length=1, max_length=64)
    message: str = Field(..., min_length=1, max_length=2000)
    data: dict[str, Any] | None = None


class DiagnosticExport(BaseModel):
    """Serialized events plus a sortable download filename."""

    filename: str = Field(..., description="upload-debug-<timestamp>.json")
    content: str = Field(..., description="Pretty-printed JSON array of events")
    event_count: int = Field(default=0, ge=0)


class CheckStep(BaseModel):
    """One step of a comprehensive diagnostics run."""

    name: str
    success: bool = False
    skipped: bool = False
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class ComprehensiveCheckRequest(BaseModel):
    """Which user record to exercise (optional)."""
    external_id: str | None = Field(
        default=None,
        examples=["auth-user-1"],
        description="user_id of the record to look up and rewrite"
    )


class ComprehensiveCheckResult(BaseModel):
    """All steps of a comprehensive diagnostics run."""

    timestamp: str
    external_id: str | None = None
    steps: list[CheckStep] = Field(default_factory=list)

    @computed_field
    @property
    def success(self) -> bool:
        return all(step.success or step.skipped for step in self.steps)

    def step(self, name: str) -> CheckStep | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None
