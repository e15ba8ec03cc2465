# =============================================================================
# app/routers/diagnostics.py - Diagnostic Log Endpoints
# =============================================================================
# List, append, clear and export the process-wide diagnostic log, and run
# the comprehensive upload check.
# =============================================================================

import logging

from fastapi import APIRouter, Response, status

from app.dependencies import DiagnosticLogDep, DiagnosticsServiceDep
from core.models.diagnostics import (
    ComprehensiveCheckRequest,
    ComprehensiveCheckResult,
    DiagnosticEvent,
    DiagnosticEventCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/events", response_model=list[DiagnosticEvent])
async def list_events(log: DiagnosticLogDep):
    """All retained events, oldest first."""
    return log.list_events()


@router.post("/events", response_model=DiagnosticEvent, status_code=status.HTTP_201_CREATED)
async def append_event(request: DiagnosticEventCreate, log: DiagnosticLogDep):
    """Append a client-side event (e.g. from the browser)."""
    return log.append(request.context, request.message, request.data)


@router.delete("/events", status_code=status.HTTP_204_NO_CONTENT)
async def clear_events(log: DiagnosticLogDep):
    """Drop every retained event."""
    log.clear()


@router.get("/events/export")
async def export_events(log: DiagnosticLogDep):
    """
    Download retained events as a JSON document.

    The filename carries a sortable timestamp, e.g.
    upload-debug-2026-10-19T08-15-02-114Z.json
    """
    export = log.export()
    logger.info(f"Exported {export.event_count} diagnostic events as {export.filename}")
    return Response(
        content=export.content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.post("/check", response_model=ComprehensiveCheckResult)
async def run_comprehensive_check(request: ComprehensiveCheckRequest, service: DiagnosticsServiceDep):
    """
    Exercise storage and the users table end to end.

    Steps: storage_setup, table_access, record_access, record_update.
    Record steps are skipped when no external_id is given or the record
    does not exist.
    """
    return await service.run_comprehensive_check(request.external_id)
