# =============================================================================
# app/routers/uploaders.py - Image Uploader Endpoints
# =============================================================================
# HTTP rendering of the uploader command surface. Each open widget gets an
# uploader id; every command maps onto one UploadStateMachine method and
# returns its model unchanged.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, File, Path, UploadFile, status

from app.dependencies import BackendDep, DiagnosticLogDep, RegistryDep, build_uploader
from core.models.diagnostics import DiagnosticEvent
from core.models.uploader import (
    FileSelection,
    ReadinessView,
    UploaderCreate,
    UploaderSnapshot,
    UploadOutcome,
)

logger = logging.getLogger(__name__)

router = APIRouter()

UploaderId = Annotated[str, Path(description="Uploader id returned on creation")]


# =============================================================================
# Lifecycle
# =============================================================================

@router.post("", response_model=UploaderSnapshot, status_code=status.HTTP_201_CREATED)
async def create_uploader(
    request: UploaderCreate,
    backend: BackendDep,
    log: DiagnosticLogDep,
    registry: RegistryDep,
):
    """
    Open an uploader for a user, contact or company.

    Runs the mount-time readiness probe, so the returned snapshot already
    shows `ready` or `error` with a remediation message.
    """
    uploader = build_uploader(request, backend, log)
    registry.add(uploader)
    await uploader.probe_readiness()
    return uploader.snapshot()


@router.get("/{uploader_id}", response_model=UploaderSnapshot)
async def get_uploader(uploader_id: UploaderId, registry: RegistryDep):
    """Current render state of an uploader."""
    return registry.get(uploader_id).snapshot()


@router.delete("/{uploader_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_uploader(uploader_id: UploaderId, registry: RegistryDep):
    """Close an uploader. Stored images are not affected."""
    registry.remove(uploader_id)


# =============================================================================
# Readiness
# =============================================================================

@router.post("/{uploader_id}/probe", response_model=ReadinessView)
async def probe_readiness(uploader_id: UploaderId, registry: RegistryDep):
    """
    Check storage readiness (also the "retry" action).

    No-op while a check is running or storage is already ready.
    """
    return await registry.get(uploader_id).probe_readiness()


@router.post("/{uploader_id}/auto-fix", response_model=ReadinessView)
async def attempt_auto_fix(uploader_id: UploaderId, registry: RegistryDep):
    """Create missing buckets, then re-probe."""
    return await registry.get(uploader_id).attempt_auto_fix()


# =============================================================================
# File and Upload
# =============================================================================

@router.post("/{uploader_id}/file", response_model=FileSelection)
async def select_file(
    uploader_id: UploaderId,
    file: Annotated[UploadFile, File(description="Image to upload (PNG, JPG, JPEG or WebP)")],
    registry: RegistryDep,
):
    """
    Select (or drop) a file.

    The declared type is the part's content type; the size is the byte count.
    """
    uploader = registry.get(uploader_id)
    content = await file.read()
    return uploader.select_file(
        name=file.filename or "upload",
        content=content,
        content_type=file.content_type or "",
        size=len(content),
    )


@router.post("/{uploader_id}/confirm", response_model=UploadOutcome)
async def confirm_upload(uploader_id: UploaderId, registry: RegistryDep):
    """
    Upload the selected file.

    For user avatars the users table is updated as well; a failed update is
    reported in `sync_error_kind` but the upload still counts as successful.
    """
    return await registry.get(uploader_id).confirm_upload()


@router.post("/{uploader_id}/cancel", response_model=UploaderSnapshot)
async def cancel(uploader_id: UploaderId, registry: RegistryDep):
    """Discard the selected file and show the current image again."""
    return registry.get(uploader_id).cancel()


@router.post("/{uploader_id}/remove", response_model=UploaderSnapshot)
async def remove_image(uploader_id: UploaderId, registry: RegistryDep):
    """Clear the current image reference (the stored object is kept)."""
    return registry.get(uploader_id).remove_image()


@router.get("/{uploader_id}/events", response_model=list[DiagnosticEvent])
async def list_uploader_events(uploader_id: UploaderId, registry: RegistryDep):
    """Diagnostic events visible to this uploader."""
    return registry.get(uploader_id).log.list_events()
