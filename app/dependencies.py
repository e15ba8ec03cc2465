# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
#
# Tests replace get_backend / get_diagnostic_log / get_registry through
# app.dependency_overrides to run the API against an in-memory backend.
# =============================================================================

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from app.config import settings
from app.registry import UploaderRegistry, uploader_registry
from core.models.upload import TargetKind, UploadTarget
from core.models.uploader import UploaderCreate
from core.services import (
    DiagnosticsService,
    RecordSynchronizer,
    StorageProvisioner,
    StorageReadinessProbe,
    UploadExecutor,
    UploadStateMachine,
)
from lib.backend import AssetBackend
from lib.diagnostic_log import DiagnosticLog


@lru_cache
def get_backend() -> AssetBackend:
    """
    Get the storage/record backend.

    Returns the process-wide Supabase backend (created on first use).
    """
    from lib.supabase_client import SupabaseAssetBackend

    return SupabaseAssetBackend(users_table=settings.USERS_TABLE)


@lru_cache
def get_diagnostic_log() -> DiagnosticLog:
    """
    Get the process-wide diagnostic log.

    Uploaders also write here when SHARED_DIAGNOSTIC_LOG is on.
    """
    return DiagnosticLog(capacity=settings.DIAGNOSTIC_LOG_CAPACITY)


def get_registry() -> UploaderRegistry:
    return uploader_registry


# Type aliases for dependency injection
BackendDep = Annotated[AssetBackend, Depends(get_backend)]
DiagnosticLogDep = Annotated[DiagnosticLog, Depends(get_diagnostic_log)]
RegistryDep = Annotated[UploaderRegistry, Depends(get_registry)]


def build_uploader(
    request: UploaderCreate,
    backend: AssetBackend,
    shared_log: DiagnosticLog,
) -> UploadStateMachine:
    """
    Wire one UploadStateMachine from settings and the shared resources.

    With SHARED_DIAGNOSTIC_LOG off, the uploader gets a private log so its
    events can be listed and exported on their own.
    """
    log = (
        shared_log
        if settings.SHARED_DIAGNOSTIC_LOG
        else DiagnosticLog(capacity=settings.DIAGNOSTIC_LOG_CAPACITY)
    )

    if request.max_size_mb is not None:
        max_size_bytes = int(request.max_size_mb * 1024 * 1024)
    else:
        max_size_bytes = settings.max_upload_size_bytes
    allowed_types = settings.allowed_mime_types_list

    synchronizer = RecordSynchronizer(backend, log) if request.kind == TargetKind.USER else None

    return UploadStateMachine(
        target=UploadTarget(kind=request.kind, entity_id=request.entity_id),
        probe=StorageReadinessProbe(backend, log),
        provisioner=StorageProvisioner(backend, log),
        executor=UploadExecutor(
            backend,
            log,
            max_size_bytes=max_size_bytes,
            allowed_types=allowed_types,
            cache_control=settings.UPLOAD_CACHE_CONTROL,
            verify_public_url=settings.VERIFY_PUBLIC_URL,
        ),
        synchronizer=synchronizer,
        log=log,
        max_size_bytes=max_size_bytes,
        allowed_types=allowed_types,
        preview_mode=request.preview_mode,
        current_asset_url=request.current_asset_url,
    )


def get_diagnostics_service(backend: BackendDep, log: DiagnosticLogDep) -> DiagnosticsService:
    return DiagnosticsService(backend, log)


DiagnosticsServiceDep = Annotated[DiagnosticsService, Depends(get_diagnostics_service)]
