# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .file_validator import validate_image
from .readiness_probe import StorageReadinessProbe
from .provisioner import StorageProvisioner
from .upload_executor import UploadExecutor, build_storage_path
from .record_sync import RecordSynchronizer
from .diagnostics_service import DiagnosticsService
from .upload_state_machine import ReadinessMachine, UploadStateMachine

__all__ = [
    "validate_image",
    "StorageReadinessProbe",
    "StorageProvisioner",
    "UploadExecutor",
    "build_storage_path",
    "RecordSynchronizer",
    "DiagnosticsService",
    "ReadinessMachine",
    "UploadStateMachine",
]
