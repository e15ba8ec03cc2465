# =============================================================================
# core/services/readiness_probe.py - Storage Readiness Probe
# =============================================================================
# Answers "can images be uploaded right now?" in three steps:
# 1. enumerate buckets (failure -> connectivity error, stop)
# 2. compare with the required buckets (missing -> configuration error, stop)
# 3. write and delete a disposable object to detect RLS misconfiguration.
#    A permission denial blocks readiness; any other failure here is only
#    logged, because the real upload re-validates permissions anyway.
# =============================================================================

import logging
from collections.abc import Callable

from app.exceptions import MissingBucketsError, StorageConnectivityError, StoragePermissionError
from core.models.readiness import ReadinessResult
from core.models.upload import REQUIRED_BUCKETS, BucketSpec
from lib.backend import AssetBackend, BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog
from lib.utils import unix_millis

logger = logging.getLogger(__name__)

CONTEXT = "STORAGE_TEST"

PROBE_CONTENT = b"test-connection"
PROBE_CONTENT_TYPE = "text/plain"


class StorageReadinessProbe:
    """
    Checks backend reachability, bucket presence and write permission.

    Safe to call repeatedly. It does not guard against overlapping calls
    itself; UploadStateMachine serializes probes per uploader.

    Example:
        probe = StorageReadinessProbe(backend, log)
        result = await probe.probe()
        if not result.ready:
            print(result.error, result.missing_buckets)
    """

    def __init__(
        self,
        backend: AssetBackend,
        log: DiagnosticLog,
        buckets: tuple[BucketSpec, ...] = REQUIRED_BUCKETS,
        write_check: bool = True,
        clock: Callable[[], int] = unix_millis,
    ):
        self.backend = backend
        self.log = log
        self.buckets = buckets
        self.write_check = write_check
        self._clock = clock

    @property
    def required_names(self) -> list[str]:
        return [bucket.id for bucket in self.buckets]

    async def probe(self) -> ReadinessResult:
        """Run the readiness checks and describe the outcome."""
        self.log.append(CONTEXT, "Starting storage connection test")

        # Step 1: can we reach storage at all?
        try:
            existing = await self.backend.list_buckets()
        except BackendError as e:
            error = StorageConnectivityError(e.message)
            self.log.append(CONTEXT, "Failed to access storage service", {"error": e.to_dict()})
            logger.warning(error.message)
            return ReadinessResult(ready=False, error=error.message, error_kind=error.error_kind)

        self.log.append(
            CONTEXT,
            "Storage service accessible",
            {"bucket_count": len(existing), "buckets": existing},
        )

        # Step 2: are all required buckets there?
        missing = [name for name in self.required_names if name not in existing]
        if missing:
            error = MissingBucketsError(missing)
            self.log.append(
                CONTEXT,
                "Missing required buckets",
                {"missing": missing, "existing": existing},
            )
            return ReadinessResult(
                ready=False,
                existing_buckets=existing,
                missing_buckets=missing,
                error=error.message,
                error_kind=error.error_kind,
            )

        # Step 3: best-effort write permission check
        warning = None
        if self.write_check:
            denial, warning = await self._check_write_permission()
            if denial is not None:
                return ReadinessResult(
                    ready=False,
                    existing_buckets=existing,
                    error=denial.message,
                    error_kind=denial.error_kind,
                )

        self.log.append(CONTEXT, "Storage connection test completed successfully")
        return ReadinessResult(ready=True, existing_buckets=existing, warning=warning)

    async def _check_write_permission(self) -> tuple[StoragePermissionError | None, str | None]:
        """
        Upload and remove a tiny object in the first required bucket.

        Returns:
            (permission error or None, non-blocking warning or None)
        """
        bucket = self.buckets[0].id
        test_path = f"connection-test-{self._clock()}.txt"
        self.log.append(CONTEXT, "Testing upload permissions", {"bucket": bucket, "test_path": test_path})

        try:
            await self.backend.put_object(bucket, test_path, PROBE_CONTENT, PROBE_CONTENT_TYPE)
        except BackendError as e:
            self.log.append(CONTEXT, "Upload permission test failed", {"error": e.to_dict()})
            if e.category == BackendErrorCategory.PERMISSION_DENIED:
                denial = StoragePermissionError(e.message, during_probe=True)
                logger.warning(denial.message)
                return denial, None
            self.log.append(CONTEXT, "Upload test failed but continuing", {"error": e.message})
            return None, f"Write test failed: {e.message}"

        self.log.append(CONTEXT, "Upload test successful", {"test_path": test_path})

        try:
            await self.backend.remove_object(bucket, test_path)
            self.log.append(CONTEXT, "Test file cleaned up")
        except BackendError as e:
            self.log.append(CONTEXT, "Test file cleanup failed", {"error": e.message})
            logger.warning(f"Could not remove probe object {bucket}/{test_path}: {e.message}")

        return None, None
