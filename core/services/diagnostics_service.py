# =============================================================================
# core/services/diagnostics_service.py - Comprehensive Upload Diagnostics
# =============================================================================
# Operator-facing check of the whole avatar pipeline, step by step:
# 1. storage_setup  - list buckets, require user-avatars, write + remove a
#                     probe object (a failed write IS reported here)
# 2. table_access   - read one row of the users table (runs without an id)
# 3. record_access  - look up the user record (skipped without an id)
# 4. record_update  - rewrite the same avatar_url with a fresh updated_at
#                     (skipped when the record is absent)
#
# Every step is mirrored into the DiagnosticLog so the run can be exported.
# =============================================================================

import logging
from collections.abc import Callable

from core.models.diagnostics import CheckStep, ComprehensiveCheckResult
from core.models.record import UserRecord
from core.models.upload import REQUIRED_BUCKETS, BucketSpec
from lib.backend import AssetBackend, BackendError
from lib.diagnostic_log import DiagnosticLog
from lib.utils import unix_millis, utc_now_iso

logger = logging.getLogger(__name__)

CONTEXT = "COMPREHENSIVE_DEBUG"


class DiagnosticsService:
    """
    Runs the comprehensive upload check.

    Example:
        service = DiagnosticsService(backend, log)
        result = await service.run_comprehensive_check("auth-user-1")
        for step in result.steps:
            print(step.name, step.success, step.error)
    """

    def __init__(
        self,
        backend: AssetBackend,
        log: DiagnosticLog,
        buckets: tuple[BucketSpec, ...] = REQUIRED_BUCKETS,
        clock: Callable[[], str] = utc_now_iso,
        millis: Callable[[], int] = unix_millis,
    ):
        self.backend = backend
        self.log = log
        self.buckets = buckets
        self._clock = clock
        self._millis = millis

    async def run_comprehensive_check(self, external_id: str | None = None) -> ComprehensiveCheckResult:
        result = ComprehensiveCheckResult(timestamp=self._clock(), external_id=external_id)
        self.log.append(CONTEXT, "Starting comprehensive debug", {"external_id": external_id})

        result.steps.append(await self._check_storage())
        result.steps.append(await self._check_table_access())

        record: UserRecord | None = None
        if external_id:
            access, record = await self._check_record_access(external_id)
            result.steps.append(access)
        else:
            result.steps.append(CheckStep(name="record_access", skipped=True, error="No user ID provided"))

        if record is not None:
            result.steps.append(await self._check_record_update(record))
        else:
            result.steps.append(CheckStep(name="record_update", skipped=True, error="No user record to update"))

        self.log.append(
            CONTEXT,
            "Comprehensive debug completed",
            {"success": result.success, "steps": [s.model_dump() for s in result.steps]},
        )
        logger.info(f"Comprehensive check finished (success={result.success})")
        return result

    async def _check_storage(self) -> CheckStep:
        step = CheckStep(name="storage_setup")
        bucket = self.buckets[0].id

        try:
            existing = await self.backend.list_buckets()
        except BackendError as e:
            step.error = f"Cannot list buckets: {e.message}"
            self.log.append(CONTEXT, "Storage setup check failed", {"error": e.to_dict()})
            return step

        step.data["buckets"] = existing
        if bucket not in existing:
            step.error = f"{bucket} bucket not found"
            self.log.append(CONTEXT, "Storage setup check failed", {"missing": bucket, "existing": existing})
            return step

        test_path = f"test-{self._millis()}.txt"
        try:
            await self.backend.put_object(bucket, test_path, b"test", "text/plain")
        except BackendError as e:
            step.error = f"Upload test failed: {e.message}"
            step.data["error_category"] = e.category.value
            self.log.append(CONTEXT, "Upload test failed", {"error": e.to_dict()})
            return step

        try:
            await self.backend.remove_object(bucket, test_path)
        except BackendError as e:
            step.data["cleanup_error"] = e.message
            self.log.append(CONTEXT, "Test file cleanup failed", {"error": e.message})

        step.success = True
        self.log.append(CONTEXT, "Storage setup check passed", step.data)
        return step

    async def _check_table_access(self) -> CheckStep:
        step = CheckStep(name="table_access")
        try:
            rows = await self.backend.check_records_table()
        except BackendError as e:
            step.error = f"Cannot query users table: {e.message}"
            step.data["error_category"] = e.category.value
            self.log.append(CONTEXT, "Users table check failed", {"error": e.to_dict()})
            return step

        step.success = True
        step.data["sample_rows"] = rows
        self.log.append(CONTEXT, "Users table accessible", step.data)
        return step

    async def _check_record_access(self, external_id: str) -> tuple[CheckStep, UserRecord | None]:
        step = CheckStep(name="record_access")
        try:
            record = await self.backend.find_record(external_id)
        except BackendError as e:
            step.error = e.message
            self.log.append(CONTEXT, "User record lookup failed", {"error": e.to_dict()})
            return step, None

        if record is None:
            step.error = f"No user found with user_id: {external_id}"
            self.log.append(CONTEXT, "User record not found", {"external_id": external_id})
            return step, None

        step.success = True
        step.data = record.model_dump()
        self.log.append(CONTEXT, "User record found", step.data)
        return step, record

    async def _check_record_update(self, record: UserRecord) -> CheckStep:
        step = CheckStep(name="record_update")
        try:
            updated = await self.backend.update_record(record.external_id, record.asset_url, self._clock())
        except BackendError as e:
            step.error = e.message
            self.log.append(CONTEXT, "User record update failed", {"error": e.to_dict()})
            return step

        step.success = True
        step.data = {"updated": updated.model_dump() if updated else None}
        self.log.append(CONTEXT, "User record update passed", step.data)
        return step
