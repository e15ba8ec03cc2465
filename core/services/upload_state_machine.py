# =============================================================================
# core/services/upload_state_machine.py - Image Uploader State Machine
# =============================================================================
# One instance per open uploader widget. It sequences:
#   probe readiness -> (auto-fix) -> select file -> confirm upload -> sync
# and exposes the result of every command as a pydantic model, so any
# rendering layer (HTTP API, CLI, tests) only dispatches commands and reads
# snapshots.
#
# Readiness:  unknown -> checking -> {ready, error}
#   - ready and error are resting states; error offers retry and auto-fix
#   - entering checking while checking or ready is a no-op
#   - file selection is only possible while ready
#
# Upload errors are per attempt and never move readiness to error.
# Record sync errors are logged and reported in the outcome, never fatal.
# Cancel is UI-only: an in-flight upload still completes.
# =============================================================================

import logging
from collections.abc import Callable, Iterable

from statemachine import State, StateMachine

from app.exceptions import (
    CRMMediaException,
    MissingEntityIdError,
    ProvisioningError,
)
from core.models.readiness import ReadinessResult, ReadinessStatus
from core.models.upload import (
    ALLOWED_IMAGE_TYPES,
    DEFAULT_MAX_SIZE_BYTES,
    CandidateFile,
    StoredAsset,
    TargetKind,
    UploadTarget,
)
from core.models.uploader import (
    CandidateSummary,
    FileSelection,
    ReadinessView,
    UploaderSnapshot,
    UploadOutcome,
)
from core.services.file_validator import validate_image
from core.services.provisioner import StorageProvisioner
from core.services.readiness_probe import StorageReadinessProbe
from core.services.record_sync import RecordSynchronizer
from core.services.upload_executor import UploadExecutor
from lib.diagnostic_log import DiagnosticLog

logger = logging.getLogger(__name__)

CONTEXT = "IMAGE_UPLOADER"

NOT_READY_MESSAGE = "Storage is not ready. Please try again."
PROBE_CRASH_MESSAGE = "Failed to check storage connection"

Listener = Callable[[str, UploaderSnapshot], None]


class ReadinessMachine(StateMachine):
    """
    Storage readiness of one uploader.

    Pure transition table, no callbacks: the uploader drives it and keeps
    the error details itself.
    """

    unknown = State("Unknown", initial=True, value="unknown")
    checking = State("Checking", value="checking")
    ready = State("Ready", value="ready")
    errored = State("Error", value="error")

    begin_check = unknown.to(checking) | errored.to(checking)
    recheck = ready.to(checking)
    succeed = checking.to(ready)
    fail = checking.to(errored)


class UploadStateMachine:
    """
    Command surface of one image uploader.

    Every command returns a model and never raises taxonomy errors.

    Example:
        uploader = UploadStateMachine(target, probe, provisioner, executor, synchronizer, log)
        await uploader.probe_readiness()
        uploader.select_file("me.png", data, "image/png")
        outcome = await uploader.confirm_upload()
    """

    def __init__(
        self,
        target: UploadTarget,
        probe: StorageReadinessProbe,
        provisioner: StorageProvisioner,
        executor: UploadExecutor,
        synchronizer: RecordSynchronizer | None,
        log: DiagnosticLog,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        allowed_types: Iterable[str] = ALLOWED_IMAGE_TYPES,
        preview_mode: bool = True,
        current_asset_url: str | None = None,
        uploader_id: str | None = None,
    ):
        self.target = target
        self.probe = probe
        self.provisioner = provisioner
        self.executor = executor
        self.synchronizer = synchronizer
        self.log = log
        self.max_size_bytes = max_size_bytes
        self.allowed_types = tuple(allowed_types)
        self.preview_mode = preview_mode
        self.current_asset_url = current_asset_url
        self.uploader_id = uploader_id

        self._machine = ReadinessMachine()
        self._error: str | None = None
        self._error_kind: str | None = None
        self._missing: list[str] = []

        self._candidate: CandidateFile | None = None
        self._uploading = False

        # Bumped by cancel/remove; an upload that finishes under a newer
        # generation must not touch the display
        self._generation = 0

        self._listeners: list[Listener] = []

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def status(self) -> ReadinessStatus:
        return ReadinessStatus(self._machine.current_state.value)

    @property
    def candidate(self) -> CandidateFile | None:
        return self._candidate

    @property
    def uploading(self) -> bool:
        return self._uploading

    def readiness(self) -> ReadinessView:
        return ReadinessView(
            ready=self.status == ReadinessStatus.READY,
            status=self.status,
            error=self._error,
            error_kind=self._error_kind,
            missing_buckets=list(self._missing),
        )

    def snapshot(self) -> UploaderSnapshot:
        """Everything a view needs to render the uploader."""
        candidate = self._candidate
        return UploaderSnapshot(
            uploader_id=self.uploader_id,
            kind=self.target.kind,
            entity_id=self.target.entity_id,
            status=self.status,
            error=self._error,
            error_kind=self._error_kind,
            missing_buckets=list(self._missing),
            candidate=(
                CandidateSummary(name=candidate.name, content_type=candidate.content_type, size=candidate.size)
                if candidate
                else None
            ),
            preview=candidate.preview_url if candidate else self.current_asset_url,
            current_asset_url=self.current_asset_url,
            uploading=self._uploading,
            can_select_file=self.status == ReadinessStatus.READY and not self._uploading,
            preview_mode=self.preview_mode,
            max_size_mb=self.max_size_bytes / (1024 * 1024),
        )

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called as listener(event, snapshot).

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event, snapshot)
            except Exception:
                logger.exception(f"Uploader listener failed on '{event}'")

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------

    async def probe_readiness(self) -> ReadinessView:
        """
        Check storage readiness (mount-time check and the retry action).

        No-op while a check is already running or storage is already ready.
        """
        if self.status in (ReadinessStatus.CHECKING, ReadinessStatus.READY):
            return self.readiness()

        self._enter_checking()
        return await self._run_probe()

    async def attempt_auto_fix(self) -> ReadinessView:
        """
        Create missing buckets, then trust only a fresh probe.

        If buckets are still missing afterwards the uploader ends in error
        with the provisioning message.
        """
        if self.status == ReadinessStatus.CHECKING:
            return self.readiness()

        self._enter_checking()
        self.log.append(CONTEXT, "Attempting storage auto-fix", {"kind": self.target.kind.value})

        try:
            provision = await self.provisioner.provision()
            result = await self.probe.probe()
        except Exception as e:
            logger.exception("Storage auto-fix crashed")
            error = ProvisioningError([], {"error": str(e)})
            self._fail(error.message, error.error_kind)
            return self.readiness()

        if not result.ready and result.missing_buckets:
            error = ProvisioningError(result.missing_buckets, provision.failed)
            self.log.append(CONTEXT, "Storage auto-fix failed", error.to_dict())
            self._fail(error.message, error.error_kind, result.missing_buckets)
            return self.readiness()

        self._apply_probe_result(result)
        if result.ready:
            self.log.append(CONTEXT, "Storage auto-fix completed", {"created": provision.created})
        return self.readiness()

    def _enter_checking(self) -> None:
        if self.status == ReadinessStatus.READY:
            self._machine.recheck()
        else:
            self._machine.begin_check()
        self._error = None
        self._error_kind = None
        self._missing = []
        self._notify("checking")

    async def _run_probe(self) -> ReadinessView:
        try:
            result = await self.probe.probe()
        except Exception:
            logger.exception("Storage readiness probe crashed")
            self._fail(PROBE_CRASH_MESSAGE, None)
            return self.readiness()

        self._apply_probe_result(result)
        return self.readiness()

    def _apply_probe_result(self, result: ReadinessResult) -> None:
        if result.ready:
            self._machine.succeed()
            logger.info(f"Storage ready for {self.target.kind.value} uploads")
            self._notify("ready")
        else:
            self._fail(result.error, result.error_kind, result.missing_buckets)

    def _fail(self, error: str | None, error_kind: str | None, missing: list[str] | None = None) -> None:
        self._machine.fail()
        self._error = error
        self._error_kind = error_kind
        self._missing = list(missing or [])
        logger.warning(f"Storage not ready: {error}")
        self._notify("error")

    # -------------------------------------------------------------------------
    # File selection
    # -------------------------------------------------------------------------

    def select_file(
        self,
        name: str,
        content: bytes,
        content_type: str,
        size: int | None = None,
    ) -> FileSelection:
        """
        Hand a picked or dropped file to the uploader.

        Args:
            name: Original filename (the extension is taken from it)
            content: File bytes
            content_type: Declared MIME type
            size: Declared size; defaults to len(content)

        Returns:
            FileSelection; rejected files leave the current candidate untouched
        """
        if self.status != ReadinessStatus.READY:
            self.log.append(CONTEXT, "File selection rejected - storage not ready", {"status": self.status.value})
            return FileSelection(accepted=False, rejection_reason="StorageNotReady", message=NOT_READY_MESSAGE)

        if self._uploading:
            return FileSelection(
                accepted=False,
                rejection_reason="UploadInProgress",
                message="An upload is already in progress",
            )

        declared_size = len(content) if size is None else size
        candidate = CandidateFile(name=name, content_type=content_type, size=declared_size, content=content)
        self.log.append(CONTEXT, "Validating file", candidate.summary())

        try:
            validate_image(candidate, self.max_size_bytes, self.allowed_types)
        except CRMMediaException as e:
            self.log.append(CONTEXT, "File rejected", {"error_kind": e.error_kind, "error": e.message})
            return FileSelection(accepted=False, rejection_reason=e.error_kind, message=e.user_message)

        self._candidate = candidate
        self.log.append(CONTEXT, "Preview created for file", {"name": name})
        self._notify("file_selected")
        return FileSelection(accepted=True)

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    async def confirm_upload(self) -> UploadOutcome:
        """
        Upload the selected file and, for user targets, sync the record.

        Readiness is re-checked first; if it has gone stale the upload is
        aborted and the uploader shows the error state.
        """
        if self._uploading:
            return UploadOutcome(
                success=False,
                error_kind="UploadInProgress",
                message="An upload is already in progress",
            )

        if self._candidate is None:
            self.log.append(CONTEXT, "Upload requested with no file selected")
            return UploadOutcome(success=False, error_kind="NoFileSelected", message="No file selected")

        if not self.target.entity_id:
            error = MissingEntityIdError(self.target.kind.value)
            self.log.append(CONTEXT, "Upload blocked - no entity ID", error.to_dict())
            return self._failure(error)

        candidate = self._candidate
        generation = self._generation
        self._uploading = True
        self._notify("upload_started")

        try:
            outcome = await self._perform_upload(candidate, generation)
        finally:
            self._uploading = False

        outcome.cancelled = generation != self._generation
        self._notify("upload_cancelled" if outcome.cancelled else "upload_finished")
        return outcome

    async def _perform_upload(self, candidate: CandidateFile, generation: int) -> UploadOutcome:
        view = await self._revalidate()
        if not view.ready:
            self.log.append(CONTEXT, "Upload aborted - storage not ready", {"error": view.error})
            return UploadOutcome(
                success=False,
                error_kind=view.error_kind or "StorageNotReady",
                message=view.error or NOT_READY_MESSAGE,
            )

        try:
            asset = await self.executor.upload(candidate, self.target)
        except CRMMediaException as e:
            self.log.append(CONTEXT, "Upload failed", e.to_dict())
            return self._failure(e)

        sync_error_kind = await self._sync(asset)

        if generation == self._generation:
            self.current_asset_url = asset.public_url
            if not self.preview_mode:
                self._candidate = None

        return UploadOutcome(
            success=True,
            asset_url=asset.public_url,
            path=asset.path,
            sync_error_kind=sync_error_kind,
        )

    async def _revalidate(self) -> ReadinessView:
        if self.status == ReadinessStatus.CHECKING:
            return self.readiness()
        self._enter_checking()
        return await self._run_probe()

    async def _sync(self, asset: StoredAsset) -> str | None:
        """Write the new URL into the user record; failures are non-fatal."""
        if self.target.kind != TargetKind.USER or self.synchronizer is None:
            return None

        try:
            await self.synchronizer.sync(self.target.entity_id, asset.public_url)
        except CRMMediaException as e:
            self.log.append(
                CONTEXT,
                "Record sync failed after upload",
                {"error_kind": e.error_kind, "error": e.message, "asset_url": asset.public_url},
            )
            logger.warning(f"Uploaded {asset.path} but record sync failed: {e.message}")
            return e.error_kind

        return None

    def _failure(self, error: CRMMediaException) -> UploadOutcome:
        return UploadOutcome(success=False, error_kind=error.error_kind, message=error.user_message)

    # -------------------------------------------------------------------------
    # Cancel / remove
    # -------------------------------------------------------------------------

    def cancel(self) -> UploaderSnapshot:
        """Discard the candidate and show the current asset again."""
        self._generation += 1
        self._candidate = None
        self.log.append(CONTEXT, "Selection cancelled", {"uploading": self._uploading})
        self._notify("cancelled")
        return self.snapshot()

    def remove_image(self) -> UploaderSnapshot:
        """Clear the candidate and the current asset reference. Stored objects are kept."""
        self._generation += 1
        self._candidate = None
        previous = self.current_asset_url
        self.current_asset_url = None
        self.log.append(CONTEXT, "Image removed", {"previous_asset_url": previous})
        self._notify("removed")
        return self.snapshot()
