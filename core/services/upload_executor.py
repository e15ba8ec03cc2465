# =============================================================================
# core/services/upload_executor.py - Image Upload to Object Storage
# =============================================================================
# Writes one validated image for an UploadTarget:
# 1. refuse targets without an entity id (nothing to attach the image to)
# 2. derive the path {entity_id}/{prefix}-{unix millis}.{ext}
# 3. upload with upsert + declared content type
# 4. resolve the public URL
# 5. best-effort HEAD check of that URL (never fails the upload)
#
# Re-uploads create new paths; previous objects are not deleted.
# =============================================================================

import logging
from collections.abc import Callable, Iterable

from app.exceptions import (
    BucketNotFoundError,
    MissingEntityIdError,
    StoragePermissionError,
    UploadFailedError,
)
from core.models.upload import (
    ALLOWED_IMAGE_TYPES,
    DEFAULT_MAX_SIZE_BYTES,
    REQUIRED_BUCKETS,
    BucketSpec,
    CandidateFile,
    StoredAsset,
    UploadTarget,
    bucket_for,
)
from core.services.file_validator import validate_image
from lib.backend import AssetBackend, BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog
from lib.utils import unix_millis

logger = logging.getLogger(__name__)

CONTEXT = "UPLOAD_EXECUTOR"


def build_storage_path(entity_id: str, prefix: str, filename: str, timestamp_ms: int) -> str:
    """
    Build the object path for an upload.

    Example:
        build_storage_path("c1", "logo", "Acme.PNG", 1760861702114)
        -> "c1/logo-1760861702114.png"
    """
    extension = filename.rsplit(".", 1)[-1].lower()
    return f"{entity_id}/{prefix}-{timestamp_ms}.{extension}"


class UploadExecutor:
    """
    Uploads images to the bucket of their target kind.

    Example:
        executor = UploadExecutor(backend, log)
        asset = await executor.upload(file, UploadTarget(kind="user", entity_id="u1"))
        print(asset.public_url)
    """

    def __init__(
        self,
        backend: AssetBackend,
        log: DiagnosticLog,
        buckets: tuple[BucketSpec, ...] = REQUIRED_BUCKETS,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        allowed_types: Iterable[str] = ALLOWED_IMAGE_TYPES,
        cache_control: str = "3600",
        verify_public_url: bool = True,
        clock: Callable[[], int] = unix_millis,
    ):
        self.backend = backend
        self.log = log
        self.buckets = buckets
        self.max_size_bytes = max_size_bytes
        self.allowed_types = tuple(allowed_types)
        self.cache_control = cache_control
        self.verify_public_url = verify_public_url
        self._clock = clock

    async def upload(self, file: CandidateFile, target: UploadTarget) -> StoredAsset:
        """
        Upload a file for a target and return the stored asset.

        Args:
            file: A file that already passed validation
            target: Owner of the image

        Returns:
            StoredAsset with the path and public URL

        Raises:
            MissingEntityIdError: target has no entity id (no network call made)
            UnsupportedFileTypeError / FileTooLargeError: file is invalid
            StoragePermissionError: storage policies reject the write
            BucketNotFoundError: the target bucket does not exist
            UploadFailedError: any other storage failure
        """
        self.log.append(
            CONTEXT,
            "Upload initiated",
            {"kind": target.kind.value, "entity_id": target.entity_id, **file.summary()},
        )

        if not target.entity_id:
            error = MissingEntityIdError(target.kind.value)
            self.log.append(
                CONTEXT,
                "Upload failed - no entity ID",
                {"kind": target.kind.value, "error": error.message},
            )
            raise error

        validate_image(file, self.max_size_bytes, self.allowed_types)

        bucket = bucket_for(target.kind, self.buckets)
        timestamp = self._clock()
        path = build_storage_path(target.entity_id, bucket.path_prefix, file.name, timestamp)

        self.log.append(
            CONTEXT,
            "Prepared upload parameters",
            {"bucket": bucket.id, "path": path, "timestamp": timestamp, "extension": file.extension},
        )

        try:
            await self.backend.put_object(
                bucket.id,
                path,
                file.content,
                file.content_type,
                upsert=True,
                cache_control=self.cache_control,
            )
        except BackendError as e:
            self.log.append(
                CONTEXT,
                "Storage upload failed",
                {"bucket": bucket.id, "path": path, "error": e.to_dict()},
            )
            logger.error(f"Storage upload failed for {bucket.id}/{path}: {e}")
            raise self._classify(e, bucket.id, path) from e

        self.log.append(CONTEXT, "Storage upload successful", {"bucket": bucket.id, "path": path})

        try:
            public_url = await self.backend.get_public_url(bucket.id, path)
        except BackendError as e:
            self.log.append(CONTEXT, "Could not resolve public URL", {"error": e.to_dict()})
            raise UploadFailedError(e.message, bucket.id, path) from e

        self.log.append(CONTEXT, "Generated public URL", {"public_url": public_url})

        reachable = await self._verify(public_url) if self.verify_public_url else None

        logger.info(f"Uploaded {target.kind.value} image for {target.entity_id}: {path}")
        return StoredAsset(
            bucket=bucket.id,
            path=path,
            public_url=public_url,
            publicly_reachable=reachable,
        )

    def _classify(self, error: BackendError, bucket: str, path: str):
        if error.category == BackendErrorCategory.PERMISSION_DENIED:
            return StoragePermissionError(error.message)
        if error.category == BackendErrorCategory.NOT_FOUND:
            return BucketNotFoundError(bucket, error.message)
        return UploadFailedError(error.message, bucket, path)

    async def _verify(self, url: str) -> bool | None:
        """HEAD the public URL. Logs problems, never raises."""
        try:
            status = await self.backend.check_url(url)
        except BackendError as e:
            self.log.append(CONTEXT, "Could not verify file accessibility", {"error": e.message})
            return None

        if 200 <= status < 300:
            self.log.append(CONTEXT, "File is publicly accessible", {"status": status})
            return True

        self.log.append(CONTEXT, "Uploaded file may not be accessible", {"status": status})
        logger.warning(f"Public URL returned HTTP {status}: {url}")
        return False
