# =============================================================================
# core/services/provisioner.py - Storage Bucket Provisioning
# =============================================================================
# Idempotently creates the required buckets (public read, 5 MiB limit, image
# MIME allow-list). "Already exists" counts as success. Other failures are
# recorded per bucket and do not stop the remaining buckets.
#
# The result is not authoritative: callers re-run the readiness probe to
# learn whether storage is actually usable.
# =============================================================================

import logging

from core.models.readiness import ProvisionResult
from core.models.upload import REQUIRED_BUCKETS, BucketSpec
from lib.backend import AssetBackend, BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog

logger = logging.getLogger(__name__)

CONTEXT = "CREATE_BUCKETS"


class StorageProvisioner:
    """Creates missing storage buckets; safe to run any number of times."""

    def __init__(
        self,
        backend: AssetBackend,
        log: DiagnosticLog,
        buckets: tuple[BucketSpec, ...] = REQUIRED_BUCKETS,
    ):
        self.backend = backend
        self.log = log
        self.buckets = buckets

    async def provision(self) -> ProvisionResult:
        """
        Attempt to create every required bucket.

        Returns:
            ProvisionResult listing created, pre-existing and failed buckets
        """
        self.log.append(CONTEXT, "Starting bucket creation", {"buckets": [b.id for b in self.buckets]})
        result = ProvisionResult()

        for bucket in self.buckets:
            try:
                await self.backend.create_bucket(bucket)
            except BackendError as e:
                if e.category == BackendErrorCategory.ALREADY_EXISTS:
                    result.already_existed.append(bucket.id)
                    self.log.append(CONTEXT, f"Bucket {bucket.id} already exists")
                    continue

                result.failed[bucket.id] = e.message
                self.log.append(CONTEXT, f"Error creating bucket {bucket.id}", {"error": e.to_dict()})
                logger.warning(f"Failed to create bucket {bucket.id}: {e.message}")
                continue

            result.created.append(bucket.id)
            self.log.append(CONTEXT, f"Bucket {bucket.id} ready")

        self.log.append(
            CONTEXT,
            "Bucket creation completed",
            {
                "created": result.created,
                "already_existed": result.already_existed,
                "failed": result.failed,
            },
        )
        return result
