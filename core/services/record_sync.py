# =============================================================================
# core/services/record_sync.py - User Record Synchronization
# =============================================================================
# After a user avatar upload, writes the new URL into the users table:
# 1. look up the row by external id (absent -> EntityNotFoundError, no retry)
# 2. update avatar_url + updated_at, scoped by the same external id
#
# Lookup and update are two separate calls, not one atomic statement.
# =============================================================================

import logging
from collections.abc import Callable

from app.exceptions import EntityNotFoundError, SyncFailedError
from core.models.record import UserRecord
from lib.backend import AssetBackend, BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog
from lib.utils import utc_now_iso

logger = logging.getLogger(__name__)

CONTEXT = "UPDATE_USER_AVATAR_DB"


class RecordSynchronizer:
    """Writes asset URLs into user records."""

    def __init__(
        self,
        backend: AssetBackend,
        log: DiagnosticLog,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.backend = backend
        self.log = log
        self._clock = clock

    async def sync(self, entity_id: str, asset_url: str) -> UserRecord:
        """
        Point the user's asset reference at a new URL.

        Args:
            entity_id: External id of the user (user_id column)
            asset_url: Public URL of the uploaded image

        Returns:
            The updated record

        Raises:
            EntityNotFoundError: no user row for entity_id
            SyncFailedError: lookup or update failed
        """
        self.log.append(CONTEXT, "Starting database update", {"entity_id": entity_id, "asset_url": asset_url})

        try:
            existing = await self.backend.find_record(entity_id)
        except BackendError as e:
            if e.category == BackendErrorCategory.NOT_FOUND:
                existing = None
            else:
                self.log.append(CONTEXT, "Failed to find user", {"entity_id": entity_id, "error": e.to_dict()})
                raise SyncFailedError(entity_id, e.message, stage="lookup") from e

        if existing is None:
            error = EntityNotFoundError(entity_id)
            self.log.append(CONTEXT, "Failed to find user", {"entity_id": entity_id, "error": error.message})
            raise error

        self.log.append(
            CONTEXT,
            "User found, proceeding with update",
            {"id": existing.id, "external_id": existing.external_id, "current_asset_url": existing.asset_url},
        )

        modified_at = self._clock()
        try:
            updated = await self.backend.update_record(entity_id, asset_url, modified_at)
        except BackendError as e:
            self.log.append(CONTEXT, "Update query failed", {"entity_id": entity_id, "error": e.to_dict()})
            raise SyncFailedError(entity_id, e.message, stage="update") from e

        # Some backends return no rows from an update; fall back to what we wrote
        record = updated or existing.model_copy(update={"asset_url": asset_url, "updated_at": modified_at})

        self.log.append(CONTEXT, "Database update successful", {"id": record.id, "asset_url": record.asset_url})
        logger.info(f"Updated avatar URL for user {entity_id}")
        return record
