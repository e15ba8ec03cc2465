# =============================================================================
# lib/backend.py - Storage and Record Backend Contract
# =============================================================================
# The upload pipeline talks to object storage and to the users table only
# through this protocol. Production uses SupabaseAssetBackend
# (lib/supabase_client.py); tests inject an in-memory fake.
#
# Every failure crossing this boundary is a BackendError with a typed
# category. Callers branch on the category, never on message text.
# =============================================================================

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from core.models.record import UserRecord
from core.models.upload import BucketSpec


class BackendErrorCategory(str, Enum):
    """
    Why a backend call failed.

    - transport: the service could not be reached / connection dropped
    - permission_denied: row-level security or policy rejected the call
    - not_found: bucket, object or row does not exist
    - already_exists: the resource being created exists already
    - unknown: anything else (raw message is kept)
    """
    TRANSPORT = "transport"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    UNKNOWN = "unknown"


class BackendError(Exception):
    """
    A classified failure from the storage or record backend.

    Attributes:
        message: Raw message from the backend
        category: BackendErrorCategory
        status: HTTP-ish status code when the backend reported one
        details: Extra context for the diagnostic log
    """

    def __init__(
        self,
        message: str,
        category: BackendErrorCategory = BackendErrorCategory.UNKNOWN,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status = status
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for diagnostic events."""
        return {
            "message": self.message,
            "category": self.category.value,
            "status": self.status,
            **({"details": self.details} if self.details else {}),
        }


class AssetBackend(Protocol):
    """Object storage plus the users table, as the pipeline needs them."""

    async def list_buckets(self) -> list[str]:
        """Names of all buckets visible to the client."""
        ...

    async def create_bucket(self, spec: BucketSpec) -> None:
        """Create a bucket; ALREADY_EXISTS when it is there already."""
        ...

    async def put_object(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str,
        *,
        upsert: bool = False,
        cache_control: str | None = None,
    ) -> None:
        ...

    async def remove_object(self, bucket: str, path: str) -> None:
        ...

    async def get_public_url(self, bucket: str, path: str) -> str:
        ...

    async def check_url(self, url: str) -> int:
        """HEAD the URL and return the status code (TRANSPORT on failure)."""
        ...

    async def check_records_table(self) -> int:
        """Read at most one row of the users table; returns the rows seen."""
        ...

    async def find_record(self, external_id: str) -> UserRecord | None:
        """Look up a user row by external id; None when absent."""
        ...

    async def update_record(
        self,
        external_id: str,
        asset_url: str | None,
        modified_at: str,
    ) -> UserRecord | None:
        """Write asset_url and updated_at for the external id; returns the row."""
        ...
