# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module owns everything Supabase-specific:
# - SupabaseClient: lazily created, shared supabase-py client
# - classify_backend_error(): maps supabase/storage/postgrest/httpx failures
#   onto BackendErrorCategory (status codes first, message text as fallback)
# - SupabaseAssetBackend: the AssetBackend implementation used in production
#
# supabase-py is synchronous, so each call runs in a worker thread
# (asyncio.to_thread) to keep the event loop free. The HEAD reachability
# check uses httpx.AsyncClient directly.
#
# Usage:
#   from lib.supabase_client import SupabaseAssetBackend
#   backend = SupabaseAssetBackend(users_table="users_crm_2024")
#   names = await backend.list_buckets()
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from supabase import Client, create_client

from app.config import settings
from core.models.record import UserRecord
from core.models.upload import BucketSpec
from lib.backend import BackendError, BackendErrorCategory

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for "no rows" on .single()
NO_ROWS_CODE = "PGRST116"

# Postgres insufficient_privilege (RLS denial on tables)
INSUFFICIENT_PRIVILEGE_CODE = "42501"

USER_RECORD_COLUMNS = "id, user_id, email, avatar_url, updated_at"


class SupabaseClientError(Exception):
    """
    Error creating the Supabase client.

    Provides actionable error messages: what failed and how to fix it.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Shared supabase-py client.

    Implements the singleton pattern - one client instance is shared across
    the application.
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses the service_role key: creating buckets requires it.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                ) from e
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached client (used by tests and after credential changes)."""
        cls._instance = None


# =============================================================================
# Error Classification
# =============================================================================

def _error_fields(exc: BaseException) -> tuple[int | None, str | None, str]:
    """Pull (status, code, message) out of the various supabase exception shapes."""
    status: Any = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    code: Any = getattr(exc, "code", None)
    message: Any = getattr(exc, "message", None)

    # storage3 StorageException / postgrest APIError carry a dict payload
    if exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]
        status = status or payload.get("statusCode") or payload.get("status")
        code = code or payload.get("code") or payload.get("error")
        message = message or payload.get("message")

    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None

    return status, (str(code) if code else None), str(message or exc)


def classify_backend_error(exc: BaseException) -> BackendError:
    """
    Convert any exception raised by supabase-py or httpx into a BackendError.

    Status codes and error codes decide the category. Message fragments are
    only consulted when the backend reported neither.
    """
    if isinstance(exc, BackendError):
        return exc

    status, code, message = _error_fields(exc)
    lowered = message.lower()
    details = {"type": type(exc).__name__, "code": code}

    if isinstance(exc, (httpx.TransportError, SupabaseClientError)):
        category = BackendErrorCategory.TRANSPORT
    elif status in (401, 403) or code == INSUFFICIENT_PRIVILEGE_CODE:
        category = BackendErrorCategory.PERMISSION_DENIED
    elif status == 404 or code == NO_ROWS_CODE:
        category = BackendErrorCategory.NOT_FOUND
    elif status == 409 or code == "Duplicate":
        category = BackendErrorCategory.ALREADY_EXISTS
    elif "row-level security" in lowered:
        category = BackendErrorCategory.PERMISSION_DENIED
    elif "already exists" in lowered:
        category = BackendErrorCategory.ALREADY_EXISTS
    elif "not found" in lowered:
        category = BackendErrorCategory.NOT_FOUND
    elif isinstance(exc, (ConnectionError, TimeoutError)):
        category = BackendErrorCategory.TRANSPORT
    else:
        category = BackendErrorCategory.UNKNOWN

    return BackendError(message, category=category, status=status, details=details)


# =============================================================================
# AssetBackend Implementation
# =============================================================================

class SupabaseAssetBackend:
    """
    AssetBackend backed by Supabase Storage and a Supabase (PostgREST) table.

    Example:
        backend = SupabaseAssetBackend(users_table="users_crm_2024")
        await backend.put_object("user-avatars", "u1/profile-1.png", data, "image/png", upsert=True)
        url = await backend.get_public_url("user-avatars", "u1/profile-1.png")
    """

    def __init__(
        self,
        client: Client | None = None,
        users_table: str = "users_crm_2024",
        http_client: httpx.AsyncClient | None = None,
    ):
        self._client = client
        self.users_table = users_table
        self._http = http_client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = SupabaseClient.get_client()
        return self._client

    async def _call(self, operation: str, fn, *args, **kwargs):
        """
        Run a blocking supabase-py call off the event loop, classifying failures.

        fn resolves self.client itself, so a client that cannot be created
        surfaces as a TRANSPORT BackendError like any other unreachable backend.
        """
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as e:
            error = classify_backend_error(e)
            logger.debug(f"Supabase {operation} failed: {error}")
            raise error from e

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    async def list_buckets(self) -> list[str]:
        buckets = await self._call("list_buckets", lambda: self.client.storage.list_buckets())
        return [bucket.name for bucket in buckets or []]

    async def create_bucket(self, spec: BucketSpec) -> None:
        options = {
            "public": spec.public,
            "file_size_limit": spec.file_size_limit,
            "allowed_mime_types": list(spec.allowed_mime_types),
        }
        await self._call(
            "create_bucket",
            lambda: self.client.storage.create_bucket(spec.id, name=spec.id, options=options),
        )
        logger.info(f"Created storage bucket: {spec.id}")

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
        file_options = {
            "content-type": content_type,
            "upsert": "true" if upsert else "false",
        }
        if cache_control:
            file_options["cache-control"] = cache_control

        await self._call(
            "upload",
            lambda: self.client.storage.from_(bucket).upload(path=path, file=content, file_options=file_options),
        )
        logger.info(f"Uploaded file to storage: {bucket}/{path}")

    async def remove_object(self, bucket: str, path: str) -> None:
        await self._call("remove", lambda: self.client.storage.from_(bucket).remove([path]))

    async def get_public_url(self, bucket: str, path: str) -> str:
        try:
            return self.client.storage.from_(bucket).get_public_url(path)
        except Exception as e:
            raise classify_backend_error(e) from e

    async def check_url(self, url: str) -> int:
        try:
            if self._http is not None:
                response = await self._http.head(url, follow_redirects=True)
            else:
                async with httpx.AsyncClient() as http:
                    response = await http.head(url, follow_redirects=True)
            return response.status_code
        except httpx.HTTPError as e:
            raise classify_backend_error(e) from e

    # -------------------------------------------------------------------------
    # Users table
    # -------------------------------------------------------------------------

    def _select_user(self, external_id: str) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(self.users_table)
                .select(USER_RECORD_COLUMNS)
                .eq("user_id", external_id)
                .single()
                .execute()
            )
        except Exception as e:
            # Check if it's a "not found" error
            if NO_ROWS_CODE in str(e):
                return None
            raise
        return response.data

    def _sample_users(self) -> list[dict[str, Any]]:
        response = self.client.table(self.users_table).select("id").limit(1).execute()
        return response.data or []

    def _update_user(self, external_id: str, changes: dict[str, Any]) -> list[dict[str, Any]]:
        response = (
            self.client.table(self.users_table)
            .update(changes)
            .eq("user_id", external_id)
            .execute()
        )
        return response.data or []

    async def check_records_table(self) -> int:
        rows = await self._call("check_records_table", self._sample_users)
        return len(rows)

    async def find_record(self, external_id: str) -> UserRecord | None:
        row = await self._call("find_record", self._select_user, external_id)
        return UserRecord.from_db_row(row) if row else None

    async def update_record(
        self,
        external_id: str,
        asset_url: str | None,
        modified_at: str,
    ) -> UserRecord | None:
        rows = await self._call(
            "update_record",
            self._update_user,
            external_id,
            {"avatar_url": asset_url, "updated_at": modified_at},
        )
        logger.debug(f"Updated {len(rows)} user rows for user_id {external_id}")
        return UserRecord.from_db_row(rows[0]) if rows else None
