# =============================================================================
# tests/test_supabase_backend.py - Supabase Adapter Tests
# =============================================================================
# The adapter is the only place that knows supabase-py call shapes and error
# formats. The supabase client is replaced with MagicMock; the HEAD check
# runs against httpx.MockTransport.
#
# Run with: poetry run pytest tests/test_supabase_backend.py -v
# =============================================================================

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest

from core.models.upload import REQUIRED_BUCKETS
from core.services.readiness_probe import StorageReadinessProbe
from lib.backend import BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog
from lib.supabase_client import (
    SupabaseAssetBackend,
    SupabaseClientError,
    classify_backend_error,
)


class PayloadError(Exception):
    """Mimics storage3/postgrest errors that carry a dict payload."""


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def adapter(client):
    return SupabaseAssetBackend(client=client, users_table="users_crm_2024")


# =============================================================================
# Error Classification
# =============================================================================

class TestClassifyBackendError:
    """Status and error codes first, message fragments as fallback."""

    def test_transport_error(self):
        error = classify_backend_error(httpx.ConnectError("connection refused"))
        assert error.category == BackendErrorCategory.TRANSPORT

    def test_status_403_is_permission_denied(self):
        error = classify_backend_error(PayloadError({"statusCode": "403", "message": "Unauthorized"}))

        assert error.category == BackendErrorCategory.PERMISSION_DENIED
        assert error.status == 403
        assert error.message == "Unauthorized"

    def test_insufficient_privilege_code(self):
        error = classify_backend_error(PayloadError({"code": "42501", "message": "permission denied for table"}))
        assert error.category == BackendErrorCategory.PERMISSION_DENIED

    def test_status_404_is_not_found(self):
        error = classify_backend_error(PayloadError({"statusCode": 404, "message": "Bucket not found"}))
        assert error.category == BackendErrorCategory.NOT_FOUND

    def test_no_rows_code_is_not_found(self):
        error = classify_backend_error(PayloadError({"code": "PGRST116", "message": "JSON object requested"}))
        assert error.category == BackendErrorCategory.NOT_FOUND

    def test_duplicate_is_already_exists(self):
        error = classify_backend_error(
            PayloadError({"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"})
        )
        assert error.category == BackendErrorCategory.ALREADY_EXISTS

    @pytest.mark.parametrize(
        "message, category",
        [
            ("new row violates row-level security policy", BackendErrorCategory.PERMISSION_DENIED),
            ("Bucket already exists", BackendErrorCategory.ALREADY_EXISTS),
            ("Object not found", BackendErrorCategory.NOT_FOUND),
        ],
    )
    def test_message_fallback(self, message, category):
        """Without a status or code, known fragments still classify."""
        assert classify_backend_error(Exception(message)).category == category

    def test_connection_error_without_fragments(self):
        assert classify_backend_error(ConnectionError("reset")).category == BackendErrorCategory.TRANSPORT

    def test_unknown(self):
        error = classify_backend_error(RuntimeError("something odd"))

        assert error.category == BackendErrorCategory.UNKNOWN
        assert error.message == "something odd"
        assert error.details["type"] == "RuntimeError"

    def test_backend_error_passes_through(self):
        original = BackendError("x", BackendErrorCategory.TRANSPORT)
        assert classify_backend_error(original) is original

    def test_client_creation_failure_is_transport(self):
        error = classify_backend_error(SupabaseClientError("Failed to create Supabase client: Invalid API key"))
        assert error.category == BackendErrorCategory.TRANSPORT


# =============================================================================
# Storage
# =============================================================================

class TestStorage:
    """Storage calls and their argument shapes."""

    @pytest.mark.asyncio
    async def test_list_buckets_returns_names(self, adapter, client):
        client.storage.list_buckets.return_value = [
            SimpleNamespace(name="user-avatars"),
            SimpleNamespace(name="company-logos"),
        ]

        assert await adapter.list_buckets() == ["user-avatars", "company-logos"]

    @pytest.mark.asyncio
    async def test_list_buckets_failure_is_classified(self, adapter, client):
        client.storage.list_buckets.side_effect = httpx.ConnectError("getaddrinfo failed")

        with pytest.raises(BackendError) as exc_info:
            await adapter.list_buckets()

        assert exc_info.value.category == BackendErrorCategory.TRANSPORT
        assert exc_info.value.message == "getaddrinfo failed"

    @pytest.mark.asyncio
    async def test_create_bucket_options(self, adapter, client):
        spec = REQUIRED_BUCKETS[0]

        await adapter.create_bucket(spec)

        client.storage.create_bucket.assert_called_once_with(
            "user-avatars",
            name="user-avatars",
            options={
                "public": True,
                "file_size_limit": 5 * 1024 * 1024,
                "allowed_mime_types": ["image/png", "image/jpeg", "image/jpg", "image/webp"],
            },
        )

    @pytest.mark.asyncio
    async def test_create_existing_bucket(self, adapter, client):
        client.storage.create_bucket.side_effect = PayloadError(
            {"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"}
        )

        with pytest.raises(BackendError) as exc_info:
            await adapter.create_bucket(REQUIRED_BUCKETS[2])

        assert exc_info.value.category == BackendErrorCategory.ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_put_object_file_options(self, adapter, client):
        await adapter.put_object(
            "company-logos", "c1/logo-1.png", b"png", "image/png", upsert=True, cache_control="3600"
        )

        client.storage.from_.assert_called_with("company-logos")
        client.storage.from_.return_value.upload.assert_called_once_with(
            path="c1/logo-1.png",
            file=b"png",
            file_options={"content-type": "image/png", "upsert": "true", "cache-control": "3600"},
        )

    @pytest.mark.asyncio
    async def test_probe_write_has_no_upsert(self, adapter, client):
        await adapter.put_object("user-avatars", "connection-test-1.txt", b"test-connection", "text/plain")

        options = client.storage.from_.return_value.upload.call_args.kwargs["file_options"]
        assert options == {"content-type": "text/plain", "upsert": "false"}

    @pytest.mark.asyncio
    async def test_get_public_url(self, adapter, client):
        client.storage.from_.return_value.get_public_url.return_value = "https://cdn/u1/profile-1.png"

        assert await adapter.get_public_url("user-avatars", "u1/profile-1.png") == "https://cdn/u1/profile-1.png"

    @pytest.mark.asyncio
    async def test_check_url_uses_head(self, client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.method)
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            adapter = SupabaseAssetBackend(client=client, http_client=http)
            status = await adapter.check_url("https://cdn/u1/profile-1.png")

        assert status == 200
        assert seen == ["HEAD"]

    @pytest.mark.asyncio
    async def test_check_url_transport_failure(self, client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            adapter = SupabaseAssetBackend(client=client, http_client=http)
            with pytest.raises(BackendError) as exc_info:
                await adapter.check_url("https://cdn/u1/profile-1.png")

        assert exc_info.value.category == BackendErrorCategory.TRANSPORT


# =============================================================================
# Users Table
# =============================================================================

class TestUsersTable:
    """Record lookup and update through PostgREST."""

    ROW = {
        "id": 7,
        "user_id": "u1",
        "email": "ada@example.com",
        "avatar_url": "https://cdn/old.png",
        "updated_at": "2026-01-01T00:00:00Z",
    }

    @pytest.mark.asyncio
    async def test_find_record_maps_columns(self, adapter, client):
        query = client.table.return_value.select.return_value.eq.return_value.single.return_value
        query.execute.return_value = SimpleNamespace(data=self.ROW)

        record = await adapter.find_record("u1")

        client.table.assert_called_with("users_crm_2024")
        client.table.return_value.select.return_value.eq.assert_called_with("user_id", "u1")
        assert record.id == "7"
        assert record.external_id == "u1"
        assert record.asset_url == "https://cdn/old.png"

    @pytest.mark.asyncio
    async def test_check_records_table_reads_one_row(self, adapter, client):
        query = client.table.return_value.select.return_value.limit.return_value
        query.execute.return_value = SimpleNamespace(data=[{"id": 7}])

        assert await adapter.check_records_table() == 1
        client.table.assert_called_with("users_crm_2024")
        client.table.return_value.select.return_value.limit.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_find_record_no_rows(self, adapter, client):
        query = client.table.return_value.select.return_value.eq.return_value.single.return_value
        query.execute.side_effect = Exception("{'code': 'PGRST116', 'message': 'JSON object requested'}")

        assert await adapter.find_record("missing") is None

    @pytest.mark.asyncio
    async def test_find_record_other_failure(self, adapter, client):
        query = client.table.return_value.select.return_value.eq.return_value.single.return_value
        query.execute.side_effect = PayloadError({"code": "42501", "message": "permission denied"})

        with pytest.raises(BackendError) as exc_info:
            await adapter.find_record("u1")

        assert exc_info.value.category == BackendErrorCategory.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_update_record(self, adapter, client):
        updated_row = {**self.ROW, "avatar_url": "https://cdn/new.png", "updated_at": "2026-10-19T08:00:00.000Z"}
        client.table.return_value.update.return_value.eq.return_value.execute.return_value = SimpleNamespace(
            data=[updated_row]
        )

        record = await adapter.update_record("u1", "https://cdn/new.png", "2026-10-19T08:00:00.000Z")

        client.table.return_value.update.assert_called_once_with(
            {"avatar_url": "https://cdn/new.png", "updated_at": "2026-10-19T08:00:00.000Z"}
        )
        client.table.return_value.update.return_value.eq.assert_called_once_with("user_id", "u1")
        assert record.asset_url == "https://cdn/new.png"

    @pytest.mark.asyncio
    async def test_update_record_without_rows(self, adapter, client):
        client.table.return_value.update.return_value.eq.return_value.execute.return_value = SimpleNamespace(data=[])

        assert await adapter.update_record("u1", "https://cdn/new.png", "now") is None


# =============================================================================
# Unconfigured Backend
# =============================================================================

class TestClientCreationFailure:
    """A client that cannot be created behaves like an unreachable backend."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda backend: backend.list_buckets(),
            lambda backend: backend.create_bucket(REQUIRED_BUCKETS[0]),
            lambda backend: backend.put_object("user-avatars", "a.txt", b"x", "text/plain"),
            lambda backend: backend.remove_object("user-avatars", "a.txt"),
            lambda backend: backend.get_public_url("user-avatars", "a.txt"),
            lambda backend: backend.find_record("u1"),
            lambda backend: backend.check_records_table(),
        ],
    )
    async def test_calls_raise_transport_backend_error(self, broken_credentials, call):
        with pytest.raises(BackendError) as exc_info:
            await call(SupabaseAssetBackend())

        assert exc_info.value.category == BackendErrorCategory.TRANSPORT
        assert "Invalid API key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_readiness_reports_connectivity_error(self, broken_credentials):
        result = await StorageReadinessProbe(SupabaseAssetBackend(), DiagnosticLog()).probe()

        assert result.ready is False
        assert result.error_kind == "ConnectivityError"
        assert result.error.startswith("Cannot access storage service: ")
        assert "Invalid API key" in result.error
