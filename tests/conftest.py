# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - FakeAssetBackend: in-memory buckets, objects and user records with
#   scripted failures, a call log and optional gates to hold calls open
# - Factories for wiring uploaders against the fake
# =============================================================================

import asyncio
import os
from itertools import count

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from core.models.record import UserRecord
from core.models.upload import REQUIRED_BUCKETS, BucketSpec, TargetKind, UploadTarget
from core.services import (
    RecordSynchronizer,
    StorageProvisioner,
    StorageReadinessProbe,
    UploadExecutor,
    UploadStateMachine,
)
from lib.backend import BackendError, BackendErrorCategory
from lib.diagnostic_log import DiagnosticLog

PUBLIC_BASE = "https://test-project.supabase.co/storage/v1/object/public"

ALL_BUCKETS = [bucket.id for bucket in REQUIRED_BUCKETS]

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


# =============================================================================
# Fake Backend
# =============================================================================

class FakeAssetBackend:
    """
    In-memory AssetBackend.

    - buckets: names of existing buckets
    - objects: (bucket, path) -> {"content", "content_type", "upsert", "cache_control"}
    - records: external_id -> UserRecord
    - calls: (method, args) tuples in call order
    - fail(method, error, bucket=None): make a method raise (optionally only
      for one bucket) until heal() is called
    - gates: method -> asyncio.Event; calls wait until the event is set
    """

    def __init__(self, buckets=None, records=None, url_status: int = 200):
        self.buckets: list[str] = list(ALL_BUCKETS if buckets is None else buckets)
        self.objects: dict[tuple[str, str], dict] = {}
        self.records: dict[str, UserRecord] = {r.external_id: r for r in (records or [])}
        self.url_status = url_status
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[tuple[str, str | None], BackendError] = {}
        self.gates: dict[str, asyncio.Event] = {}

    # -------------------------------------------------------------------------
    # Scripting helpers
    # -------------------------------------------------------------------------

    def fail(self, method: str, error: BackendError, bucket: str | None = None) -> None:
        self.failures[(method, bucket)] = error

    def heal(self) -> None:
        self.failures.clear()

    def calls_to(self, method: str) -> list[tuple]:
        return [args for name, args in self.calls if name == method]

    def uploaded_paths(self, bucket: str) -> list[str]:
        return [path for (b, path) in self.objects if b == bucket]

    async def _enter(self, method: str, *args, bucket: str | None = None) -> None:
        self.calls.append((method, args))
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self.failures.get((method, bucket)) or self.failures.get((method, None))
        if error is not None:
            raise error

    # -------------------------------------------------------------------------
    # AssetBackend
    # -------------------------------------------------------------------------

    async def list_buckets(self) -> list[str]:
        await self._enter("list_buckets")
        return list(self.buckets)

    async def create_bucket(self, spec: BucketSpec) -> None:
        await self._enter("create_bucket", spec.id, bucket=spec.id)
        if spec.id in self.buckets:
            raise BackendError(
                "The resource already exists",
                BackendErrorCategory.ALREADY_EXISTS,
                status=409,
            )
        self.buckets.append(spec.id)

    async def put_object(self, bucket, path, content, content_type, *, upsert=False, cache_control=None):
        await self._enter("put_object", bucket, path, bucket=bucket)
        if bucket not in self.buckets:
            raise BackendError("Bucket not found", BackendErrorCategory.NOT_FOUND, status=404)
        if (bucket, path) in self.objects and not upsert:
            raise BackendError("The resource already exists", BackendErrorCategory.ALREADY_EXISTS, status=409)
        self.objects[(bucket, path)] = {
            "content": content,
            "content_type": content_type,
            "upsert": upsert,
            "cache_control": cache_control,
        }

    async def remove_object(self, bucket, path) -> None:
        await self._enter("remove_object", bucket, path, bucket=bucket)
        self.objects.pop((bucket, path), None)

    async def get_public_url(self, bucket, path) -> str:
        await self._enter("get_public_url", bucket, path, bucket=bucket)
        return f"{PUBLIC_BASE}/{bucket}/{path}"

    async def check_url(self, url) -> int:
        await self._enter("check_url", url)
        return self.url_status

    async def check_records_table(self) -> int:
        await self._enter("check_records_table")
        return min(len(self.records), 1)

    async def find_record(self, external_id):
        await self._enter("find_record", external_id)
        return self.records.get(external_id)

    async def update_record(self, external_id, asset_url, modified_at):
        await self._enter("update_record", external_id, asset_url, modified_at)
        record = self.records.get(external_id)
        if record is None:
            return None
        updated = record.model_copy(update={"asset_url": asset_url, "updated_at": modified_at})
        self.records[external_id] = updated
        return updated


def transport_error(message: str = "connection refused") -> BackendError:
    return BackendError(message, BackendErrorCategory.TRANSPORT)


def permission_error(message: str = "new row violates row-level security policy") -> BackendError:
    return BackendError(message, BackendErrorCategory.PERMISSION_DENIED, status=403)


def counter_clock(start: int = 1760861702000):
    """Millisecond clock that advances by one on every call."""
    ticks = count(start)
    return lambda: next(ticks)


def image_bytes(size: int = 1024) -> bytes:
    return PNG_HEADER + b"\x00" * max(size - len(PNG_HEADER), 0)


def build_uploader(
    backend,
    log: DiagnosticLog,
    kind: TargetKind = TargetKind.USER,
    entity_id: str | None = "u1",
    **kwargs,
) -> UploadStateMachine:
    """Wire an UploadStateMachine the way the app does, with deterministic clocks."""
    clock = counter_clock()
    target = UploadTarget(kind=kind, entity_id=entity_id)
    return UploadStateMachine(
        target=target,
        probe=StorageReadinessProbe(backend, log, clock=clock),
        provisioner=StorageProvisioner(backend, log),
        executor=UploadExecutor(backend, log, clock=clock),
        synchronizer=RecordSynchronizer(backend, log) if kind == TargetKind.USER else None,
        log=log,
        **kwargs,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def user_record():
    """The user row that avatar uploads write into."""
    return UserRecord(
        id="row-1",
        external_id="u1",
        email="ada@example.com",
        asset_url=None,
        updated_at="2026-01-01T00:00:00.000Z",
    )


@pytest.fixture
def backend(user_record):
    """Fully provisioned backend with one user record."""
    return FakeAssetBackend(records=[user_record])


@pytest.fixture
def empty_backend(user_record):
    """Reachable backend with no buckets at all."""
    return FakeAssetBackend(buckets=[], records=[user_record])


@pytest.fixture
def log():
    return DiagnosticLog()


@pytest.fixture
def png_file():
    """A small valid PNG candidate as (name, content, content_type)."""
    return "avatar.PNG", image_bytes(2048), "image/png"


@pytest.fixture
def broken_credentials(monkeypatch):
    """Supabase client creation fails the way supabase-py does for a bad key."""
    from lib import supabase_client

    def fail(url, key):
        raise ValueError("Invalid API key")

    supabase_client.SupabaseClient.reset()
    monkeypatch.setattr(supabase_client, "create_client", fail)
    yield
    supabase_client.SupabaseClient.reset()
