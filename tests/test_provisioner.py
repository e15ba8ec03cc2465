# =============================================================================
# tests/test_provisioner.py - Bucket Provisioning Tests
# =============================================================================
# Provisioning is idempotent and never trusted without a fresh probe.
#
# Run with: poetry run pytest tests/test_provisioner.py -v
# =============================================================================

import pytest

from core.services.provisioner import StorageProvisioner
from core.services.readiness_probe import StorageReadinessProbe
from tests.conftest import FakeAssetBackend, permission_error


class TestProvision:
    """Tests for StorageProvisioner.provision()."""

    @pytest.mark.asyncio
    async def test_creates_all_missing_buckets(self, empty_backend, log):
        result = await StorageProvisioner(empty_backend, log).provision()

        assert result.created == ["user-avatars", "contact-photos", "company-logos"]
        assert result.success is True
        assert empty_backend.buckets == ["user-avatars", "contact-photos", "company-logos"]

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, empty_backend, log):
        """Running twice never reports failure; the second run only sees existing buckets."""
        provisioner = StorageProvisioner(empty_backend, log)

        await provisioner.provision()
        second = await provisioner.provision()

        assert second.success is True
        assert second.created == []
        assert second.already_existed == ["user-avatars", "contact-photos", "company-logos"]

    @pytest.mark.asyncio
    async def test_partial_existing(self, log):
        backend = FakeAssetBackend(buckets=["contact-photos"])

        result = await StorageProvisioner(backend, log).provision()

        assert result.created == ["user-avatars", "company-logos"]
        assert result.already_existed == ["contact-photos"]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_rest(self, empty_backend, log):
        """A failing bucket is recorded and the remaining ones are still attempted."""
        empty_backend.fail("create_bucket", permission_error("not allowed"), bucket="contact-photos")

        result = await StorageProvisioner(empty_backend, log).provision()

        assert result.success is False
        assert result.failed == {"contact-photos": "not allowed"}
        assert result.created == ["user-avatars", "company-logos"]

    @pytest.mark.asyncio
    async def test_probe_after_provision_is_ready(self, empty_backend, log):
        """Missing all three -> provision -> probe reports ready."""
        probe = StorageReadinessProbe(empty_backend, log)

        before = await probe.probe()
        await StorageProvisioner(empty_backend, log).provision()
        after = await probe.probe()

        assert before.ready is False
        assert len(before.missing_buckets) == 3
        assert after.ready is True
