# =============================================================================
# tests/test_registry.py - Uploader Registry Tests
# =============================================================================
# Open uploaders are looked up by id and closed explicitly, when idle for
# too long, or when the registry is full (least recently used first).
#
# Run with: poetry run pytest tests/test_registry.py -v
# =============================================================================

import pytest

from app.exceptions import UploaderNotFoundError
from app.registry import UploaderRegistry
from core.models.upload import TargetKind
from tests.conftest import build_uploader


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_uploader(backend, log):
    def factory(entity_id="c1"):
        return build_uploader(backend, log, kind=TargetKind.COMPANY, entity_id=entity_id)
    return factory


class TestLookup:
    """Tests for add/get/remove."""

    def test_add_assigns_id(self, make_uploader):
        registry = UploaderRegistry()
        uploader = make_uploader()

        uploader_id = registry.add(uploader)

        assert uploader.uploader_id == uploader_id
        assert registry.get(uploader_id) is uploader
        assert uploader_id in registry

    def test_remove(self, make_uploader):
        registry = UploaderRegistry()
        uploader_id = registry.add(make_uploader())

        registry.remove(uploader_id)

        assert len(registry) == 0
        with pytest.raises(UploaderNotFoundError):
            registry.get(uploader_id)

    def test_remove_unknown(self):
        with pytest.raises(UploaderNotFoundError):
            UploaderRegistry().remove("nope")


class TestEviction:
    """Abandoned uploaders do not accumulate."""

    def test_capacity_closes_least_recently_used(self, make_uploader, clock):
        registry = UploaderRegistry(max_open=2, idle_ttl_seconds=600, clock=clock)
        first = registry.add(make_uploader("c1"))
        clock.now += 1
        second = registry.add(make_uploader("c2"))
        clock.now += 1
        registry.get(first)

        third = registry.add(make_uploader("c3"))

        assert len(registry) == 2
        assert first in registry
        assert third in registry
        assert second not in registry

    def test_capacity_is_never_exceeded(self, make_uploader, clock):
        registry = UploaderRegistry(max_open=5, idle_ttl_seconds=600, clock=clock)

        for index in range(50):
            registry.add(make_uploader(f"c{index}"))

        assert len(registry) == 5

    def test_idle_uploader_is_closed(self, make_uploader, clock):
        registry = UploaderRegistry(max_open=10, idle_ttl_seconds=60, clock=clock)
        stale = registry.add(make_uploader("c1"))
        clock.now += 30
        fresh = registry.add(make_uploader("c2"))

        clock.now += 31

        with pytest.raises(UploaderNotFoundError):
            registry.get(stale)
        assert registry.get(fresh).target.entity_id == "c2"

    def test_use_keeps_uploader_open(self, make_uploader, clock):
        registry = UploaderRegistry(max_open=10, idle_ttl_seconds=60, clock=clock)
        uploader_id = registry.add(make_uploader())

        for _ in range(5):
            clock.now += 50
            registry.get(uploader_id)

        assert uploader_id in registry

