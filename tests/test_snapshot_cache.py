"""
Unit tests for the snapshot cache.
"""
import asyncio

import pytest

from conftest import HOME_XML, LOGIN_XML, FakeExecutor
from uix_sync.errors import CommandError
from uix_sync.snapshot_cache import SnapshotCache


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestSnapshotCache:
    @pytest.mark.asyncio
    async def test_reuses_fresh_snapshot(self, clock):
        executor = FakeExecutor([LOGIN_XML, HOME_XML])
        cache = SnapshotCache(executor.capture_hierarchy, ttl=1.0, clock=clock)

        first = await cache.get()
        clock.now += 0.5
        second = await cache.get()

        assert first is second
        assert executor.capture_count == 1
        assert cache.age == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_recaptures_after_ttl(self, clock):
        executor = FakeExecutor([LOGIN_XML, HOME_XML])
        cache = SnapshotCache(executor.capture_hierarchy, ttl=1.0, clock=clock)

        first = await cache.get()
        clock.now += 1.0
        assert await cache.get() is first
        clock.now += 0.01
        second = await cache.get()

        assert second is not first
        assert second.root.children[0].text == "Welcome"
        assert second.captured_at == clock.now
        assert cache.capture_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh_and_invalidate(self, clock):
        executor = FakeExecutor([LOGIN_XML])
        cache = SnapshotCache(executor.capture_hierarchy, ttl=10.0, clock=clock)

        first = await cache.get()
        forced = await cache.get(force_refresh=True)
        cache.invalidate()

        assert cache.peek() is None
        assert cache.is_stale()
        third = await cache.get()
        assert len({id(first), id(forced), id(third)}) == 3
        assert executor.capture_count == 3

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_capture(self):
        executor = FakeExecutor([LOGIN_XML], capture_delay=0.05)
        cache = SnapshotCache(executor.capture_hierarchy, ttl=5.0)

        results = await asyncio.gather(*(cache.get() for _ in range(5)))

        assert executor.capture_count == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_capture_error_keeps_previous_snapshot(self, clock):
        executor = FakeExecutor([LOGIN_XML, CommandError(["adb"], 1, "device offline")])
        cache = SnapshotCache(executor.capture_hierarchy, ttl=1.0, clock=clock)

        first = await cache.get()
        clock.now += 2
        with pytest.raises(CommandError):
            await cache.get()

        assert cache.peek() is first

    @pytest.mark.asyncio
    async def test_unparseable_dump_is_cached_as_degraded(self, clock):
        executor = FakeExecutor(["garbage"])
        cache = SnapshotCache(executor.capture_hierarchy, clock=clock)

        snapshot = await cache.get()

        assert snapshot.degraded is True
        assert cache.peek() is snapshot
