"""Tests for beacons and the beacon registry."""

import asyncio

import pytest

from lightkeeper.beacons import BeaconRegistry


class TestBeaconRegistry:
    """Tests for beacon creation and removal."""

    def test_create_adds_live_beacon(self):
        registry = BeaconRegistry()
        beacon = registry.create({"job_id": 42})

        assert len(registry) == 1
        assert beacon.is_alive is True
        assert registry.contexts == [{"job_id": 42}]

    def test_context_defaults_to_empty(self):
        registry = BeaconRegistry()
        assert registry.create().context == {}

    def test_context_is_copied(self):
        registry = BeaconRegistry()
        context = {"job_id": 1}
        beacon = registry.create(context)
        context["job_id"] = 2
        assert beacon.context == {"job_id": 1}

    @pytest.mark.asyncio
    async def test_die_removes_beacon(self):
        registry = BeaconRegistry()
        beacon = registry.create()

        await beacon.die()

        assert len(registry) == 0
        assert beacon.is_alive is False

    @pytest.mark.asyncio
    async def test_double_die_keeps_other_beacons(self):
        """A second die() must not remove someone else's beacon."""
        registry = BeaconRegistry()
        first = registry.create({"name": "first"})
        registry.create({"name": "second"})

        await first.die()
        await first.die()

        assert registry.contexts == [{"name": "second"}]

    @pytest.mark.asyncio
    async def test_beacons_with_equal_context_are_distinct(self):
        registry = BeaconRegistry()
        first = registry.create({"kind": "upload"})
        registry.create({"kind": "upload"})

        await first.die()

        assert len(registry) == 1


class TestWaitUntilEmpty:
    """Tests for waiting on beacons to drain."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_empty(self):
        registry = BeaconRegistry()
        await asyncio.wait_for(registry.wait_until_empty(), timeout=0.1)

    @pytest.mark.asyncio
    async def test_waits_for_every_beacon(self):
        registry = BeaconRegistry()
        first = registry.create()
        second = registry.create()

        waiter = asyncio.create_task(registry.wait_until_empty())
        await asyncio.sleep(0)
        assert not waiter.done()

        await first.die()
        assert not waiter.done()

        await second.die()
        await asyncio.wait_for(waiter, timeout=1)

    @pytest.mark.asyncio
    async def test_waiter_reacts_before_die_returns(self):
        registry = BeaconRegistry()
        beacon = registry.create()
        drained = []

        async def wait():
            await registry.wait_until_empty()
            drained.append(True)

        waiter = asyncio.create_task(wait())
        await asyncio.sleep(0)

        await beacon.die()

        assert drained == [True]
        await waiter

    @pytest.mark.asyncio
    async def test_all_waiters_are_woken(self):
        registry = BeaconRegistry()
        beacon = registry.create()
        waiters = [asyncio.create_task(registry.wait_until_empty()) for _ in range(3)]
        await asyncio.sleep(0)

        await beacon.die()

        await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)

    @pytest.mark.asyncio
    async def test_listener_removed_after_drain(self):
        registry = BeaconRegistry()
        beacon = registry.create()
        waiter = asyncio.create_task(registry.wait_until_empty())
        await asyncio.sleep(0)

        await beacon.die()
        await waiter

        assert registry._listeners == []
