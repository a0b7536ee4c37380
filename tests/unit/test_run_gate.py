"""
Unit tests for testbot_runner.run_gate.
"""

import asyncio

import pytest

from testbot_runner.run_gate import RunGate


class OverlapProbe:
    """Instrumentation counting how many runs are inside the gate at once."""

    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.order: list[str] = []

    def job(self, name: str, release: asyncio.Event | None = None, delay: float = 0.01):
        async def run():
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.order.append(name)
            try:
                if release is not None:
                    await release.wait()
                await asyncio.sleep(delay)
                return name
            finally:
                self.active -= 1

        return run


class TestRunGate:
    """Test suite for RunGate."""

    @pytest.mark.asyncio
    async def test_idle_gate_runs_immediately(self):
        gate = RunGate()

        async def work():
            assert gate.busy
            return 42

        assert await gate.try_run(work) == 42
        assert not gate.busy

    @pytest.mark.asyncio
    async def test_concurrent_runs_never_overlap(self):
        """Test that two concurrently triggered runs execute one after the other."""
        gate = RunGate()
        probe = OverlapProbe()

        results = await asyncio.gather(
            gate.try_run(probe.job("first")),
            gate.try_run(probe.job("second")),
        )

        assert results == ["first", "second"]
        assert probe.max_active == 1
        assert probe.order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_newer_trigger_supersedes_queued_one(self):
        """Test queue depth of one: the middle trigger is dropped."""
        gate = RunGate()
        probe = OverlapProbe()
        release = asyncio.Event()

        first = asyncio.create_task(gate.try_run(probe.job("first", release)))
        await asyncio.sleep(0)
        second = asyncio.create_task(gate.try_run(probe.job("second")))
        await asyncio.sleep(0)
        third = asyncio.create_task(gate.try_run(probe.job("third")))
        await asyncio.sleep(0)

        assert await second is None
        assert gate.superseded_count == 1
        assert gate.has_queued

        release.set()
        assert await first == "first"
        assert await third == "third"
        assert probe.order == ["first", "third"]
        assert probe.max_active == 1
        assert not gate.busy

    @pytest.mark.asyncio
    async def test_failure_releases_gate(self):
        gate = RunGate()

        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await gate.try_run(broken)

        assert not gate.busy
        assert await gate.try_run(OverlapProbe().job("next")) == "next"

    @pytest.mark.asyncio
    async def test_failure_hands_gate_to_queued_trigger(self):
        gate = RunGate()
        release = asyncio.Event()

        async def broken():
            await release.wait()
            raise RuntimeError("boom")

        first = asyncio.create_task(gate.try_run(broken))
        await asyncio.sleep(0)
        second = asyncio.create_task(gate.try_run(OverlapProbe().job("second")))
        await asyncio.sleep(0)

        release.set()
        with pytest.raises(RuntimeError):
            await first
        assert await second == "second"
        assert not gate.busy

    @pytest.mark.asyncio
    async def test_each_newer_trigger_replaces_the_queued_one(self):
        gate = RunGate()
        probe = OverlapProbe()
        release = asyncio.Event()

        first = asyncio.create_task(gate.try_run(probe.job("first", release)))
        await asyncio.sleep(0)
        queued = []
        for name in ("second", "third", "fourth"):
            queued.append(asyncio.create_task(gate.try_run(probe.job(name))))
            await asyncio.sleep(0)

        assert await queued[0] is None
        assert await queued[1] is None
        assert gate.superseded_count == 2

        release.set()
        assert await first == "first"
        assert await queued[2] == "fourth"
        assert probe.order == ["first", "fourth"]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_frees_queue_slot(self):
        gate = RunGate()
        probe = OverlapProbe()
        release = asyncio.Event()

        first = asyncio.create_task(gate.try_run(probe.job("first", release)))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(gate.try_run(probe.job("waiter")))
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert not gate.has_queued

        release.set()
        assert await first == "first"
        assert not gate.busy
        assert probe.order == ["first"]
