"""Tests for asset_tracker.refresh.scheduler."""

from __future__ import annotations

import asyncio

import pytest

from asset_tracker.refresh.scheduler import Scheduler


class TestScheduler:
    def test_rejects_non_positive_interval(self):
        async def fn():
            return None

        with pytest.raises(ValueError, match="interval must be > 0"):
            Scheduler(0, fn)
        with pytest.raises(ValueError):
            Scheduler(-1, fn)

    async def test_runs_immediately(self):
        calls = []
        scheduler: Scheduler

        async def fn():
            calls.append(1)
            scheduler.stop()

        scheduler = Scheduler(3600, fn)
        await asyncio.wait_for(scheduler.run(), timeout=1)

        assert calls == [1]
        assert scheduler.runs == 1

    async def test_repeats_at_interval(self):
        calls = []
        scheduler: Scheduler

        async def fn():
            calls.append(1)
            if len(calls) == 3:
                scheduler.stop()

        scheduler = Scheduler(0.01, fn)
        await asyncio.wait_for(scheduler.run(), timeout=2)

        assert len(calls) == 3
        assert scheduler.runs == 3

    async def test_stop_during_wait_returns(self):
        started = asyncio.Event()

        async def fn():
            started.set()

        scheduler = Scheduler(3600, fn)
        task = asyncio.create_task(scheduler.run())
        await started.wait()
        await asyncio.sleep(0)

        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert scheduler.runs == 1
        assert scheduler.stopping

    async def test_stop_cancels_in_flight_run(self):
        started = asyncio.Event()
        cancelled = []

        async def fn():
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        scheduler = Scheduler(1, fn)
        task = asyncio.create_task(scheduler.run())
        await started.wait()

        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)

        assert cancelled == [True]
        assert scheduler.runs == 0
        assert not task.cancelled()

    async def test_exception_propagates(self):
        async def fn():
            raise RuntimeError("boom")

        scheduler = Scheduler(1, fn)
        with pytest.raises(RuntimeError, match="boom"):
            await scheduler.run()

    async def test_outer_cancellation_propagates(self):
        started = asyncio.Event()

        async def fn():
            started.set()

        scheduler = Scheduler(3600, fn)
        task = asyncio.create_task(scheduler.run())
        await started.wait()
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_overrun_skips_missed_ticks(self):
        calls = []
        scheduler: Scheduler

        async def fn():
            calls.append(asyncio.get_running_loop().time())
            if len(calls) == 1:
                # Overrun several ticks; they should not be replayed back to back.
                await asyncio.sleep(0.05)
            if len(calls) == 2:
                scheduler.stop()

        scheduler = Scheduler(0.01, fn)
        await asyncio.wait_for(scheduler.run(), timeout=2)

        assert len(calls) == 2
        assert calls[1] - calls[0] >= 0.05

    async def test_stop_before_run_does_nothing(self):
        calls = []

        async def fn():
            calls.append(1)

        scheduler = Scheduler(1, fn)
        scheduler.stop()
        await scheduler.run()

        assert calls == []
