import asyncio
from datetime import datetime

import pytest

from conftest import FakeClient, make_summary
from tenderwatch.services.scheduler import (
    SyncScheduler,
    seconds_until_midnight,
    seconds_until_next_hour,
)


def test_delay_helpers() -> None:
    now = datetime(2024, 5, 2, 13, 45, 30)

    assert seconds_until_next_hour(now) == 14 * 60 + 30
    assert seconds_until_midnight(now) == (10 * 60 + 14) * 60 + 30
    assert seconds_until_next_hour(datetime(2024, 5, 2, 14, 0, 0)) == 3600
    assert seconds_until_midnight(datetime(2024, 12, 31, 23, 59, 59)) == 1


def test_scheduler_runs_sync_and_cleanup_then_stops(make_coordinator, open_store) -> None:
    client = FakeClient(listing=[make_summary("A")])
    coordinator = make_coordinator(client)

    async def run() -> SyncScheduler:
        scheduler = SyncScheduler(
            coordinator,
            sync_delay=lambda now: 0.05,
            cleanup_delay=lambda now: 0.05,
        )
        await scheduler.start()
        assert scheduler.status == "running"
        await asyncio.sleep(0.3)
        await asyncio.wait_for(scheduler.stop(), timeout=5)
        return scheduler

    scheduler = asyncio.run(run())

    assert scheduler.status == "idle"
    assert not scheduler.running
    assert scheduler.sync_runs >= 1
    assert scheduler.cleanup_runs >= 1
    assert len(client.date_calls) >= 1
    with open_store() as repo:
        assert repo.exists("A")


def test_stop_interrupts_long_waits(make_coordinator) -> None:
    coordinator = make_coordinator(FakeClient())

    async def run() -> SyncScheduler:
        scheduler = SyncScheduler(coordinator)
        await scheduler.start()
        await asyncio.wait_for(scheduler.stop(), timeout=1)
        return scheduler

    scheduler = asyncio.run(run())

    assert scheduler.sync_runs == 0
    assert scheduler.cleanup_runs == 0


def test_failing_job_does_not_end_the_loop(make_coordinator) -> None:
    coordinator = make_coordinator(FakeClient())
    calls = []

    def exploding_cleanup() -> int:
        calls.append(1)
        raise RuntimeError("database unavailable")

    coordinator.cleanup_expired = exploding_cleanup

    async def run() -> None:
        scheduler = SyncScheduler(
            coordinator,
            sync_delay=lambda now: 3600,
            cleanup_delay=lambda now: 0.02,
        )
        await scheduler.start()
        await asyncio.sleep(0.2)
        await scheduler.stop()

    asyncio.run(run())

    assert len(calls) >= 2


def test_start_twice_is_rejected(make_coordinator) -> None:
    coordinator = make_coordinator(FakeClient())

    async def run() -> None:
        scheduler = SyncScheduler(coordinator)
        await scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                await scheduler.start()
        finally:
            await scheduler.stop()

    asyncio.run(run())
