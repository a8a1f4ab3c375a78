"""Periodic triggers for the sync coordinator.

Two independent loops: a sync at the top of every hour and an expiry
cleanup every midnight. They may overlap with each other and with manual
triggers; the coordinator's guard decides whether a sync actually runs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Literal

from tenderwatch.infrastructure.observability import get_logger, log_exception
from tenderwatch.services.sync import SyncCoordinator

DelayFn = Callable[[datetime], float]
SchedulerStatus = Literal["idle", "running", "stopping"]


def seconds_until_next_hour(now: datetime) -> float:
    next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return max((next_hour - now).total_seconds(), 0.0)


def seconds_until_midnight(now: datetime) -> float:
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    return max((midnight - now).total_seconds(), 0.0)


class SyncScheduler:
    """Background worker that runs the hourly sync and the daily cleanup."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        *,
        sync_delay: DelayFn = seconds_until_next_hour,
        cleanup_delay: DelayFn = seconds_until_midnight,
    ) -> None:
        self.coordinator = coordinator
        self._sync_delay = sync_delay
        self._cleanup_delay = cleanup_delay
        self._logger = get_logger(__name__)
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []
        self.status: SchedulerStatus = "idle"
        self.sync_runs = 0
        self.cleanup_runs = 0

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.running:
            raise RuntimeError("Scheduler is already running")
        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(
                self._loop("sync", self._sync_delay, self._run_sync), name="tenderwatch-sync-loop"
            ),
            asyncio.create_task(
                self._loop("cleanup", self._cleanup_delay, self._run_cleanup),
                name="tenderwatch-cleanup-loop",
            ),
        ]
        self.status = "running"
        self._logger.info("Scheduler started")

    async def stop(self) -> None:
        """Stop both loops, then stop any enrichment still draining."""
        self.status = "stopping"
        self._stop_event.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.coordinator.shutdown()
        self.status = "idle"
        self._logger.info("Scheduler stopped")

    async def _loop(
        self, name: str, delay: DelayFn, job: Callable[[], Awaitable[None]]
    ) -> None:
        while not self._stop_event.is_set():
            if await self._wait(delay(self.coordinator.now())):
                break
            try:
                await job()
            except Exception as exc:  # one failed run never ends the schedule
                log_exception(self._logger, f"Scheduled {name} failed", exc)

    async def _wait(self, seconds: float) -> bool:
        """Sleep ``seconds``; return True as soon as a stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return self._stop_event.is_set()
        return True

    async def _run_sync(self) -> None:
        self.sync_runs += 1
        await self.coordinator.run_sync()

    async def _run_cleanup(self) -> None:
        self.cleanup_runs += 1
        await asyncio.to_thread(self.coordinator.cleanup_expired)
