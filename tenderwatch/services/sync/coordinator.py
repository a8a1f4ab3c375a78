"""Sync coordinator: the two-phase sync cycle and the expiry cleanup.

A cycle fetches yesterday's tender summaries, keeps the eligible ones and
reconciles the store (Phase 1), then hands the eligible batch to a detached
enrichment task (Phase 2). Only one Phase 1 runs at a time per process; the
guard is released as soon as Phase 1 ends, so a later cycle may start while
an earlier enrichment batch is still draining. Store writes are per-tender
atomic and enrichment never recreates a deleted tender, so the two can
interleave.
"""

from __future__ import annotations

import asyncio
import sqlite3
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tenderwatch.app.config import DEFAULT_TIMEZONE, Settings, SyncSettings
from tenderwatch.domain.models import TenderRecord
from tenderwatch.domain.normalize import format_api_date
from tenderwatch.domain.validity import select_eligible
from tenderwatch.infrastructure.db import DatabaseError
from tenderwatch.infrastructure.http import MercadoPublicoClient, records_from_listing
from tenderwatch.infrastructure.observability import (
    get_logger,
    log_context,
    log_exception,
    record_cleanup,
    record_enrichment,
    record_sync_run,
)

from ..base import BaseService, ConnectionFactory, sqlite_connection_factory
from .enrichment import EnrichmentPipeline, EnrichmentReport
from .reconciler import Reconciler

SyncCycleStatus = Literal["success", "no_data", "failed", "skipped"]
TriggerStatus = Literal["accepted", "already_running"]

logger = get_logger(__name__)


def local_clock(timezone: str = DEFAULT_TIMEZONE) -> Callable[[], datetime]:
    """Return a clock yielding naive wall-clock time in ``timezone``.

    Remote timestamps are naive local times, so "now" must be too.
    """
    try:
        zone: ZoneInfo | None = ZoneInfo(timezone)
    except ZoneInfoNotFoundError:
        logger.warning("Unknown timezone %s; using the system local time", timezone)
        zone = None

    def now() -> datetime:
        current = datetime.now(zone) if zone is not None else datetime.now()
        return current.replace(tzinfo=None, microsecond=0)

    return now


@dataclass
class SyncCycleResult:
    status: SyncCycleStatus
    run_id: int | None = None
    fetch_date: str | None = None
    fetched: int = 0
    eligible: int = 0
    upserted: int = 0
    deleted: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    enrichment: EnrichmentReport | None = None

    def to_dict(self) -> dict:
        payload = asdict(self)
        if self.enrichment is not None:
            payload["enrichment"] = {
                **asdict(self.enrichment),
                "remaining": self.enrichment.remaining,
                "status": self.enrichment.status,
            }
        return payload


@dataclass(frozen=True)
class TriggerResult:
    status: TriggerStatus
    message: str

    @property
    def accepted(self) -> bool:
        return self.status == "accepted"


class SyncCoordinator(BaseService):
    """Run sync cycles with a single-flight guard and expire old tenders."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        client: MercadoPublicoClient,
        settings: SyncSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(connection_factory)
        self.settings = settings or SyncSettings()
        self.client = client
        self._clock = clock or local_clock(self.settings.timezone)
        self.enrichment = EnrichmentPipeline(
            client,
            open_store=self._tender_store,
            clock=self._clock,
            pacing_seconds=self.settings.pacing_seconds,
            progress_every=self.settings.progress_every,
        )
        # A thread lock, not an asyncio one: manual triggers run on their own loop.
        self._guard = threading.Lock()
        self._cycles: set[asyncio.Task[SyncCycleResult]] = set()
        self._enrichments: dict[asyncio.Task[EnrichmentReport], asyncio.Event] = {}
        self.last_result: SyncCycleResult | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, connection_factory: ConnectionFactory | None = None
    ) -> "SyncCoordinator":
        """Wire a coordinator to the configured API and database."""
        return cls(
            connection_factory or sqlite_connection_factory(),
            client=MercadoPublicoClient(settings.api),
            settings=settings.sync,
        )

    def now(self) -> datetime:
        return self._clock()

    @property
    def is_running(self) -> bool:
        return self._guard.locked()

    # -------------------- triggers --------------------
    async def run_sync(self, *, wait_for_enrichment: bool = False) -> SyncCycleResult:
        """Run one cycle unless another one's Phase 1 is in progress.

        Returns once Phase 1 is done; enrichment continues in the background
        unless ``wait_for_enrichment`` is set.
        """
        if not self._guard.acquire(blocking=False):
            logger.info("Sync already in progress; trigger ignored")
            return SyncCycleResult(status="skipped")
        return await self._run_locked(wait_for_enrichment=wait_for_enrichment)

    async def trigger_async(self) -> TriggerResult:
        """Start a cycle in the background without waiting for it."""
        if not self._guard.acquire(blocking=False):
            logger.info("Sync already in progress; trigger ignored")
            return TriggerResult("already_running", "A sync is already in progress")
        task = asyncio.create_task(self._run_locked(), name="tenderwatch-sync")
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return TriggerResult("accepted", "Sync started")

    def trigger_manual(self) -> SyncCycleResult:
        """Run one full cycle, enrichment included, from synchronous code."""
        return asyncio.run(self._run_to_completion())

    async def _run_to_completion(self) -> SyncCycleResult:
        try:
            return await self.run_sync(wait_for_enrichment=True)
        finally:
            await self.shutdown()

    # -------------------- cycle --------------------
    async def _run_locked(self, *, wait_for_enrichment: bool = False) -> SyncCycleResult:
        """Run a cycle; the caller must already hold the guard."""
        enrichment_task: asyncio.Task[EnrichmentReport] | None = None
        try:
            # Phase 1 runs in a worker thread that cancellation cannot stop,
            # so the guard is held until it has really finished.
            phase = asyncio.ensure_future(self._phase_one())
            try:
                result, eligible = await asyncio.shield(phase)
            except asyncio.CancelledError:
                await phase
                raise
            if eligible and result.run_id is not None:
                with log_context(sync_run_id=result.run_id, fetch_date=result.fetch_date):
                    enrichment_task = self._start_enrichment(result.run_id, eligible)
        finally:
            self._guard.release()

        if enrichment_task is not None and wait_for_enrichment:
            result.enrichment = await enrichment_task
        self.last_result = result
        return result

    async def _phase_one(self) -> tuple[SyncCycleResult, list[TenderRecord]]:
        started = time.perf_counter()
        fetch_day = (self._clock() - timedelta(days=1)).date()
        fetch_date = format_api_date(fetch_day)

        try:
            run_id = await asyncio.to_thread(self._start_run, fetch_date)
        except (sqlite3.Error, DatabaseError) as exc:
            log_exception(logger, "Could not record sync run start", exc, fetch_date=fetch_date)
            result = SyncCycleResult(status="failed", fetch_date=fetch_date, errors=[str(exc)])
            record_sync_run(result.status, time.perf_counter() - started, 0, 0)
            return result, []

        with log_context(sync_run_id=run_id, fetch_date=fetch_date):
            logger.info("Sync cycle started")
            try:
                result, eligible = await asyncio.to_thread(self._reconcile_day, fetch_day)
            except Exception as exc:
                log_exception(logger, "Sync cycle failed", exc)
                result = SyncCycleResult(status="failed", errors=[str(exc)])
                eligible = []
            result.run_id = run_id
            result.fetch_date = fetch_date
            result.duration_seconds = time.perf_counter() - started

            await asyncio.to_thread(self._finish_run, result)
            record_sync_run(result.status, result.duration_seconds, result.upserted, result.deleted)
            logger.info(
                "Sync cycle %s: fetched=%d eligible=%d upserted=%d deleted=%d failed=%d",
                result.status,
                result.fetched,
                result.eligible,
                result.upserted,
                result.deleted,
                result.failed,
            )
        return result, eligible

    def _reconcile_day(self, fetch_day: date) -> tuple[SyncCycleResult, list[TenderRecord]]:
        fetched = self.client.fetch_by_date(fetch_day)
        if not fetched.ok or fetched.value is None:
            logger.warning("No tender data this round: %s", fetched.error)
            return SyncCycleResult(status="no_data", errors=[fetched.error or "no data"]), []

        summaries = records_from_listing(fetched.value)
        eligible = select_eligible(summaries, self._clock())
        logger.info("Fetched %d tenders, %d eligible", len(summaries), len(eligible))

        with self._tender_store() as tenders:
            outcome = Reconciler(tenders, clock=self._clock).reconcile(summaries, eligible)
        result = SyncCycleResult(
            status="success",
            fetched=len(summaries),
            eligible=len(eligible),
            upserted=outcome.upserted,
            deleted=outcome.deleted,
            failed=outcome.failed,
            errors=outcome.errors,
        )
        return result, eligible

    def _start_run(self, fetch_date: str) -> int:
        with self._sync_runs() as runs:
            return runs.start(fetch_date)

    def _finish_run(self, result: SyncCycleResult) -> None:
        if result.run_id is None:
            return
        try:
            with self._sync_runs() as runs:
                runs.finish(
                    result.run_id,
                    status=result.status,
                    fetched=result.fetched,
                    eligible=result.eligible,
                    upserted=result.upserted,
                    deleted=result.deleted,
                    failed=result.failed,
                    notes="; ".join(result.errors) or None,
                )
        except (sqlite3.Error, DatabaseError) as exc:
            logger.error("Could not record sync run %s outcome: %s", result.run_id, exc)

    # -------------------- enrichment --------------------
    def _start_enrichment(
        self, run_id: int, eligible: list[TenderRecord]
    ) -> asyncio.Task[EnrichmentReport]:
        stop_event = asyncio.Event()
        task = asyncio.create_task(
            self._enrich(run_id, eligible, stop_event), name=f"tenderwatch-enrichment-{run_id}"
        )
        self._enrichments[task] = stop_event
        task.add_done_callback(lambda done: self._enrichments.pop(done, None))
        return task

    async def _enrich(
        self, run_id: int, eligible: list[TenderRecord], stop_event: asyncio.Event
    ) -> EnrichmentReport:
        report = await self.enrichment.run(eligible, stop_event)
        record_enrichment(report.enriched, report.failed, report.skipped)
        try:
            await asyncio.to_thread(self._record_enrichment, run_id, report)
        except (sqlite3.Error, DatabaseError) as exc:
            logger.error("Could not record enrichment of run %s: %s", run_id, exc)
        return report

    def _record_enrichment(self, run_id: int, report: EnrichmentReport) -> None:
        with self._sync_runs() as runs:
            runs.record_enrichment(
                run_id,
                status=report.status,
                enriched=report.enriched,
                failed=report.failed,
                skipped=report.skipped,
            )

    @property
    def active_enrichments(self) -> int:
        return sum(1 for task in self._enrichments if not task.done())

    async def drain(self) -> None:
        """Wait for background cycles and enrichment batches to finish."""
        while True:
            pending = [task for task in (*self._cycles, *self._enrichments) if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Ask every enrichment batch to stop, then wait for all tasks."""
        for stop_event in self._enrichments.values():
            stop_event.set()
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)
        # Cycles that were still in Phase 1 may have started new batches.
        for stop_event in self._enrichments.values():
            stop_event.set()
        await self.drain()

    # -------------------- cleanup --------------------
    def cleanup_expired(self) -> int:
        """Delete every tender whose close date is strictly in the past."""
        now = self._clock()
        with self._tender_store() as tenders:
            deleted = tenders.delete_closed_before(now)
        if deleted:
            logger.info("Deleted %d expired tenders", deleted)
        else:
            logger.info("No expired tenders to delete")
        record_cleanup(deleted)
        return deleted

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "active_enrichments": self.active_enrichments,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
