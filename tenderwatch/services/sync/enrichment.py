"""Phase 2 of a sync cycle: per-tender detail enrichment.

Details are fetched one at a time in the order Phase 1 produced them, with
a fixed pause between requests to respect the remote rate limit. A stop
request (or task cancellation) takes effect during that pause; the tender
being processed when the stop arrives is always finished first. Tenders
left over are picked up again by a later cycle that lists them.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from tenderwatch.domain.models import TenderRecord
from tenderwatch.domain.normalize import enrichment_from_detail
from tenderwatch.infrastructure.db import DatabaseError
from tenderwatch.infrastructure.db.repositories import TenderRepository
from tenderwatch.infrastructure.http import MercadoPublicoClient
from tenderwatch.infrastructure.observability import get_logger, log_exception

StoreOpener = Callable[[], AbstractContextManager[TenderRepository]]
RecordOutcome = Literal["enriched", "failed", "skipped"]

logger = get_logger(__name__)


@dataclass
class EnrichmentReport:
    total: int = 0
    enriched: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.enriched + self.failed + self.skipped

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    @property
    def status(self) -> str:
        return "cancelled" if self.cancelled else "completed"

    def count(self, outcome: RecordOutcome) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)


class EnrichmentPipeline:
    """Fetch each tender's detail and merge it into the stored record."""

    def __init__(
        self,
        client: MercadoPublicoClient,
        *,
        open_store: StoreOpener,
        clock: Callable[[], datetime],
        pacing_seconds: float = 3.0,
        progress_every: int = 50,
    ) -> None:
        self.client = client
        self._open_store = open_store
        self._clock = clock
        self.pacing_seconds = pacing_seconds
        self.progress_every = progress_every

    async def run(
        self,
        summaries: Sequence[TenderRecord],
        stop_event: asyncio.Event | None = None,
    ) -> EnrichmentReport:
        stop_event = stop_event or asyncio.Event()
        report = EnrichmentReport(total=len(summaries))
        logger.info("Starting enrichment of %d tenders", report.total)

        for index, summary in enumerate(summaries):
            if index > 0 or stop_event.is_set():
                try:
                    stopped = await self._pace(stop_event)
                except asyncio.CancelledError:
                    stopped = True
                if stopped:
                    report.cancelled = True
                    break

            # Finish the record in flight even if the task is cancelled meanwhile.
            in_flight = asyncio.ensure_future(self._process(summary.external_code))
            try:
                outcome = await asyncio.shield(in_flight)
            except asyncio.CancelledError:
                outcome = await in_flight
                report.count(outcome)
                report.cancelled = True
                break
            report.count(outcome)

            if self.progress_every > 0 and report.processed % self.progress_every == 0:
                logger.info("Enrichment progress: %d/%d", report.processed, report.total)

        if report.cancelled:
            logger.warning(
                "Enrichment stopped early: %d processed, %d left for a later cycle",
                report.processed,
                report.remaining,
            )
        logger.info(
            "Enrichment finished: %d enriched, %d failed, %d skipped",
            report.enriched,
            report.failed,
            report.skipped,
        )
        return report

    async def _pace(self, stop_event: asyncio.Event) -> bool:
        """Wait out the pacing interval; return True if a stop was requested."""
        if stop_event.is_set():
            return True
        if self.pacing_seconds <= 0:
            return False
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.pacing_seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _process(self, external_code: str) -> RecordOutcome:
        try:
            result = await asyncio.to_thread(self.client.fetch_detail, external_code)
            if not result.ok or result.value is None:
                logger.warning("Skipping enrichment of %s: %s", external_code, result.error)
                return "failed"
            return await asyncio.to_thread(self._merge, external_code, result.value)
        except Exception as exc:
            log_exception(logger, "Unexpected error enriching tender", exc, tender=external_code)
            return "failed"

    def _merge(self, external_code: str, detail: TenderRecord) -> RecordOutcome:
        enrichment = enrichment_from_detail(detail)
        try:
            with self._open_store() as tenders:
                applied = tenders.apply_enrichment(external_code, enrichment, now=self._clock())
        except (sqlite3.Error, DatabaseError) as exc:
            logger.error("Failed to store enrichment for %s: %s", external_code, exc)
            return "failed"
        if not applied:
            logger.debug("Tender %s no longer stored; enrichment skipped", external_code)
            return "skipped"
        logger.debug("Enriched tender %s with %d items", external_code, len(enrichment.items))
        return "enriched"
