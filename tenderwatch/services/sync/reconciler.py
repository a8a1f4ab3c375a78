"""Phase 1 of a sync cycle: align the store with one fetched batch."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from tenderwatch.domain.models import STATUS_PUBLISHED, TenderRecord
from tenderwatch.domain.normalize import tender_from_record
from tenderwatch.infrastructure.db import DatabaseError
from tenderwatch.infrastructure.db.repositories import TenderRepository
from tenderwatch.infrastructure.observability import get_logger

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Counts of one reconcile pass."""

    upserted: int = 0
    deleted: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class Reconciler:
    """Delete tenders that stopped being published and upsert eligible ones.

    Each delete and upsert is its own transaction. A store error is logged
    and counted against that tender only; the rest of the batch continues.
    """

    def __init__(self, tenders: TenderRepository, *, clock: Callable[[], datetime]) -> None:
        self.tenders = tenders
        self._clock = clock

    def reconcile(
        self,
        all_summaries: Iterable[TenderRecord],
        eligible_summaries: Iterable[TenderRecord],
    ) -> ReconcileResult:
        result = ReconcileResult()
        for summary in all_summaries:
            if summary.status_code is None or summary.status_code == STATUS_PUBLISHED:
                continue
            self._delete_inactive(summary, result)
        for summary in eligible_summaries:
            self._upsert(summary, result)
        logger.info(
            "Reconciled batch: %d upserted, %d deleted, %d failed",
            result.upserted,
            result.deleted,
            result.failed,
        )
        return result

    def _delete_inactive(self, summary: TenderRecord, result: ReconcileResult) -> None:
        code = summary.external_code
        try:
            if self.tenders.exists(code) and self.tenders.delete(code):
                result.deleted += 1
                logger.info("Deleted inactive tender %s (status %s)", code, summary.status_code)
        except (sqlite3.Error, DatabaseError) as exc:
            result.failed += 1
            result.errors.append(f"delete {code}: {exc}")
            logger.error("Failed to delete tender %s: %s", code, exc)

    def _upsert(self, summary: TenderRecord, result: ReconcileResult) -> None:
        code = summary.external_code
        try:
            self.tenders.upsert(tender_from_record(summary), now=self._clock())
        except (sqlite3.Error, DatabaseError) as exc:
            result.failed += 1
            result.errors.append(f"upsert {code}: {exc}")
            logger.error("Failed to upsert tender %s: %s", code, exc)
            return
        result.upserted += 1
