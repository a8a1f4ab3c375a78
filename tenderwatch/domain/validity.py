"""Business validity of remote tender summaries."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from tenderwatch.domain.models import STATUS_PUBLISHED, TenderRecord
from tenderwatch.domain.normalize import parse_timestamp, resolve_close_date


def is_valid(summary: TenderRecord, now: datetime) -> bool:
    """Return True if the summary should be kept in the store.

    A tender qualifies when its status is Published and its close date is
    known, parsable and strictly after ``now``.
    """
    if summary.status_code != STATUS_PUBLISHED:
        return False
    close_date = parse_timestamp(resolve_close_date(summary))
    if close_date is None:
        return False
    return close_date > now


def select_eligible(summaries: Iterable[TenderRecord], now: datetime) -> list[TenderRecord]:
    """Eligible summaries, in input order."""
    return [summary for summary in summaries if is_valid(summary, now)]
