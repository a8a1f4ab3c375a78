from __future__ import annotations

import asyncio
import logging

from tenderwatch.infrastructure.observability import (
    current_log_context,
    format_prometheus,
    get_metrics_summary,
    log_context,
    record_api_call,
    record_enrichment,
    record_sync_run,
)
from tenderwatch.infrastructure.observability.logging import LOG_FORMAT, ContextualFormatter


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("tenderwatch.test", logging.INFO, __file__, 1, message, None, None)


def test_log_context_is_appended_and_restored() -> None:
    formatter = ContextualFormatter("%(message)s")

    with log_context(sync_run_id=7, fetch_date="01052024"):
        with log_context(external_code="1234-56-LE24"):
            nested = formatter.format(_record("Enriched"))
        outer = formatter.format(_record("Reconciled"))
    after = formatter.format(_record("Idle"))

    assert nested == "Enriched [sync_run_id=7 fetch_date=01052024 external_code=1234-56-LE24]"
    assert outer == "Reconciled [sync_run_id=7 fetch_date=01052024]"
    assert after == "Idle"
    assert current_log_context() == {}


def test_log_context_follows_spawned_tasks() -> None:
    async def child() -> dict:
        return current_log_context()

    async def run() -> dict:
        with log_context(sync_run_id=3):
            task = asyncio.create_task(child())
        return await task

    assert asyncio.run(run()) == {"sync_run_id": 3}
    assert "%(levelname)s" in LOG_FORMAT


def test_prometheus_export_has_counters_and_histograms() -> None:
    record_sync_run("success", 1.5, upserted=3, deleted=1)
    record_enrichment(enriched=2, failed=1, skipped=0)
    record_api_call("detail", "http_error", 0.25)

    text = format_prometheus()

    assert "# TYPE sync_runs_total counter" in text
    assert 'sync_runs_total{status="success"} 1.0' in text
    assert "sync_tenders_upserted_total 3.0" in text
    assert 'enrichment_records_total{outcome="enriched"} 2.0' in text
    assert 'enrichment_records_total{outcome="skipped"}' not in text
    assert 'remote_api_calls_total{operation="detail",outcome="http_error"} 1.0' in text
    assert "sync_run_duration_seconds_count 1" in text
    assert "sync_run_duration_seconds_sum 1.5" in text


def test_metrics_summary_groups_by_label() -> None:
    record_api_call("list_by_date", "ok", 0.1)
    record_api_call("list_by_date", "ok", 0.3)

    summary = get_metrics_summary()

    assert summary["counters"]["remote_api_calls_total"]["operation=list_by_date,outcome=ok"] == 2.0
