from __future__ import annotations

import asyncio
import threading
from datetime import date, datetime

from conftest import NOW, FakeClient, make_detail, make_summary
from tenderwatch.app.config import ApiSettings, Settings, SyncSettings
from tenderwatch.domain.models import StoredTender
from tenderwatch.infrastructure.db import get_connection
from tenderwatch.infrastructure.db.repositories import SyncRunRepository, TenderRepository
from tenderwatch.infrastructure.http import MercadoPublicoClient
from tenderwatch.infrastructure.observability import get_registry
from tenderwatch.services.base import sqlite_connection_factory
from tenderwatch.services.sync import SyncCoordinator, local_clock


class BlockingClient(FakeClient):
    """Holds the list-by-date call until released, keeping Phase 1 busy."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_by_date(self, day: date):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().fetch_by_date(day)


def test_end_to_end_phase_one_then_enrichment(make_coordinator, open_store) -> None:
    client = FakeClient(
        listing=[make_summary("E1", close="2024-05-03T12:00:00")],
        details={"E1": make_detail("E1", items=1)},
    )
    coordinator = make_coordinator(client)

    async def run():
        result = await coordinator.run_sync()
        with open_store() as repo:
            after_phase_one = repo.find("E1")
        await coordinator.drain()
        return result, after_phase_one

    result, after_phase_one = asyncio.run(run())

    with open_store() as repo:
        enriched = repo.find("E1")
    assert result.status == "success"
    assert result.upserted == 1
    assert after_phase_one is not None
    assert after_phase_one.items == []
    assert after_phase_one.buyer_name is None
    assert enriched is not None
    assert len(enriched.items) == 1
    assert enriched.buyer_name is not None
    assert enriched.buyer_rut is not None


def test_fetch_date_is_yesterday(make_coordinator) -> None:
    client = FakeClient()
    coordinator = make_coordinator(client, now=datetime(2024, 3, 1, 0, 30, 0))

    result = coordinator.trigger_manual()

    assert client.date_calls == [date(2024, 2, 29)]
    assert result.fetch_date == "29022024"


def test_trigger_manual_waits_for_enrichment_and_records_run(make_coordinator, db_path) -> None:
    client = FakeClient(
        listing=[
            make_summary("A"),
            make_summary("B"),
            make_summary("X", status=6),
            make_summary("OLD", close="2020-01-01T00:00:00"),
        ],
        details={"A": make_detail("A", items=2)},
    )
    coordinator = make_coordinator(client)

    result = coordinator.trigger_manual()

    assert (result.fetched, result.eligible, result.upserted) == (4, 2, 2)
    assert result.enrichment is not None
    assert (result.enrichment.enriched, result.enrichment.failed) == (1, 1)
    assert client.detail_calls == ["A", "B"]
    assert not coordinator.is_running
    with get_connection(db_path) as conn:
        row = SyncRunRepository(conn).get(result.run_id)
    assert row["status"] == "success"
    assert row["fetched"] == 4
    assert row["enrichment_status"] == "completed"
    assert row["enriched"] == 1
    assert row["enrichment_failed"] == 1
    sync_runs = get_registry().counter("sync_runs_total")
    assert sync_runs.get({"status": "success"}) == 1


def test_fetch_failure_ends_cycle_with_no_data(make_coordinator, open_store, db_path) -> None:
    with open_store() as repo:
        repo.upsert(StoredTender(external_code="KEEP", name="keep", status_code=5), now=NOW)
    client = FakeClient(list_error="HTTP 500")
    coordinator = make_coordinator(client)

    result = coordinator.trigger_manual()

    assert result.status == "no_data"
    assert result.errors == ["HTTP 500"]
    assert result.enrichment is None
    assert client.detail_calls == []
    with open_store() as repo:
        assert repo.exists("KEEP")
    with get_connection(db_path) as conn:
        assert SyncRunRepository(conn).get(result.run_id)["status"] == "no_data"


def test_unexpected_error_marks_run_failed_and_releases_guard(make_coordinator) -> None:
    class ExplodingClient(FakeClient):
        def fetch_by_date(self, day):
            raise RuntimeError("boom")

    coordinator = make_coordinator(ExplodingClient())

    result = coordinator.trigger_manual()

    assert result.status == "failed"
    assert "boom" in result.errors[0]
    assert not coordinator.is_running


def test_trigger_async_is_single_flight(make_coordinator) -> None:
    client = BlockingClient(listing=[make_summary("A")], details={"A": make_detail("A")})
    coordinator = make_coordinator(client)

    async def run():
        first = await coordinator.trigger_async()
        await asyncio.to_thread(client.entered.wait, 5)
        second = await coordinator.trigger_async()
        skipped = await coordinator.run_sync()
        running_while_blocked = coordinator.is_running
        client.release.set()
        await coordinator.drain()
        return first, second, skipped, running_while_blocked

    first, second, skipped, running_while_blocked = asyncio.run(run())

    assert first.status == "accepted"
    assert second.status == "already_running"
    assert skipped.status == "skipped"
    assert running_while_blocked
    assert len(client.date_calls) == 1
    assert not coordinator.is_running
    assert coordinator.last_result is not None
    assert coordinator.last_result.upserted == 1


def test_cancelled_cycle_keeps_guard_until_phase_one_finishes(make_coordinator, db_path) -> None:
    client = BlockingClient(listing=[make_summary("A")], details={"A": make_detail("A")})
    coordinator = make_coordinator(client)

    async def run():
        cycle = asyncio.create_task(coordinator.run_sync())
        await asyncio.to_thread(client.entered.wait, 5)
        cycle.cancel()
        await asyncio.sleep(0.05)
        running_after_cancel = coordinator.is_running
        overlapping = await coordinator.run_sync()
        client.release.set()
        try:
            await cycle
        except asyncio.CancelledError:
            cancelled = True
        else:
            cancelled = False
        await coordinator.shutdown()
        return running_after_cancel, overlapping, cancelled

    running_after_cancel, overlapping, cancelled = asyncio.run(run())

    assert running_after_cancel
    assert overlapping.status == "skipped"
    assert cancelled
    assert not coordinator.is_running
    assert len(client.date_calls) == 1
    with get_connection(db_path) as conn:
        (row,) = SyncRunRepository(conn).list_recent(5)
    assert row["status"] == "success"


def test_guard_does_not_cover_enrichment(make_coordinator) -> None:
    client = FakeClient(
        listing=[make_summary("A"), make_summary("B")],
        details={"A": make_detail("A"), "B": make_detail("B")},
    )
    coordinator = make_coordinator(client, pacing_seconds=30)

    async def run():
        first = await coordinator.run_sync()
        await asyncio.sleep(0.1)
        active = coordinator.active_enrichments
        second = await coordinator.run_sync()
        await coordinator.shutdown()
        return first, active, second

    first, active, second = asyncio.run(run())

    assert first.status == "success"
    assert active == 1
    assert second.status == "success"
    assert len(client.date_calls) == 2
    assert coordinator.active_enrichments == 0


def test_shutdown_stops_enrichment_during_pacing(make_coordinator, db_path) -> None:
    client = FakeClient(
        listing=[make_summary(code) for code in "ABC"],
        details={code: make_detail(code) for code in "ABC"},
    )
    coordinator = make_coordinator(client, pacing_seconds=30)

    async def run():
        result = await coordinator.run_sync()
        while not client.detail_calls:
            await asyncio.sleep(0.01)
        await asyncio.wait_for(coordinator.shutdown(), timeout=5)
        return result

    result = asyncio.run(run())

    assert client.detail_calls == ["A"]
    with get_connection(db_path) as conn:
        row = SyncRunRepository(conn).get(result.run_id)
    assert row["enrichment_status"] == "cancelled"
    assert row["enriched"] == 1


def test_cleanup_removes_only_expired(make_coordinator, open_store) -> None:
    with open_store() as repo:
        repo.upsert(
            StoredTender(
                external_code="EXPIRED",
                name="old",
                status_code=5,
                close_date=datetime(2020, 1, 1, 0, 0, 0),
            ),
            now=NOW,
        )
        repo.upsert(
            StoredTender(
                external_code="FUTURE",
                name="new",
                status_code=5,
                close_date=datetime(2099, 1, 1, 0, 0, 0),
            ),
            now=NOW,
        )
    coordinator = make_coordinator(FakeClient())

    assert coordinator.cleanup_expired() == 1
    assert coordinator.cleanup_expired() == 0

    with open_store() as repo:
        assert not repo.exists("EXPIRED")
        assert repo.exists("FUTURE")
    assert get_registry().counter("cleanup_deleted_total").get() == 1


def test_cleanup_runs_while_sync_is_running(make_coordinator) -> None:
    client = BlockingClient()
    coordinator = make_coordinator(client)

    async def run():
        await coordinator.trigger_async()
        await asyncio.to_thread(client.entered.wait, 5)
        deleted = await asyncio.to_thread(coordinator.cleanup_expired)
        client.release.set()
        await coordinator.drain()
        return deleted

    assert asyncio.run(run()) == 0


def test_local_clock_is_naive() -> None:
    now = local_clock("America/Santiago")()
    fallback = local_clock("Not/AZone")()

    assert now.tzinfo is None
    assert now.microsecond == 0
    assert fallback.tzinfo is None


def test_from_settings_wires_api_client_and_database(db_path) -> None:
    settings = Settings(
        api=ApiSettings(ticket="a1b2c3d4-real-ticket", base_url="https://api.example.test/v1/"),
        sync=SyncSettings(pacing_seconds=0.5, progress_every=10),
    )

    coordinator = SyncCoordinator.from_settings(settings, sqlite_connection_factory(db_path))
    try:
        with coordinator._tender_store() as tenders:
            tenders.upsert(StoredTender(external_code="A", name="A", status_code=5), now=NOW)
    finally:
        coordinator.client.close()

    assert isinstance(coordinator.client, MercadoPublicoClient)
    assert coordinator.client.base_url == "https://api.example.test/v1"
    assert coordinator.settings is settings.sync
    assert coordinator.enrichment.pacing_seconds == 0.5
    with get_connection(db_path) as conn:
        assert TenderRepository(conn).exists("A")
