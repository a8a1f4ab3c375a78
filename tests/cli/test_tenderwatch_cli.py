from __future__ import annotations

import importlib
import json
from datetime import datetime
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import NOW, FakeClient, make_detail, make_summary
from tenderwatch.app.config import ApiSettings, Settings
from tenderwatch.domain.models import LineItem, StoredTender
from tenderwatch.infrastructure.db import get_connection
from tenderwatch.infrastructure.db.repositories import SyncRunRepository, TenderRepository
from tenderwatch.infrastructure.http import MercadoPublicoClient
from tenderwatch.interfaces.cli import cleanup, cli, runs, sync, view
from tenderwatch.interfaces.cli.context import build_cli_context, build_coordinator

# The package re-exports the ``sync`` command under the submodule name, so
# resolve the module object explicitly for monkeypatching.
sync_module = importlib.import_module("tenderwatch.interfaces.cli.sync")


def _seed(db_path: Path) -> None:
    with get_connection(db_path) as conn:
        repo = TenderRepository(conn)
        repo.upsert(
            StoredTender(
                external_code="1234-56-LE24",
                name="Insumos médicos",
                status_code=5,
                region="Región de Arica y Parinacota",
                buyer_name="Municipalidad de Arica",
                close_date=datetime(2024, 5, 10, 15, 0, 0),
                items=[LineItem("Guantes", quantity=100, unit_of_measure="Caja")],
            ),
            now=NOW,
        )
        repo.upsert(
            StoredTender(
                external_code="9999-1-L124",
                name="Servicio de aseo",
                status_code=5,
                region="Región Metropolitana de Santiago",
                close_date=datetime(2020, 1, 1, 0, 0, 0),
            ),
            now=NOW,
        )


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("sync", "cleanup", "view", "runs", "serve"):
        assert command in result.output


def test_view_filters_by_region_as_json(db_path: Path) -> None:
    _seed(db_path)

    result = CliRunner().invoke(
        view,
        ["--db", str(db_path), "--region", "región de arica y parinacota", "--json-output"],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert [tender["external_code"] for tender in payload] == ["1234-56-LE24"]
    assert payload[0]["items"][0]["product_name"] == "Guantes"


def test_view_single_tender_shows_items(db_path: Path) -> None:
    _seed(db_path)

    result = CliRunner().invoke(view, ["--db", str(db_path), "--code", "1234-56-LE24"])

    assert result.exit_code == 0, result.output
    assert "1234-56-LE24" in result.output
    assert "Municipalidad" in result.output
    assert "Guantes (100 Caja)" in result.output


def test_view_reports_empty_result(db_path: Path) -> None:
    result = CliRunner().invoke(view, ["--db", str(db_path), "--code", "missing"])

    assert result.exit_code == 0
    assert "No tenders found" in result.output


def test_view_rejects_unknown_sort(db_path: Path) -> None:
    result = CliRunner().invoke(view, ["--db", str(db_path), "--sort", "name"])

    assert result.exit_code == 2


def test_cleanup_does_not_need_a_ticket(db_path: Path) -> None:
    _seed(db_path)

    result = CliRunner().invoke(cleanup, ["--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Deleted 1 expired tender(s)" in result.output
    with get_connection(db_path) as conn:
        assert TenderRepository(conn).exists("1234-56-LE24")
        assert not TenderRepository(conn).exists("9999-1-L124")


def test_sync_requires_a_ticket(db_path: Path) -> None:
    result = CliRunner().invoke(sync, ["--db", str(db_path)])

    assert result.exit_code == 1
    assert "ticket is required" in result.output


def test_sync_rejects_placeholder_ticket(db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MERCADOPUBLICO_TICKET", "YOUR_API_KEY_HERE")

    result = CliRunner().invoke(sync, ["--db", str(db_path)])

    assert result.exit_code == 1
    assert "placeholder" in result.output


def test_sync_runs_cycle_and_records_it(
    db_path: Path, monkeypatch: pytest.MonkeyPatch, make_coordinator
) -> None:
    monkeypatch.setenv("MERCADOPUBLICO_TICKET", "a1b2c3d4-real-ticket")
    client = FakeClient(
        listing=[make_summary("A"), make_summary("B", status=7)],
        details={"A": make_detail("A")},
    )
    built = {}

    def fake_build_coordinator(cli_context, settings, *, pacing_seconds=None):
        built["db_path"] = cli_context.db_path
        built["pacing_seconds"] = pacing_seconds
        return make_coordinator(client)

    monkeypatch.setattr(sync_module, "build_coordinator", fake_build_coordinator)

    result = CliRunner().invoke(sync, ["--db", str(db_path), "--pacing", "0", "--json-output"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "success"
    assert payload["upserted"] == 1
    assert payload["enrichment"]["enriched"] == 1
    assert built == {"db_path": db_path, "pacing_seconds": 0.0}
    assert client.closed

    runs_result = CliRunner().invoke(runs, ["--db", str(db_path)])
    assert runs_result.exit_code == 0, runs_result.output
    assert "Recent sync runs (1)" in runs_result.output
    with get_connection(db_path) as conn:
        (row,) = SyncRunRepository(conn).list_recent(5)
    assert row["status"] == "success"
    assert row["enrichment_status"] == "completed"


def test_sync_exits_non_zero_when_cycle_fails(
    db_path: Path, monkeypatch: pytest.MonkeyPatch, make_coordinator
) -> None:
    class ExplodingClient(FakeClient):
        def fetch_by_date(self, day):
            raise RuntimeError("connection pool exhausted")

    monkeypatch.setenv("MERCADOPUBLICO_TICKET", "a1b2c3d4-real-ticket")
    monkeypatch.setattr(
        sync_module,
        "build_coordinator",
        lambda cli_context, settings, *, pacing_seconds=None: make_coordinator(ExplodingClient()),
    )

    result = CliRunner().invoke(sync, ["--db", str(db_path)])

    assert result.exit_code == 1
    assert "connection pool exhausted" in result.output


def test_runs_without_history(db_path: Path) -> None:
    result = CliRunner().invoke(runs, ["--db", str(db_path)])

    assert result.exit_code == 0
    assert "No sync runs recorded yet" in result.output
    with get_connection(db_path) as conn:
        assert SyncRunRepository(conn).list_recent(5) == []


def test_build_coordinator_uses_cli_database_and_pacing(db_path: Path) -> None:
    settings = Settings(api=ApiSettings(ticket="a1b2c3d4-real-ticket"))

    coordinator = build_coordinator(build_cli_context(db_path), settings, pacing_seconds=0.25)
    try:
        with coordinator._tender_store() as tenders:
            tenders.upsert(StoredTender(external_code="A", name="A", status_code=5), now=NOW)
    finally:
        coordinator.client.close()

    assert isinstance(coordinator.client, MercadoPublicoClient)
    assert coordinator.enrichment.pacing_seconds == 0.25
    with get_connection(db_path) as conn:
        assert TenderRepository(conn).exists("A")
