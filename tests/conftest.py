from __future__ import annotations

import sys
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tenderwatch.app.config import SyncSettings
from tenderwatch.domain.models import TenderListResponse, TenderRecord
from tenderwatch.infrastructure.db import get_connection
from tenderwatch.infrastructure.db.repositories import TenderRepository
from tenderwatch.infrastructure.http import FetchResult
from tenderwatch.infrastructure.observability import get_registry
from tenderwatch.services.base import sqlite_connection_factory
from tenderwatch.services.sync import SyncCoordinator

NOW = datetime(2024, 5, 2, 12, 0, 0)
TOMORROW = "2024-05-03T12:00:00"


def make_summary(
    code: str,
    *,
    status: int | None = 5,
    close: str | None = TOMORROW,
    nested: bool = True,
    **extra,
) -> dict:
    """A list-by-date entry as the API returns it."""
    payload: dict = {"CodigoExterno": code, "Nombre": f"Tender {code}", "CodigoEstado": status}
    if close is not None:
        if nested:
            payload["Fechas"] = {"FechaCierre": close, "FechaPublicacion": "2024-04-30T09:00:00"}
        else:
            payload["FechaCierre"] = close
    payload.update(extra)
    return payload


def make_detail(
    code: str,
    *,
    items: int = 1,
    buyer_name: str = "Municipalidad de Arica",
    buyer_rut: str = "69.010.100-9",
    region: str = "Región de Arica y Parinacota",
    description: str | None = "Adquisición de insumos médicos",
) -> dict:
    """A detail-by-code record as the API returns it."""
    payload = make_summary(code)
    payload.update(
        {
            "Descripcion": description,
            "Comprador": {
                "NombreUnidad": buyer_name,
                "RutUnidad": buyer_rut,
                "RegionUnidad": region,
            },
            "Items": {
                "Cantidad": items,
                "Listado": [
                    {
                        "CodigoProducto": str(42000000 + index),
                        "NombreProducto": f"Producto {index + 1}",
                        "Descripcion": f"Detalle {index + 1}",
                        "Cantidad": index + 1,
                        "UnidadMedida": "Unidad",
                    }
                    for index in range(items)
                ],
            },
        }
    )
    return payload


class FakeClient:
    """In-memory stand-in for the remote API client."""

    def __init__(
        self,
        listing: list[dict] | None = None,
        details: dict[str, dict] | None = None,
        *,
        list_error: str | None = None,
    ) -> None:
        self.listing = list(listing or [])
        self.details = dict(details or {})
        self.list_error = list_error
        self.date_calls: list[date] = []
        self.detail_calls: list[str] = []
        self.closed = False

    def fetch_by_date(self, day: date) -> FetchResult[TenderListResponse]:
        self.date_calls.append(day)
        if self.list_error is not None:
            return FetchResult.failure(self.list_error, 500)
        envelope = TenderListResponse.model_validate(
            {"Cantidad": len(self.listing), "Listado": self.listing}
        )
        return FetchResult.success(envelope, 200)

    def fetch_detail(self, external_code: str) -> FetchResult[TenderRecord]:
        self.detail_calls.append(external_code)
        payload = self.details.get(external_code)
        if payload is None:
            return FetchResult.failure("not found", 200)
        return FetchResult.success(TenderRecord.model_validate(payload), 200)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_metrics():
    get_registry().reset()
    yield
    get_registry().reset()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TENDERWATCH_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("TENDERWATCH_DB_PATH", str(tmp_path / "default.db"))
    monkeypatch.delenv("MERCADOPUBLICO_TICKET", raising=False)
    monkeypatch.delenv("MERCADOPUBLICO_BASE_URL", raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "tenders.db"


@pytest.fixture
def open_store(db_path: Path):
    @contextmanager
    def opener():
        with get_connection(db_path) as conn:
            yield TenderRepository(conn)

    return opener


@pytest.fixture
def make_coordinator(db_path: Path):
    def factory(client, *, now: datetime = NOW, pacing_seconds: float = 0.0) -> SyncCoordinator:
        return SyncCoordinator(
            sqlite_connection_factory(db_path),
            client=client,
            settings=SyncSettings(pacing_seconds=pacing_seconds),
            clock=lambda: now,
        )

    return factory
