"""
Centralized DTOs for Tenderwatch's read surface (API and CLI).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from tenderwatch.domain.models import LineItem, StoredTender


# --- Tender DTOs ---
class LineItemView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_name: str
    product_code: str | None = None
    description: str | None = None
    quantity: int | None = None
    unit_of_measure: str | None = None

    @classmethod
    def from_item(cls, item: LineItem) -> "LineItemView":
        return cls(
            product_name=item.product_name,
            product_code=item.product_code,
            description=item.description,
            quantity=item.quantity,
            unit_of_measure=item.unit_of_measure,
        )


class TenderView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    external_code: str
    name: str
    status_code: int
    description: str | None = None
    close_date: datetime | None = None
    publication_date: datetime | None = None
    region: str | None = None
    buyer_name: str | None = None
    buyer_rut: str | None = None
    items: list[LineItemView] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_tender(cls, tender: StoredTender) -> "TenderView":
        return cls(
            external_code=tender.external_code,
            name=tender.name,
            status_code=tender.status_code,
            description=tender.description,
            close_date=tender.close_date,
            publication_date=tender.publication_date,
            region=tender.region,
            buyer_name=tender.buyer_name,
            buyer_rut=tender.buyer_rut,
            items=[LineItemView.from_item(item) for item in tender.items],
            created_at=tender.created_at,
            updated_at=tender.updated_at,
        )


# --- Sync DTOs ---
class SyncRunView(BaseModel):
    """One row of ``sync_runs``."""

    model_config = ConfigDict(extra="ignore")

    id: int
    fetch_date: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    status: str | None = None
    fetched: int | None = None
    eligible: int | None = None
    upserted: int | None = None
    deleted: int | None = None
    failed: int | None = None
    enrichment_status: str | None = None
    enriched: int | None = None
    enrichment_failed: int | None = None
    enrichment_skipped: int | None = None
    enrichment_finished_at: str | None = None
    notes: str | None = None


class TriggerResponse(BaseModel):
    status: str
    message: str


class SyncStatusResponse(BaseModel):
    running: bool
    active_enrichments: int
    scheduler: str
    last_result: dict[str, Any] | None = None


class CleanupResponse(BaseModel):
    deleted: int
