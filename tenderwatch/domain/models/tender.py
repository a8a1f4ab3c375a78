"""Stored tender domain model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Remote status code for "Publicada": the only status kept in the store.
STATUS_PUBLISHED = 5


@dataclass(frozen=True)
class LineItem:
    """A product or service requested by a tender.

    Items have no identity of their own; the owning tender keeps them in
    order.
    """

    product_name: str
    product_code: str | None = None
    description: str | None = None
    quantity: int | None = None
    unit_of_measure: str | None = None


@dataclass
class StoredTender:
    """A tender as persisted locally, keyed by its external code."""

    external_code: str
    name: str
    status_code: int
    description: str | None = None
    close_date: datetime | None = None
    publication_date: datetime | None = None
    region: str | None = None
    buyer_name: str | None = None
    buyer_rut: str | None = None
    items: list[LineItem] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TenderEnrichment:
    """Fields a detail fetch contributes to an already stored tender.

    ``None`` means "keep the stored value"; ``items`` always replaces the
    stored list.
    """

    buyer_name: str | None = None
    buyer_rut: str | None = None
    region: str | None = None
    description: str | None = None
    items: tuple[LineItem, ...] = ()
