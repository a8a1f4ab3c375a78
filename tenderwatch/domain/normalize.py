"""Normalisation of remote tender records.

The API is inconsistent in two ways this module absorbs: dates appear
either nested under ``Fechas`` or flat on the record, and timestamps carry
a fractional-seconds suffix of varying length (``.12`` or ``.123``).
"""

from __future__ import annotations

from datetime import date, datetime

from tenderwatch.domain.models import (
    LineItem,
    RemoteItem,
    StoredTender,
    TenderEnrichment,
    TenderRecord,
)
from tenderwatch.infrastructure.observability import get_logger

logger = get_logger(__name__)

API_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
API_DATE_FORMAT = "%d%m%Y"


def resolve_close_date(record: TenderRecord) -> str | None:
    """Return the raw close date, preferring ``Fechas.FechaCierre``."""
    if record.dates is not None and record.dates.close is not None:
        return record.dates.close
    return record.close_date


def resolve_publication_date(record: TenderRecord) -> str | None:
    """Return the raw publication date, preferring ``Fechas.FechaPublicacion``."""
    if record.dates is not None and record.dates.publication is not None:
        return record.dates.publication
    return record.publication_date


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse an API timestamp, truncating any fractional seconds.

    Returns ``None`` for blank input and for anything unparsable; the latter
    is logged as a warning. Never raises.
    """
    if raw is None or not raw.strip():
        return None
    text = raw.strip()
    if "." in text:
        text = text[: text.index(".")]
    try:
        return datetime.strptime(text, API_DATETIME_FORMAT)
    except ValueError:
        logger.warning("Failed to parse datetime: %r", raw)
        return None


def format_timestamp(value: datetime | None) -> str | None:
    """Canonical storage form; sorts lexicographically in SQLite."""
    if value is None:
        return None
    return value.replace(microsecond=0).strftime(API_DATETIME_FORMAT)


def format_api_date(value: date) -> str:
    """Format a day the way the ``fecha`` query parameter expects (ddMMyyyy)."""
    return value.strftime(API_DATE_FORMAT)


def items_from_record(record: TenderRecord) -> list[LineItem]:
    return [_line_item(item) for item in record.item_listing]


def _line_item(item: RemoteItem) -> LineItem:
    return LineItem(
        product_name=item.product_name or "",
        product_code=item.product_code,
        description=item.description,
        quantity=item.quantity,
        unit_of_measure=item.unit_of_measure,
    )


def tender_from_record(record: TenderRecord) -> StoredTender:
    """Flatten a remote record into a :class:`StoredTender`.

    Buyer name, RUT and region come from ``Comprador``. Timestamps
    (``created_at``/``updated_at``) are left for the repository to set.
    """
    buyer = record.buyer
    return StoredTender(
        external_code=record.external_code,
        name=record.name or "",
        description=record.description,
        status_code=record.status_code if record.status_code is not None else 0,
        close_date=parse_timestamp(resolve_close_date(record)),
        publication_date=parse_timestamp(resolve_publication_date(record)),
        region=buyer.region if buyer else None,
        buyer_name=buyer.name if buyer else None,
        buyer_rut=buyer.rut if buyer else None,
        items=items_from_record(record),
    )


def enrichment_from_detail(detail: TenderRecord) -> TenderEnrichment:
    """Extract the fields a detail record merges into a stored tender.

    Blank descriptions are dropped so they never overwrite a stored one.
    """
    buyer = detail.buyer
    description = detail.description if detail.description and detail.description.strip() else None
    return TenderEnrichment(
        buyer_name=buyer.name if buyer else None,
        buyer_rut=buyer.rut if buyer else None,
        region=buyer.region if buyer else None,
        description=description,
        items=tuple(items_from_record(detail)),
    )
