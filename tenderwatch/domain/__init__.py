"""Domain layer: tender models and the pure rules applied to them."""

from .normalize import (
    format_timestamp,
    parse_timestamp,
    resolve_close_date,
    resolve_publication_date,
    tender_from_record,
)
from .validity import is_valid, select_eligible

__all__ = [
    "format_timestamp",
    "is_valid",
    "parse_timestamp",
    "resolve_close_date",
    "resolve_publication_date",
    "select_eligible",
    "tender_from_record",
]
