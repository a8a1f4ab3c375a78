from .remote import (
    BuyerInfo,
    ItemsContainer,
    RemoteItem,
    TenderDates,
    TenderListResponse,
    TenderRecord,
)
from .tender import STATUS_PUBLISHED, LineItem, StoredTender, TenderEnrichment

__all__ = [
    "BuyerInfo",
    "ItemsContainer",
    "LineItem",
    "RemoteItem",
    "STATUS_PUBLISHED",
    "StoredTender",
    "TenderDates",
    "TenderEnrichment",
    "TenderListResponse",
    "TenderRecord",
]
