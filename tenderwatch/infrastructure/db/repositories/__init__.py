from .sync_runs import SyncRunRepository
from .tenders import TenderRepository

__all__ = [
    "SyncRunRepository",
    "TenderRepository",
]
