"""Tender synchronization: reconcile, enrich and expire.

Public API:
  - SyncCoordinator – two-phase sync cycle, single-flight guard, cleanup
  - Reconciler – Phase 1 deletes and upserts for one fetched batch
  - EnrichmentPipeline – Phase 2 paced per-tender detail merges
  - SyncCycleResult, TriggerResult, ReconcileResult, EnrichmentReport
"""

from .coordinator import SyncCoordinator, SyncCycleResult, TriggerResult, local_clock
from .enrichment import EnrichmentPipeline, EnrichmentReport
from .reconciler import Reconciler, ReconcileResult

__all__ = [
    "EnrichmentPipeline",
    "EnrichmentReport",
    "ReconcileResult",
    "Reconciler",
    "SyncCoordinator",
    "SyncCycleResult",
    "TriggerResult",
    "local_clock",
]
