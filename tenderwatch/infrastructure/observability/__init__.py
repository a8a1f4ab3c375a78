"""Observability and logging facades."""

from .logging import (
    configure_logging,
    current_log_context,
    get_logger,
    log_context,
    log_exception,
)
from .metrics import (
    format_prometheus,
    get_metrics_summary,
    get_registry,
    increment_counter,
    observe_histogram,
    record_api_call,
    record_cleanup,
    record_enrichment,
    record_sync_run,
)

__all__ = [
    # Logging
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "log_exception",
    # Metrics
    "format_prometheus",
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_api_call",
    "record_cleanup",
    "record_enrichment",
    "record_sync_run",
]
