"""In-process metrics for Tenderwatch.

Lightweight counters and histograms describing sync cycles, enrichment
outcomes, cleanup runs and remote API calls. Values live in memory and are
exported through ``GET /metrics`` in Prometheus text format.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping

LabelKey = tuple[tuple[str, str | None], ...]


def _labels_to_key(labels: Mapping[str, str | None] | None) -> LabelKey:
    if labels is None:
        return ()
    return tuple(sorted(labels.items()))


def _label_text(key: LabelKey, *, quoted: bool) -> str:
    if quoted:
        return ",".join(f'{k}="{v}"' for k, v in key)
    return ",".join(f"{k}={v}" for k, v in key) if key else "default"


@dataclass
class Counter:
    """A monotonically increasing counter."""

    name: str
    help_text: str = ""
    _values: dict[LabelKey, float] = field(default_factory=lambda: defaultdict(float))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(
        self, value: float = 1.0, labels: Mapping[str, str | None] | None = None
    ) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: Mapping[str, str | None] | None = None) -> float:
        key = _labels_to_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def items(self) -> list[tuple[LabelKey, float]]:
        with self._lock:
            return list(self._values.items())


@dataclass
class Histogram:
    """Distribution of observed values; only count and sum are exported."""

    name: str
    help_text: str = ""
    _observations: dict[LabelKey, list[float]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(
        self, value: float, labels: Mapping[str, str | None] | None = None
    ) -> None:
        key = _labels_to_key(labels)
        with self._lock:
            self._observations[key].append(value)

    def get_stats(
        self, labels: Mapping[str, str | None] | None = None
    ) -> dict[str, float]:
        key = _labels_to_key(labels)
        with self._lock:
            values = list(self._observations.get(key, []))
        if not values:
            return {"count": 0, "sum": 0.0, "avg": 0.0}
        total = sum(values)
        return {"count": len(values), "sum": total, "avg": total / len(values)}

    def keys(self) -> list[LabelKey]:
        with self._lock:
            return list(self._observations)


class MetricRegistry:
    """Registry holding every counter and histogram by name."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name=name, help_text=help_text)
            return self._counters[name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name=name, help_text=help_text)
            return self._histograms[name]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return dict(self._counters)

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return dict(self._histograms)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    """Increment a counter by name, creating it on first use."""
    _registry.counter(name, help_text).inc(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Mapping[str, str | None] | None = None,
    help_text: str = "",
) -> None:
    """Record an observation in a histogram, creating it on first use."""
    _registry.histogram(name, help_text).observe(value, labels)


SYNC_RUNS = "sync_runs_total"
SYNC_RUN_DURATION = "sync_run_duration_seconds"
SYNC_TENDERS_UPSERTED = "sync_tenders_upserted_total"
SYNC_TENDERS_DELETED = "sync_tenders_deleted_total"
ENRICHMENT_RECORDS = "enrichment_records_total"
CLEANUP_DELETED = "cleanup_deleted_total"
REMOTE_API_CALLS = "remote_api_calls_total"
REMOTE_API_DURATION = "remote_api_call_duration_seconds"


def record_sync_run(status: str, duration: float, upserted: int, deleted: int) -> None:
    """Record the Phase 1 outcome of a sync cycle."""
    increment_counter(SYNC_RUNS, labels={"status": status}, help_text="Total sync cycles")
    observe_histogram(
        SYNC_RUN_DURATION, duration, help_text="Phase 1 duration in seconds"
    )
    increment_counter(
        SYNC_TENDERS_UPSERTED,
        value=float(upserted),
        help_text="Tenders upserted by Phase 1",
    )
    increment_counter(
        SYNC_TENDERS_DELETED,
        value=float(deleted),
        help_text="Tenders deleted because their status left Published",
    )


def record_enrichment(enriched: int, failed: int, skipped: int) -> None:
    """Record the per-record outcome counts of one enrichment batch."""
    for outcome, count in (("enriched", enriched), ("failed", failed), ("skipped", skipped)):
        if count:
            increment_counter(
                ENRICHMENT_RECORDS,
                value=float(count),
                labels={"outcome": outcome},
                help_text="Enrichment outcomes per record",
            )


def record_cleanup(deleted: int) -> None:
    increment_counter(
        CLEANUP_DELETED, value=float(deleted), help_text="Expired tenders removed"
    )


def record_api_call(operation: str, outcome: str, duration: float) -> None:
    """Record one call to the remote tender API."""
    increment_counter(
        REMOTE_API_CALLS,
        labels={"operation": operation, "outcome": outcome},
        help_text="Remote API calls",
    )
    observe_histogram(
        REMOTE_API_DURATION,
        duration,
        labels={"operation": operation},
        help_text="Remote API call duration in seconds",
    )


def get_metrics_summary() -> dict[str, object]:
    """Return all metric values as plain dictionaries."""
    counters: dict[str, dict[str, float]] = {}
    for name, counter in _registry.all_counters().items():
        counters[name] = {_label_text(key, quoted=False): value for key, value in counter.items()}

    histograms: dict[str, dict[str, dict[str, float]]] = {}
    for name, histogram in _registry.all_histograms().items():
        histograms[name] = {
            _label_text(key, quoted=False): histogram.get_stats(dict(key) if key else None)
            for key in histogram.keys()
        }
    return {"counters": counters, "histograms": histograms}


def format_prometheus() -> str:
    """Format metrics in Prometheus text exposition format."""
    lines: list[str] = []

    for name, counter in _registry.all_counters().items():
        if counter.help_text:
            lines.append(f"# HELP {name} {counter.help_text}")
        lines.append(f"# TYPE {name} counter")
        for key, value in counter.items():
            if key:
                lines.append(f"{name}{{{_label_text(key, quoted=True)}}} {value}")
            else:
                lines.append(f"{name} {value}")

    for name, histogram in _registry.all_histograms().items():
        if histogram.help_text:
            lines.append(f"# HELP {name} {histogram.help_text}")
        lines.append(f"# TYPE {name} histogram")
        for key in histogram.keys():
            stats = histogram.get_stats(dict(key) if key else None)
            suffix = f"{{{_label_text(key, quoted=True)}}}" if key else ""
            lines.append(f"{name}_count{suffix} {stats['count']}")
            lines.append(f"{name}_sum{suffix} {stats['sum']}")

    return "\n".join(lines)
