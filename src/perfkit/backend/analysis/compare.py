"""
Comparison engine.

Given records of one profile kind ordered by capture time, computes for
every adjacent pair the change of each metric the kind exposes and
classifies it using the metric's direction (lower is better or not).
Every record is compared against the one captured immediately before it.
"""

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Sequence

from perfkit.backend.errors import InsufficientInputError, MismatchedKindError
from perfkit.backend.models import (
    Classification,
    ComparisonReport,
    MetricDelta,
    MetricsRecord,
    PairComparison,
    ProfileKind,
)

logger = logging.getLogger(__name__)

NO_VALUE = "—"


@dataclass(frozen=True)
class MetricSpec:
    """How a metric is read, formatted and judged"""

    key: str
    label: str
    unit: str
    lower_is_better: bool


_ALLOCATION_METRICS = (
    MetricSpec("alloc_size", "Alloc Size", "bytes", True),
    MetricSpec("alloc_objects", "Alloc Objects", "count", True),
    MetricSpec("inuse_size", "Inuse Size", "bytes", True),
    MetricSpec("inuse_objects", "Inuse Objects", "count", True),
)

METRIC_TABLES = MappingProxyType(
    {
        ProfileKind.CPU: (
            MetricSpec("total_cpu_time_ns", "CPU Time", "duration_ns", True),
            MetricSpec("sample_count", "Samples", "count", False),
        ),
        ProfileKind.HEAP: _ALLOCATION_METRICS,
        ProfileKind.ALLOCS: _ALLOCATION_METRICS,
        ProfileKind.MUTEX: (
            MetricSpec("contention_time_ns", "Contention Time", "duration_ns", True),
            MetricSpec("contention_count", "Contentions", "count", True),
        ),
        ProfileKind.BLOCK: (
            MetricSpec("blocking_time_ns", "Blocking Time", "duration_ns", True),
            MetricSpec("blocking_count", "Block Events", "count", True),
        ),
        ProfileKind.GOROUTINE: (
            MetricSpec("goroutine_count", "Goroutines", "count", True),
        ),
        ProfileKind.THREADCREATE: (
            MetricSpec("thread_count", "Threads", "count", True),
        ),
        ProfileKind.GC: (
            MetricSpec("pause_time_total_ns", "Total Pause", "duration_ns", True),
            MetricSpec("pause_count", "Pause Count", "count", False),
            MetricSpec("heap_goal", "Heap Goal", "bytes", False),
        ),
        ProfileKind.K6: (
            MetricSpec("p50_ms", "P50", "ms", True),
            MetricSpec("p95_ms", "P95", "ms", True),
            MetricSpec("p99_ms", "P99", "ms", True),
            MetricSpec("mean_ms", "Mean", "ms", True),
            MetricSpec("rps", "RPS", "rate", False),
            MetricSpec("error_rate", "Error Rate", "ratio", True),
        ),
    }
)


# ============================================================================
# Formatting
# ============================================================================


def format_duration(ns: float) -> str:
    if ns < 1_000:
        return f"{ns:g}ns"
    if ns < 1_000_000:
        return f"{ns / 1_000:.1f}µs"
    if ns < 1_000_000_000:
        return f"{ns / 1_000_000:.1f}ms"
    return f"{ns / 1_000_000_000:.2f}s"


def format_bytes(size: float) -> str:
    if size < 1024:
        return f"{size:g} B"
    if size < 1024**2:
        return f"{size / 1024:.1f} KB"
    if size < 1024**3:
        return f"{size / 1024**2:.1f} MB"
    return f"{size / 1024**3:.2f} GB"


def format_value(value: Optional[float], unit: str) -> str:
    """Render a non-negative metric value for display"""
    if value is None:
        return NO_VALUE
    if unit == "duration_ns":
        return format_duration(value)
    if unit == "bytes":
        return format_bytes(value)
    if unit == "ms":
        return f"{value:.1f}ms"
    if unit == "rate":
        return f"{value:.1f}"
    if unit == "ratio":
        return f"{value * 100:.2f}%"
    return f"{value:,.0f}"


def format_delta(delta: float, percent_change: float, unit: str) -> str:
    sign = "+" if delta > 0 else "-"
    if math.isinf(percent_change):
        percent = "∞"
    else:
        percent = f"{abs(percent_change):.1f}"
    return f"{sign}{format_value(abs(delta), unit)} ({sign}{percent}%)"


# ============================================================================
# Comparison
# ============================================================================


def compare_metric(
    spec: MetricSpec,
    previous: Optional[float],
    current: Optional[float],
    cumulative: bool = False,
) -> MetricDelta:
    """
    Compare one metric between two captures.

    A missing value on either side yields ``no_data``, a zero delta
    ``neutral``. Otherwise the change is ``improved`` when its direction
    matches the metric's preference and ``regressed`` when it does not.
    The percent change is infinite when the previous value is 0.
    """
    base = dict(
        key=spec.key,
        label=spec.label,
        unit=spec.unit,
        lower_is_better=spec.lower_is_better,
        value=current,
        previous=previous,
        formatted_value=format_value(current, spec.unit),
    )

    if previous is None or current is None:
        return MetricDelta(**base, classification=Classification.NO_DATA)

    delta = current - previous
    if delta == 0:
        return MetricDelta(
            **base,
            delta=0,
            percent_change=0.0,
            classification=Classification.NEUTRAL,
            formatted_delta="±0",
        )

    if previous != 0:
        percent_change = delta * 100 / previous
    else:
        percent_change = math.copysign(math.inf, delta)

    improved = (delta < 0) == spec.lower_is_better

    return MetricDelta(
        **base,
        delta=delta,
        percent_change=percent_change,
        classification=Classification.IMPROVED if improved else Classification.REGRESSED,
        formatted_delta=format_delta(delta, percent_change, spec.unit),
        counter_reset=cumulative and delta < 0,
    )


def compare_records(
    records: Sequence[MetricsRecord],
    labels: Optional[Sequence[str]] = None,
) -> ComparisonReport:
    """
    Compare records of one kind, each against the one before it.

    Args:
        records: Metrics records ordered by capture time, oldest first
        labels: Optional display label per record (e.g. profile IDs)

    Returns:
        ComparisonReport: One PairComparison per adjacent pair

    Raises:
        MismatchedKindError: The records are not all of the same kind
        InsufficientInputError: Fewer than two records were given
    """
    if records:
        expected = records[0].kind
        for index, record in enumerate(records):
            if record.kind != expected:
                raise MismatchedKindError(expected, record.kind, index)

    if len(records) < 2:
        raise InsufficientInputError(
            f"At least 2 profiles required for comparison, got {len(records)}"
        )

    if labels is not None and len(labels) != len(records):
        raise ValueError("labels must match records one to one")

    kind = ProfileKind(records[0].kind)
    table = METRIC_TABLES[kind]

    pairs = []
    for index in range(1, len(records)):
        prev, curr = records[index - 1], records[index]
        pairs.append(
            PairComparison(
                previous_index=index - 1,
                current_index=index,
                previous_label=labels[index - 1] if labels else None,
                current_label=labels[index] if labels else None,
                metrics=[
                    compare_metric(
                        spec,
                        getattr(prev, spec.key, None),
                        getattr(curr, spec.key, None),
                        cumulative=kind.is_cumulative,
                    )
                    for spec in table
                ],
            )
        )

    logger.debug(f"Compared {len(records)} {kind.value} records")

    return ComparisonReport(
        kind=kind.value,
        cumulative=kind.is_cumulative,
        record_count=len(records),
        pairs=pairs,
    )
