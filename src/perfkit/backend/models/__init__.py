"""Models for the PerfKit backend API"""

from .comparison import Classification, ComparisonReport, MetricDelta, PairComparison
from .metrics import (
    AllocsMetrics,
    BlockMetrics,
    ContributorEntry,
    CPUMetrics,
    GCMetrics,
    GoroutineMetrics,
    HeapMetrics,
    K6Metrics,
    MetricsRecord,
    MutexMetrics,
    StackEntry,
    ThreadCreateMetrics,
    metrics_adapter,
)
from .profile import (
    CompareResponse,
    IngestResponse,
    ProfileKind,
    ProfileListResponse,
    ProfileResponse,
    SessionListResponse,
    SessionSummary,
)

__all__ = [
    "AllocsMetrics",
    "BlockMetrics",
    "Classification",
    "CompareResponse",
    "ComparisonReport",
    "ContributorEntry",
    "CPUMetrics",
    "GCMetrics",
    "GoroutineMetrics",
    "HeapMetrics",
    "IngestResponse",
    "K6Metrics",
    "MetricDelta",
    "MetricsRecord",
    "MutexMetrics",
    "PairComparison",
    "ProfileKind",
    "ProfileListResponse",
    "ProfileResponse",
    "SessionListResponse",
    "SessionSummary",
    "StackEntry",
    "ThreadCreateMetrics",
    "metrics_adapter",
]
