"""
Models for the per-kind metrics records extracted from profiles
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# ============================================================================
# Contributor entries
# ============================================================================


class ContributorEntry(BaseModel):
    """A function ranked by the value attributed to it"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Function name")
    value: int = Field(..., description="Value attributed to the function")
    percent: float = Field(
        default=0.0, ge=0, le=100, description="Share of the record total"
    )


class StackEntry(BaseModel):
    """A distinct call stack ranked by how many samples share it"""

    model_config = ConfigDict(frozen=True)

    stack: List[str] = Field(..., description="Function names, leaf first")
    count: int = Field(..., description="Number of samples with this stack")
    percent: float = Field(default=0.0, description="Always 0 for stack entries")


# ============================================================================
# Metrics records, one shape per profile kind
# ============================================================================


class _MetricsBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class CPUMetrics(_MetricsBase):
    """Metrics extracted from a CPU profile"""

    kind: Literal["cpu"] = "cpu"
    total_cpu_time_ns: int = Field(default=0, description="Sum of sampled CPU time")
    sample_count: int = Field(default=0, description="Number of samples")
    top_functions: List[ContributorEntry] = Field(default_factory=list)


class _AllocationMetrics(_MetricsBase):
    # A column the profile does not declare stays None
    alloc_size: Optional[int] = Field(default=None, description="Allocated bytes")
    alloc_objects: Optional[int] = Field(default=None, description="Allocated objects")
    inuse_size: Optional[int] = Field(default=None, description="Bytes in use")
    inuse_objects: Optional[int] = Field(default=None, description="Objects in use")
    top_allocators: List[ContributorEntry] = Field(default_factory=list)


class HeapMetrics(_AllocationMetrics):
    """Metrics extracted from a heap profile"""

    kind: Literal["heap"] = "heap"


class AllocsMetrics(_AllocationMetrics):
    """Metrics extracted from an allocs profile (cumulative heap sampling)"""

    kind: Literal["allocs"] = "allocs"


class MutexMetrics(_MetricsBase):
    """Metrics extracted from a mutex contention profile"""

    kind: Literal["mutex"] = "mutex"
    contention_time_ns: int = 0
    contention_count: int = 0
    top_contenders: List[ContributorEntry] = Field(default_factory=list)


class BlockMetrics(_MetricsBase):
    """Metrics extracted from a blocking profile"""

    kind: Literal["block"] = "block"
    blocking_time_ns: int = 0
    blocking_count: int = 0
    top_blockers: List[ContributorEntry] = Field(default_factory=list)


class GoroutineMetrics(_MetricsBase):
    """Metrics extracted from a goroutine profile"""

    kind: Literal["goroutine"] = "goroutine"
    goroutine_count: int = 0
    top_stacks: List[StackEntry] = Field(default_factory=list)


class ThreadCreateMetrics(_MetricsBase):
    """Metrics extracted from a thread creation profile"""

    kind: Literal["threadcreate"] = "threadcreate"
    thread_count: int = 0
    top_stacks: List[StackEntry] = Field(default_factory=list)


class GCMetrics(_MetricsBase):
    """Garbage collector pause statistics"""

    kind: Literal["gc"] = "gc"
    pause_time_total_ns: Optional[int] = None
    pause_count: Optional[int] = None
    heap_goal: Optional[int] = None
    last_pause_ns: Optional[int] = None


class K6Metrics(_MetricsBase):
    """
    Metrics extracted from a k6 load test summary.

    Every field is None when the summary does not report it, so that
    "no traffic" (0) and "not reported" stay distinguishable.
    """

    kind: Literal["k6"] = "k6"
    p50_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    p99_ms: Optional[float] = None
    mean_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    rps: Optional[float] = None
    error_rate: Optional[float] = None
    total_requests: Optional[int] = None
    failed_requests: Optional[int] = None
    duration_ms: Optional[int] = None
    vus: Optional[int] = None
    vus_max: Optional[int] = None


MetricsRecord = Annotated[
    Union[
        CPUMetrics,
        HeapMetrics,
        AllocsMetrics,
        MutexMetrics,
        BlockMetrics,
        GoroutineMetrics,
        ThreadCreateMetrics,
        GCMetrics,
        K6Metrics,
    ],
    Field(discriminator="kind"),
]

metrics_adapter: TypeAdapter[MetricsRecord] = TypeAdapter(MetricsRecord)
