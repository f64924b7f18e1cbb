"""
Models for profile kinds and the profile API
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from perfkit.backend.models.comparison import ComparisonReport


class ProfileKind(str, Enum):
    """Kind of a captured profile"""

    CPU = "cpu"
    HEAP = "heap"
    GOROUTINE = "goroutine"
    BLOCK = "block"
    MUTEX = "mutex"
    ALLOCS = "allocs"
    THREADCREATE = "threadcreate"
    GC = "gc"
    K6 = "k6"

    @property
    def is_cumulative(self) -> bool:
        """Cumulative kinds accrue values since the profiled process started"""
        return self in _CUMULATIVE_KINDS

    @classmethod
    def parse(cls, value: str) -> "ProfileKind":
        """Parse a kind name, raising ValueError for unknown names"""
        try:
            return cls(value)
        except ValueError as e:
            raise ValueError(f"Invalid profile type: {value}") from e


_CUMULATIVE_KINDS = frozenset(
    {ProfileKind.BLOCK, ProfileKind.MUTEX, ProfileKind.ALLOCS}
)


class IngestResponse(BaseModel):
    """Response for a successful ingestion"""

    id: str = Field(..., description="Identifier of the stored profile")
    message: str = Field(..., description="Human readable status")


class ProfileResponse(BaseModel):
    """Response for profile information"""

    id: str = Field(..., description="Unique identifier for this profile")
    created_at: str = Field(..., description="ISO timestamp when it was stored")
    updated_at: str = Field(..., description="ISO timestamp of the last update")

    name: str = Field(..., description="Display name")
    profile_type: str = Field(..., description="Profile kind")
    project: str = Field(default="", description="Project the profile belongs to")
    session: Optional[str] = Field(default=None, description="Capture session")
    tags: List[str] = Field(default_factory=list)
    source: str = Field(default="", description="Where the profile came from")

    raw_size: int = Field(..., description="Size of the uploaded payload in bytes")
    is_cumulative: bool = Field(default=False)
    profile_time: Optional[str] = Field(
        default=None, description="ISO timestamp when the profile was captured"
    )
    duration_ns: int = Field(default=0, description="Profile duration")

    metrics: Optional[Dict[str, Any]] = Field(
        default=None, description="Kind-specific metrics record"
    )

    # pprof quick-access fields
    total_samples: Optional[int] = None
    total_value: Optional[int] = None

    # k6 quick-access fields
    k6_p95: Optional[float] = None
    k6_p99: Optional[float] = None
    k6_rps: Optional[float] = None
    k6_error_rate: Optional[float] = None
    k6_duration_ms: Optional[int] = None


class ProfileListResponse(BaseModel):
    """Response for listing profiles"""

    profiles: list[ProfileResponse] = Field(..., description="List of profiles")
    total: int = Field(..., description="Number of profiles returned")


class CompareResponse(BaseModel):
    """Response for comparing profiles"""

    profiles: list[ProfileResponse] = Field(
        ..., description="Compared profiles in the requested order"
    )
    report: ComparisonReport = Field(..., description="Pairwise delta report")


class SessionSummary(BaseModel):
    """A capture session and how many profiles it holds"""

    session: str
    profile_count: int
    last_seen: str = Field(..., description="ISO timestamp of the newest profile")


class SessionListResponse(BaseModel):
    """Response for listing sessions"""

    sessions: list[SessionSummary]
    total: int
