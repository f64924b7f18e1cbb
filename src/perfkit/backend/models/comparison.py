"""
Models for comparison (delta) reports
"""

import math
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Classification(str, Enum):
    """Outcome of comparing one metric between two captures"""

    IMPROVED = "improved"
    REGRESSED = "regressed"
    NEUTRAL = "neutral"
    NO_DATA = "no_data"


class MetricDelta(BaseModel):
    """Change of a single metric between two adjacent records"""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Metric field name")
    label: str = Field(..., description="Human readable metric name")
    unit: str = Field(..., description="Unit used to format the value")
    lower_is_better: bool

    value: Optional[float] = Field(default=None, description="Current value")
    previous: Optional[float] = Field(default=None, description="Previous value")
    delta: Optional[float] = Field(
        default=None, description="value - previous, None when either is absent"
    )
    percent_change: Optional[float] = Field(
        default=None,
        description="delta / previous * 100; infinite when previous is 0",
    )
    classification: Classification

    formatted_value: str = Field(default="—")
    formatted_delta: str = Field(default="—")

    # Set for cumulative kinds when the value went down, which means the
    # profiled process restarted between captures
    counter_reset: bool = False

    @field_serializer("percent_change", when_used="json")
    def _serialize_percent_change(
        self, value: Optional[float]
    ) -> Union[float, str, None]:
        if value is not None and math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return value


class PairComparison(BaseModel):
    """All metric deltas between a record and the one captured before it"""

    model_config = ConfigDict(frozen=True)

    previous_index: int
    current_index: int
    previous_label: Optional[str] = None
    current_label: Optional[str] = None
    metrics: List[MetricDelta] = Field(default_factory=list)


class ComparisonReport(BaseModel):
    """Delta report over an ordered list of records of one kind"""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Profile kind shared by every record")
    cumulative: bool = Field(
        ..., description="Values accrue since process start for this kind"
    )
    record_count: int
    pairs: List[PairComparison] = Field(default_factory=list)
