"""
Extraction of k6 load test summaries.

The input is k6's JSON summary: a ``metrics`` mapping of metric name to
``{type, contains, values}`` and a ``root_group`` (or, in newer k6
releases, ``state.testRunDurationMs``) holding the overall test duration.
Fields the summary does not report stay None in the record.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from perfkit.backend.errors import ParseError
from perfkit.backend.models import K6Metrics

logger = logging.getLogger(__name__)


class _K6Model(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        # k6 writes null for sections it has nothing to report
        if value is None:
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)
        return value


class K6Metric(_K6Model):
    """One metric of a k6 summary"""

    type: str = ""
    contains: str = ""
    values: Dict[str, Any] = Field(default_factory=dict)


class K6RootGroup(_K6Model):
    duration: Optional[float] = None


class K6State(_K6Model):
    testRunDurationMs: Optional[float] = None


class K6Summary(_K6Model):
    """The parts of a k6 JSON summary that are read"""

    metrics: Dict[str, Optional[K6Metric]] = Field(default_factory=dict)
    root_group: K6RootGroup = Field(default_factory=K6RootGroup)
    state: K6State = Field(default_factory=K6State)


@dataclass(frozen=True)
class ParsedK6:
    """Result of extracting one k6 summary"""

    metrics: K6Metrics
    duration_ms: int


def _number(summary: K6Summary, metric: str, field: str) -> Optional[float]:
    """Numeric sub-field of a metric, None when the metric or field is absent"""
    entry = summary.metrics.get(metric)
    if entry is None:
        return None
    value = entry.values.get(field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _integer(summary: K6Summary, metric: str, field: str) -> Optional[int]:
    value = _number(summary, metric, field)
    return int(value) if value is not None else None


def error_rate(summary: K6Summary) -> Optional[float]:
    """
    Error rate of the run, from the first source that reports it:

    1. ``http_req_failed.rate``
    2. ``checks`` as ``fails / (passes + fails)`` when both are present and
       their sum is positive
    3. ``1 - checks.rate`` (``checks.rate`` is a success rate)

    Sources are never averaged or reconciled.
    """
    failed_rate = _number(summary, "http_req_failed", "rate")
    if failed_rate is not None:
        return failed_rate

    passes = _number(summary, "checks", "passes")
    fails = _number(summary, "checks", "fails")
    if passes is not None and fails is not None and passes + fails > 0:
        return fails / (passes + fails)

    success_rate = _number(summary, "checks", "rate")
    if success_rate is not None:
        return 1.0 - success_rate

    return None


def failed_requests(summary: K6Summary) -> Optional[int]:
    # http_req_failed is a Rate metric: its "passes" are the failed requests
    failed = _integer(summary, "http_req_failed", "passes")
    if failed is None:
        failed = _integer(summary, "http_req_failed", "count")
    return failed


def extract_k6_summary(data: bytes) -> ParsedK6:
    """
    Parse a k6 JSON summary into a metrics record.

    Args:
        data: JSON document as produced by k6

    Returns:
        ParsedK6: The metrics record and the test duration in milliseconds

    Raises:
        ParseError: The document is not valid JSON or its top level is not an
            object
    """
    try:
        summary = K6Summary.model_validate_json(data)
    except ValidationError as e:
        raise ParseError(f"parse k6 json: {e}") from e

    # Older summaries carry the duration on the root group, newer ones in state
    duration = summary.root_group.duration
    if duration is None:
        duration = summary.state.testRunDurationMs
    duration_ms = int(duration) if duration is not None else None

    metrics = K6Metrics(
        p50_ms=_number(summary, "http_req_duration", "p(50)"),
        p95_ms=_number(summary, "http_req_duration", "p(95)"),
        p99_ms=_number(summary, "http_req_duration", "p(99)"),
        min_ms=_number(summary, "http_req_duration", "min"),
        max_ms=_number(summary, "http_req_duration", "max"),
        mean_ms=_number(summary, "http_req_duration", "avg"),
        rps=_number(summary, "http_reqs", "rate"),
        total_requests=_integer(summary, "http_reqs", "count"),
        vus=_integer(summary, "vus", "value"),
        vus_max=_integer(summary, "vus_max", "value"),
        error_rate=error_rate(summary),
        failed_requests=failed_requests(summary),
        duration_ms=duration_ms,
    )

    logger.debug(f"Extracted k6 summary with {len(summary.metrics)} metrics")

    return ParsedK6(metrics=metrics, duration_ms=duration_ms or 0)
