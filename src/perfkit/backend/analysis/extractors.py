"""
Metric extraction from decoded pprof profiles.

Each extractor makes a single pass over the samples and returns the
metrics record of its kind. Missing value columns contribute 0; no
extractor raises. Attribution credits a sample's value to every function
occurrence in its stack, so a recursive function is credited once per
frame.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Optional, Tuple, Type, Union

from perfkit.backend.analysis.decoder import DecodedProfile, decode_profile
from perfkit.backend.analysis.detector import detect_kind
from perfkit.backend.analysis.topn import DEFAULT_TOP_N, top_n
from perfkit.backend.errors import UnsupportedKindError
from perfkit.backend.models import (
    AllocsMetrics,
    BlockMetrics,
    CPUMetrics,
    GoroutineMetrics,
    HeapMetrics,
    MetricsRecord,
    MutexMetrics,
    ProfileKind,
    StackEntry,
    ThreadCreateMetrics,
)

logger = logging.getLogger(__name__)

# Columns of mutex and block profiles
COUNT_INDEX = 0
TIME_INDEX = 1


@dataclass(frozen=True)
class ParsedProfile:
    """Result of extracting one pprof payload"""

    kind: ProfileKind
    duration_ns: int
    time_ns: int
    total_samples: int
    total_value: int
    metrics: MetricsRecord


def extract_cpu_metrics(profile: DecodedProfile) -> CPUMetrics:
    func_values: Dict[str, int] = defaultdict(int)
    total = 0

    for sample in profile.samples:
        if not sample.values or not sample.locations:
            continue
        value = sample.values[0]
        total += value
        for name in sample.function_names():
            func_values[name] += value

    return CPUMetrics(
        total_cpu_time_ns=total,
        sample_count=len(profile.samples),
        top_functions=top_n(func_values, total, DEFAULT_TOP_N),
    )


def _extract_allocations(
    profile: DecodedProfile,
    model: Type[Union[HeapMetrics, AllocsMetrics]],
) -> Union[HeapMetrics, AllocsMetrics]:
    # Allocation profiles carry four columns; find them by name
    columns = {
        "alloc_size": profile.value_index("alloc_space"),
        "alloc_objects": profile.value_index("alloc_objects"),
        "inuse_size": profile.value_index("inuse_space"),
        "inuse_objects": profile.value_index("inuse_objects"),
    }
    totals: Dict[str, Optional[int]] = {
        field: (0 if index is not None else None) for field, index in columns.items()
    }
    attribution_index = columns["alloc_size"]
    func_values: Dict[str, int] = defaultdict(int)

    for sample in profile.samples:
        for field, index in columns.items():
            if index is not None:
                totals[field] += sample.value_at(index)

        if attribution_index is not None:
            value = sample.value_at(attribution_index)
            for name in sample.function_names():
                func_values[name] += value

    return model(
        **totals,
        top_allocators=top_n(func_values, totals["alloc_size"] or 0, DEFAULT_TOP_N),
    )


def extract_heap_metrics(profile: DecodedProfile) -> HeapMetrics:
    return _extract_allocations(profile, HeapMetrics)


def extract_allocs_metrics(profile: DecodedProfile) -> AllocsMetrics:
    return _extract_allocations(profile, AllocsMetrics)


def _extract_contention(profile: DecodedProfile):
    """Sum (count, time) columns and attribute time to functions"""
    count = 0
    time_ns = 0
    func_values: Dict[str, int] = defaultdict(int)

    for sample in profile.samples:
        if len(sample.values) < 2:
            continue
        count += sample.values[COUNT_INDEX]
        time_ns += sample.values[TIME_INDEX]
        for name in sample.function_names():
            func_values[name] += sample.values[TIME_INDEX]

    return count, time_ns, top_n(func_values, time_ns, DEFAULT_TOP_N)


def extract_mutex_metrics(profile: DecodedProfile) -> MutexMetrics:
    count, time_ns, top = _extract_contention(profile)
    return MutexMetrics(
        contention_count=count,
        contention_time_ns=time_ns,
        top_contenders=top,
    )


def extract_block_metrics(profile: DecodedProfile) -> BlockMetrics:
    count, time_ns, top = _extract_contention(profile)
    return BlockMetrics(
        blocking_count=count,
        blocking_time_ns=time_ns,
        top_blockers=top,
    )


def top_stacks(profile: DecodedProfile, n: int = DEFAULT_TOP_N) -> list[StackEntry]:
    """
    Group samples by their exact stack and rank stacks by sample count.

    Stacks with the same count keep the order in which they were first seen.
    """
    stack_counts: Dict[Tuple[str, ...], int] = defaultdict(int)
    for sample in profile.samples:
        stack_counts[tuple(sample.function_names())] += 1

    ranked = sorted(stack_counts.items(), key=lambda item: item[1], reverse=True)
    return [StackEntry(stack=list(stack), count=count) for stack, count in ranked[:n]]


def extract_goroutine_metrics(profile: DecodedProfile) -> GoroutineMetrics:
    return GoroutineMetrics(
        goroutine_count=len(profile.samples),
        top_stacks=top_stacks(profile),
    )


def extract_threadcreate_metrics(profile: DecodedProfile) -> ThreadCreateMetrics:
    return ThreadCreateMetrics(
        thread_count=len(profile.samples),
        top_stacks=top_stacks(profile),
    )


EXTRACTORS = MappingProxyType(
    {
        ProfileKind.CPU: extract_cpu_metrics,
        ProfileKind.HEAP: extract_heap_metrics,
        ProfileKind.ALLOCS: extract_allocs_metrics,
        ProfileKind.MUTEX: extract_mutex_metrics,
        ProfileKind.BLOCK: extract_block_metrics,
        ProfileKind.GOROUTINE: extract_goroutine_metrics,
        ProfileKind.THREADCREATE: extract_threadcreate_metrics,
    }
)


def extract_metrics(profile: DecodedProfile, kind: ProfileKind) -> MetricsRecord:
    """Run the extractor registered for ``kind``"""
    try:
        extractor = EXTRACTORS[kind]
    except KeyError:
        raise UnsupportedKindError(
            f"Profile type '{kind.value}' cannot be extracted from pprof data"
        ) from None
    return extractor(profile)


def extract_profile(
    data: bytes,
    kind: Optional[ProfileKind] = None,
) -> ParsedProfile:
    """
    Decode pprof bytes and extract the metrics record of their kind.

    Args:
        data: Raw, optionally gzipped, pprof payload
        kind: Known profile kind; detected from the sample types when None

    Returns:
        ParsedProfile: Kind, duration, capture time, totals and the
            metrics record

    Raises:
        DecodeError: The payload is not a well-formed profile
        UnsupportedKindError: ``kind`` has no pprof extractor
    """
    profile = decode_profile(data)

    if kind is None:
        kind = detect_kind(profile.sample_types)
        logger.debug(f"Detected profile type '{kind.value}'")

    metrics = extract_metrics(profile, kind)

    total_value = sum(sample.values[0] for sample in profile.samples if sample.values)

    return ParsedProfile(
        kind=kind,
        duration_ns=profile.duration_ns,
        time_ns=profile.time_ns,
        total_samples=len(profile.samples),
        total_value=total_value,
        metrics=metrics,
    )
