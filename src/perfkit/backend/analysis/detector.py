"""
Classification of a decoded profile into a profile kind.

The kind is guessed from the declared sample types. Descriptors are
scanned in declaration order and each one is tested against the
signatures below in priority order; the first hit wins and CPU is the
fallback. This is a heuristic: an allocs profile declares the same
columns as a heap profile and is reported as heap, and a threadcreate
profile falls through to CPU. Callers that know the kind should pass it
explicitly instead of relying on detection.
"""

from typing import Iterable, Optional, Tuple

from perfkit.backend.analysis.decoder import SampleType
from perfkit.backend.models import ProfileKind

CPU_TYPES = frozenset({"cpu", "samples"})
CPU_UNITS = frozenset({"nanoseconds", "count"})

# Signatures checked after CPU, in priority order
TYPE_SIGNATURES: Tuple[Tuple[ProfileKind, frozenset], ...] = (
    (
        ProfileKind.HEAP,
        frozenset({"alloc_objects", "alloc_space", "inuse_objects", "inuse_space"}),
    ),
    (ProfileKind.MUTEX, frozenset({"contentions", "delay"})),
    (ProfileKind.BLOCK, frozenset({"block"})),
    (ProfileKind.GOROUTINE, frozenset({"goroutine"})),
)


def _match(sample_type: SampleType) -> Optional[ProfileKind]:
    if sample_type.type in CPU_TYPES and sample_type.unit in CPU_UNITS:
        return ProfileKind.CPU
    for kind, types in TYPE_SIGNATURES:
        if sample_type.type in types:
            return kind
    return None


def detect_kind(sample_types: Iterable[SampleType]) -> ProfileKind:
    """Return the kind of the first descriptor with a known signature"""
    for sample_type in sample_types:
        kind = _match(sample_type)
        if kind is not None:
            return kind
    return ProfileKind.CPU
