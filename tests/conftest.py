"""Shared pytest fixtures for PerfKit tests."""

import pytest

from pprof_builder import CPU_TYPES, HEAP_TYPES, build_pprof


@pytest.fixture
def make_pprof():
    """Builder for encoded pprof payloads"""
    return build_pprof


@pytest.fixture
def cpu_profile_bytes() -> bytes:
    # values are [samples, cpu nanoseconds]; extractors read the first column
    return build_pprof(
        CPU_TYPES,
        [
            ([600, 6_000_000], ["A", "main"]),
            ([300, 3_000_000], ["B", "main"]),
            ([100, 1_000_000], ["C", "main"]),
        ],
        duration_ns=10_000_000_000,
        gzipped=True,
    )


@pytest.fixture
def heap_profile_bytes() -> bytes:
    return build_pprof(
        HEAP_TYPES,
        [
            ([2, 2048, 1, 1024], ["alloc", "main"]),
            ([3, 4096, 0, 0], ["parse", "main"]),
        ],
    )


@pytest.fixture
def k6_summary_bytes() -> bytes:
    return (
        b'{"root_group": {"duration": 30000},'
        b' "metrics": {'
        b'  "http_req_duration": {"type": "trend", "contains": "time",'
        b'    "values": {"p(50)": 12.5, "p(95)": 48.0, "p(99)": 90.0,'
        b'               "avg": 20.0, "min": 1.0, "max": 120.0}},'
        b'  "http_reqs": {"type": "counter", "values": {"count": 3000, "rate": 100.0}},'
        b'  "http_req_failed": {"type": "rate", "values": {"rate": 0.05, "passes": 150, "fails": 2850}}'
        b"}}"
    )
