"""Tests for pprof metric extraction"""

import pytest

from perfkit.backend.analysis import decode_profile, extract_metrics, extract_profile
from perfkit.backend.errors import UnsupportedKindError
from perfkit.backend.models import (
    AllocsMetrics,
    BlockMetrics,
    CPUMetrics,
    GoroutineMetrics,
    HeapMetrics,
    MutexMetrics,
    ProfileKind,
    ThreadCreateMetrics,
)

from pprof_builder import CONTENTION_TYPES, CPU_TYPES


class TestCPUExtraction:
    """Tests for CPU profiles"""

    def test_totals_and_top_functions(self, cpu_profile_bytes):
        parsed = extract_profile(cpu_profile_bytes)

        assert parsed.kind == ProfileKind.CPU
        assert parsed.total_samples == 3
        assert parsed.total_value == 1000
        assert parsed.duration_ns == 10_000_000_000

        metrics = parsed.metrics
        assert isinstance(metrics, CPUMetrics)
        assert metrics.total_cpu_time_ns == 1000
        assert metrics.sample_count == 3

        top = {e.name: e for e in metrics.top_functions}
        assert top["main"].percent == pytest.approx(100.0)
        assert top["A"].value == 600
        assert top["A"].percent == pytest.approx(60.0)
        assert top["B"].percent == pytest.approx(30.0)
        assert [e.name for e in metrics.top_functions] == ["main", "A", "B", "C"]

    def test_recursive_frames_credited_each_time(self, make_pprof):
        data = make_pprof(CPU_TYPES, [([10, 100], ["fib", "fib", "main"])])

        metrics = extract_profile(data).metrics

        fib = next(e for e in metrics.top_functions if e.name == "fib")
        assert fib.value == 20
        assert fib.percent == 100.0

    def test_samples_without_stack_are_not_attributed(self, make_pprof):
        data = make_pprof(CPU_TYPES, [([5, 50], []), ([1, 10], ["f"])])

        metrics = extract_profile(data).metrics

        assert metrics.sample_count == 2
        assert metrics.total_cpu_time_ns == 1
        assert [e.name for e in metrics.top_functions] == ["f"]

    def test_empty_profile(self, make_pprof):
        metrics = extract_profile(make_pprof(CPU_TYPES, [])).metrics
        assert metrics.total_cpu_time_ns == 0
        assert metrics.top_functions == []

    def test_extraction_is_repeatable(self, cpu_profile_bytes):
        assert extract_profile(cpu_profile_bytes) == extract_profile(cpu_profile_bytes)


class TestAllocationExtraction:
    """Tests for heap and allocs profiles"""

    def test_heap_columns(self, heap_profile_bytes):
        parsed = extract_profile(heap_profile_bytes)

        assert parsed.kind == ProfileKind.HEAP
        metrics = parsed.metrics
        assert isinstance(metrics, HeapMetrics)
        assert metrics.alloc_objects == 5
        assert metrics.alloc_size == 6144
        assert metrics.inuse_objects == 1
        assert metrics.inuse_size == 1024
        assert [e.name for e in metrics.top_allocators] == ["main", "parse", "alloc"]
        assert metrics.top_allocators[1].value == 4096

    def test_undeclared_columns_are_none(self, make_pprof):
        data = make_pprof(
            [("inuse_objects", "count"), ("inuse_space", "bytes")],
            [([1, 512], ["f"])],
        )

        metrics = extract_profile(data).metrics

        assert metrics.inuse_objects == 1
        assert metrics.inuse_size == 512
        assert metrics.alloc_size is None
        assert metrics.alloc_objects is None
        assert metrics.top_allocators == []

    def test_explicit_allocs_kind(self, heap_profile_bytes):
        parsed = extract_profile(heap_profile_bytes, ProfileKind.ALLOCS)

        assert parsed.kind == ProfileKind.ALLOCS
        assert isinstance(parsed.metrics, AllocsMetrics)
        assert parsed.metrics.alloc_size == 6144


class TestContentionExtraction:
    """Tests for mutex and block profiles"""

    @pytest.fixture
    def contention_bytes(self, make_pprof):
        return make_pprof(
            CONTENTION_TYPES,
            [
                ([2, 500], ["lock", "main"]),
                ([1, 250], ["unlock", "main"]),
                ([7], ["short"]),
            ],
        )

    def test_mutex(self, contention_bytes):
        metrics = extract_profile(contention_bytes).metrics

        assert isinstance(metrics, MutexMetrics)
        assert metrics.contention_count == 3
        assert metrics.contention_time_ns == 750
        assert [e.name for e in metrics.top_contenders] == ["main", "lock", "unlock"]

    def test_block(self, contention_bytes):
        metrics = extract_profile(contention_bytes, ProfileKind.BLOCK).metrics

        assert isinstance(metrics, BlockMetrics)
        assert metrics.blocking_count == 3
        assert metrics.blocking_time_ns == 750
        assert metrics.top_blockers[1].percent == pytest.approx(500 / 750 * 100)


class TestStackExtraction:
    """Tests for goroutine and threadcreate profiles"""

    @pytest.fixture
    def stacks_bytes(self, make_pprof):
        return make_pprof(
            [("goroutine", "count")],
            [
                ([1], ["wait", "main"]),
                ([1], ["serve", "main"]),
                ([1], ["wait", "main"]),
            ],
        )

    def test_goroutine(self, stacks_bytes):
        metrics = extract_profile(stacks_bytes).metrics

        assert isinstance(metrics, GoroutineMetrics)
        assert metrics.goroutine_count == 3
        assert [(s.stack, s.count) for s in metrics.top_stacks] == [
            (["wait", "main"], 2),
            (["serve", "main"], 1),
        ]

    def test_threadcreate(self, stacks_bytes):
        metrics = extract_profile(stacks_bytes, ProfileKind.THREADCREATE).metrics

        assert isinstance(metrics, ThreadCreateMetrics)
        assert metrics.thread_count == 3
        assert len(metrics.top_stacks) == 2


class TestUnsupportedKinds:
    """Kinds without a pprof extractor"""

    @pytest.mark.parametrize("kind", [ProfileKind.GC, ProfileKind.K6])
    def test_raises(self, cpu_profile_bytes, kind):
        profile = decode_profile(cpu_profile_bytes)
        with pytest.raises(UnsupportedKindError):
            extract_metrics(profile, kind)
