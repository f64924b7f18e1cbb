"""Tests for pprof decoding"""

import gzip

import pytest

from perfkit.backend.analysis import decode_profile
from perfkit.backend.analysis.pprof_proto import Profile, Sample
from perfkit.backend.errors import DecodeError

from pprof_builder import CPU_TYPES


class TestDecodeProfile:
    """Tests for decode_profile"""

    def test_decodes_samples_and_types(self, make_pprof):
        data = make_pprof(
            CPU_TYPES,
            [([1, 10], ["leaf", "caller", "main"])],
            duration_ns=5_000,
            time_ns=1_700_000_000_000_000_000,
        )

        profile = decode_profile(data)

        assert [(st.type, st.unit) for st in profile.sample_types] == CPU_TYPES
        assert len(profile.samples) == 1
        sample = profile.samples[0]
        assert sample.values == (1, 10)
        assert list(sample.function_names()) == ["leaf", "caller", "main"]
        assert profile.duration_ns == 5_000
        assert profile.time_ns == 1_700_000_000_000_000_000

    def test_gzipped_and_plain_are_equivalent(self, make_pprof):
        samples = [([3, 30], ["f", "main"])]
        plain = decode_profile(make_pprof(CPU_TYPES, samples))
        zipped = decode_profile(make_pprof(CPU_TYPES, samples, gzipped=True))
        assert plain == zipped

    def test_value_index(self, make_pprof):
        profile = decode_profile(make_pprof(CPU_TYPES, []))
        assert profile.value_index("cpu") == 1
        assert profile.value_index("alloc_space") is None

    def test_missing_value_reads_zero(self, make_pprof):
        profile = decode_profile(make_pprof(CPU_TYPES, [([4], ["f"])]))
        assert profile.samples[0].value_at(1) == 0
        assert profile.samples[0].value_at(None) == 0

    def test_empty_input(self):
        with pytest.raises(DecodeError, match="empty input"):
            decode_profile(b"")

    def test_corrupt_gzip(self):
        with pytest.raises(DecodeError, match="decompress"):
            decode_profile(b"\x1f\x8b" + b"not really gzip")

    def test_malformed_string_table(self):
        data = bytes(Profile(string_table=["oops"]))
        with pytest.raises(DecodeError, match="string table"):
            decode_profile(data)

    def test_unknown_location(self):
        data = bytes(
            Profile(
                string_table=["", "x"],
                sample=[Sample(location_id=[42], value=[1])],
            )
        )
        with pytest.raises(DecodeError, match="location ID 42"):
            decode_profile(gzip.compress(data))
