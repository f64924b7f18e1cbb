"""
Decoding of raw pprof bytes into an immutable, symbolized sample set.
"""

import gzip
import logging
import zlib
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from perfkit.backend.analysis.pprof_proto import Profile
from perfkit.backend.errors import DecodeError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class SampleType:
    """Descriptor of one value column: what is measured and in which unit"""

    type: str
    unit: str


@dataclass(frozen=True)
class DecodedSample:
    """One observation: values by column and the call stack, leaf first"""

    values: Tuple[int, ...]
    locations: Tuple[Tuple[str, ...], ...]

    def value_at(self, index: Optional[int]) -> int:
        """Value of a column, 0 when the column is missing from this sample"""
        if index is None or index < 0 or index >= len(self.values):
            return 0
        return self.values[index]

    def function_names(self) -> Iterator[str]:
        """Every function occurrence in the stack, recursion included"""
        for names in self.locations:
            yield from names


@dataclass(frozen=True)
class DecodedProfile:
    """A fully decoded profile"""

    sample_types: Tuple[SampleType, ...]
    samples: Tuple[DecodedSample, ...]
    duration_ns: int = 0
    time_ns: int = 0

    def value_index(self, type_name: str) -> Optional[int]:
        """Position of the first column with the given type, if declared"""
        for i, sample_type in enumerate(self.sample_types):
            if sample_type.type == type_name:
                return i
        return None


def decode_profile(data: bytes) -> DecodedProfile:
    """
    Decode a pprof profile, gunzipping it first when it is compressed.

    Raises:
        DecodeError: The bytes are not a well-formed profile
    """
    if not data:
        raise DecodeError("parse profile: empty input")

    if data[:2] == GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise DecodeError(f"parse profile: decompress: {e}") from e

    try:
        message = Profile().parse(data)
    except Exception as e:
        raise DecodeError(f"parse profile: {e}") from e

    return _symbolize(message)


def _symbolize(message: Profile) -> DecodedProfile:
    strings = message.string_table
    if not strings or strings[0] != "":
        raise DecodeError("parse profile: malformed string table")

    def lookup(index: int) -> str:
        if index < 0 or index >= len(strings):
            raise DecodeError(f"parse profile: string index {index} out of range")
        return strings[index]

    functions: Dict[int, str] = {}
    for function in message.function:
        functions[function.id] = lookup(function.name)

    locations: Dict[int, Tuple[str, ...]] = {}
    for location in message.location:
        names = []
        for line in location.line:
            if line.function_id == 0:
                continue
            if line.function_id not in functions:
                raise DecodeError(
                    f"parse profile: function ID {line.function_id} not found"
                )
            names.append(functions[line.function_id])
        locations[location.id] = tuple(names)

    samples = []
    for sample in message.sample:
        stack = []
        for location_id in sample.location_id:
            if location_id not in locations:
                raise DecodeError(
                    f"parse profile: location ID {location_id} not found"
                )
            stack.append(locations[location_id])
        samples.append(DecodedSample(values=tuple(sample.value), locations=tuple(stack)))

    sample_types = tuple(
        SampleType(type=lookup(st.type), unit=lookup(st.unit))
        for st in message.sample_type
    )

    logger.debug(
        f"Decoded profile with {len(samples)} samples, "
        f"{len(locations)} locations and {len(functions)} functions"
    )

    return DecodedProfile(
        sample_types=sample_types,
        samples=tuple(samples),
        duration_ns=message.duration_nanos,
        time_ns=message.time_nanos,
    )
