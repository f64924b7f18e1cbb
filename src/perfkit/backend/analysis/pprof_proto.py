"""
Message definitions for the pprof profile format (profile.proto).

Only the messages and fields the extractors read are declared; unknown
fields (mappings, labels) are skipped when parsing. String-valued fields
hold indices into ``Profile.string_table``.
"""

from dataclasses import dataclass
from typing import List

import betterproto


@dataclass(eq=False, repr=False)
class ValueType(betterproto.Message):
    type: int = betterproto.int64_field(1)
    unit: int = betterproto.int64_field(2)


@dataclass(eq=False, repr=False)
class Sample(betterproto.Message):
    location_id: List[int] = betterproto.uint64_field(1)
    value: List[int] = betterproto.int64_field(2)


@dataclass(eq=False, repr=False)
class Line(betterproto.Message):
    function_id: int = betterproto.uint64_field(1)
    line: int = betterproto.int64_field(2)


@dataclass(eq=False, repr=False)
class Location(betterproto.Message):
    id: int = betterproto.uint64_field(1)
    mapping_id: int = betterproto.uint64_field(2)
    address: int = betterproto.uint64_field(3)
    line: List[Line] = betterproto.message_field(4)


@dataclass(eq=False, repr=False)
class Function(betterproto.Message):
    id: int = betterproto.uint64_field(1)
    name: int = betterproto.int64_field(2)
    system_name: int = betterproto.int64_field(3)
    filename: int = betterproto.int64_field(4)
    start_line: int = betterproto.int64_field(5)


@dataclass(eq=False, repr=False)
class Profile(betterproto.Message):
    sample_type: List[ValueType] = betterproto.message_field(1)
    sample: List[Sample] = betterproto.message_field(2)
    location: List[Location] = betterproto.message_field(4)
    function: List[Function] = betterproto.message_field(5)
    string_table: List[str] = betterproto.string_field(6)
    time_nanos: int = betterproto.int64_field(9)
    duration_nanos: int = betterproto.int64_field(10)
    period_type: ValueType = betterproto.message_field(11)
    period: int = betterproto.int64_field(12)
