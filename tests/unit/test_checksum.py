import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np
import pytest

from resdeck.errors import SerializationError
from resdeck.faults import Fault
from resdeck.schedule.properties import Group, Tuning
from resdeck.schedule.udq import UDT, InterpolationType
from resdeck.schedule.well import Connection, Well
from resdeck.serialization import (
    CheckSum,
    OctetBuffer,
    checksum_hex,
    encode,
    entity_fields,
    pack,
    round_trip,
    serializable,
    unpack,
)


class Opaque:
    pass


class Colour(enum.IntEnum):
    RED = 1
    BLUE = 2


@serializable
@dataclass
class Sample:
    name: str
    count: int
    weight: float
    colour: Colour = Colour.RED
    when: datetime = datetime(2020, 1, 1)
    tags: List[str] = field(default_factory=list)
    extra: Optional[float] = None
    table: Dict[str, int] = field(default_factory=dict)


def _octets(value, hint=None) -> bytes:
    buf = OctetBuffer()
    CheckSum(buf).checksum(value, hint)
    return bytes(buf.data)


def test_plain_values_use_storage_bytes():
    assert _octets(7) == np.int64(7).tobytes()
    assert _octets(0.5) == np.float64(0.5).tobytes()
    assert _octets(True) == b"\x01"


def test_array_of_plain_values_matches_numpy_layout():
    buf = OctetBuffer()
    CheckSum(buf).checksum_array([1.0, 2.0, 3.0], float)
    assert bytes(buf.data) == np.array([1.0, 2.0, 3.0], dtype="<f8").tobytes()


def test_array_of_non_plain_values_rejected():
    with pytest.raises(SerializationError, match="non-plain"):
        CheckSum(OctetBuffer()).checksum_array(["a", "b"], str)


def test_string_contributes_content_only():
    assert _octets("FLT1") == b"FLT1"


def test_datetime_uses_integral_seconds():
    assert _octets(datetime(1970, 1, 2)) == np.int64(86400).tobytes()


def test_nested_strings_carry_their_length():
    expected = np.uint64(1).tobytes() + np.uint64(2).tobytes() + b"AB"
    assert _octets(["AB"], List[str]) == expected


@pytest.mark.parametrize(
    "left, right",
    [
        (Group("AB", parent="C"), Group("A", parent="BC")),
        (Group("G", children=["A", "B"]), Group("G", children=["AB", ""])),
        (Well("W1", "G", 0, 0), Well("W", "1G", 0, 0)),
    ],
)
def test_adjacent_strings_do_not_run_together(left, right):
    assert left != right
    assert checksum_hex(left) != checksum_hex(right)


def test_round_trip_keeps_sub_second_times():
    sample = Sample("W1", 1, 1.0, when=datetime(2020, 1, 1, 0, 0, 0, 864000))
    copy = round_trip(sample)
    assert copy.when == datetime(2020, 1, 1, 0, 0, 0, 864000)
    truncated = dataclasses.replace(sample, when=datetime(2020, 1, 1))
    assert truncated != sample
    # the checksum keeps whole seconds only
    assert checksum_hex(truncated) == checksum_hex(sample)


def test_entity_round_trip_and_checksum():
    sample = Sample("W1", 3, 2.5, Colour.BLUE, datetime(2021, 5, 1, 12), ["a", "b"], 1.5, {"x": 1})
    copy = round_trip(sample)
    assert copy == sample
    assert copy is not sample
    assert checksum_hex(copy) == checksum_hex(sample)


def test_one_field_difference_changes_checksum():
    base = Sample("W1", 3, 2.5)
    for name, value in [("name", "W2"), ("count", 4), ("weight", 2.5000001), ("extra", 0.0)]:
        other = dataclasses.replace(base, **{name: value})
        assert other != base
        assert checksum_hex(other) != checksum_hex(base)


def test_mapping_order_does_not_matter():
    left = Sample("W", 1, 1.0, table={"a": 1, "b": 2})
    right = Sample("W", 1, 1.0, table={"b": 2, "a": 1})
    assert checksum_hex(left) == checksum_hex(right)


def test_entity_fields_in_declaration_order():
    assert entity_fields(Sample)[:3] == ("name", "count", "weight")
    assert "TSINIT" in entity_fields(Tuning)


def test_undeclared_field_type_fails_at_definition():
    with pytest.raises(SerializationError, match="Opaque"):

        @serializable
        @dataclass
        class Broken:
            payload: Opaque


def test_bare_value_needs_rule():
    with pytest.raises(SerializationError, match="not supported"):
        encode(Opaque())


def test_containers_need_type_hint():
    with pytest.raises(SerializationError, match="explicit type hint"):
        encode([1, 2, 3])
    assert unpack(pack([1, 2, 3], List[int]), List[int]) == [1, 2, 3]


def test_unpack_rejects_trailing_bytes():
    data = pack(Sample("W1", 1, 1.0))
    with pytest.raises(SerializationError, match="trailing"):
        unpack(data + b"\x00", Sample)


def test_unpack_rejects_truncated_buffer():
    data = pack(Sample("W1", 1, 1.0))
    with pytest.raises(SerializationError):
        unpack(data[:-3], Sample)


@pytest.mark.parametrize(
    "entity",
    [
        Connection.serialization_test_object(),
        Tuning(TSINIT=86400.0, NEWTMX=20),
        UDT((1.0, 2.0), (3.0, 4.0), InterpolationType.LINEAR_EXTRAPOLATE),
        Fault("FLT1", 0.002, "EDIT", 0.0001),
    ],
)
def test_schedule_entities_round_trip(entity):
    copy = round_trip(entity)
    assert copy == entity
    assert checksum_hex(copy) == checksum_hex(entity)


def test_connection_wpimult_is_part_of_checksum():
    conn = Connection.serialization_test_object()
    other = Connection.serialization_test_object()
    other.wpimult = 2.0
    assert checksum_hex(conn) != checksum_hex(other)
