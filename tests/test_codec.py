from dataclasses import dataclass, field
from typing import ClassVar

import pytest

from distlab.codec import (
    DecodeError,
    EncodeError,
    Field,
    FieldKind,
    Message,
    decode,
    encode,
)
from distlab.fixture import Msg, MsgType


@dataclass
class Sample(Message):
    FIELDS: ClassVar = (
        Field("a", 1, FieldKind.INT32),
        Field("b", 2, FieldKind.STRING),
        Field("c", 3, FieldKind.INT64),
        Field("d", 4, FieldKind.BOOL),
        Field("e", 5, FieldKind.UINT32),
        Field("nums", 6, FieldKind.INT32, repeated=True),
        Field("words", 7, FieldKind.STRING, repeated=True),
    )
    a: int = 0
    b: str = ""
    c: int = 0
    d: bool = False
    e: int = 0
    nums: list = field(default_factory=list)
    words: list = field(default_factory=list)


def test_basic_encode_decode():
    msg = Msg(type=MsgType.PUT, id=42, name="the answer", payload=[b"\x07" * 3] * 2)
    data = encode(msg)
    assert decode(Msg, data) == msg


def test_default():
    assert decode(Msg, b"") == Msg()


def test_pinned_varint():
    assert encode(Sample(a=150)) == b"\x08\x96\x01"


def test_pinned_string():
    assert encode(Sample(b="testing")) == b"\x12\x07testing"


def test_negative_int32_uses_ten_bytes():
    data = encode(Sample(a=-1))
    assert data == b"\x08" + b"\xff" * 9 + b"\x01"
    assert decode(Sample, data).a == -1


def test_defaults_are_omitted():
    assert encode(Sample()) == b""


def test_round_trip_all_kinds():
    msg = Sample(a=-5, b="héllo", c=-(1 << 63), d=True, e=(1 << 32) - 1,
                 nums=[1, -2, 300], words=["", "x"])
    data = encode(msg)
    assert decode(Sample, data) == msg
    assert msg.encode() == data


def test_packed_repeated_encoding():
    assert encode(Sample(nums=[1, 2, 3])) == b"\x32\x03\x01\x02\x03"


def test_unpacked_repeated_accepted():
    assert decode(Sample, b"\x30\x01\x30\x02").nums == [1, 2]


def test_last_scalar_wins():
    assert decode(Sample, b"\x08\x01\x08\x02").a == 2


def test_unknown_fields_skipped():
    data = b"\x78\x05" + b"\x82\x01\x02hi" + b"\x08\x07"
    assert decode(Sample, data).a == 7


def test_encoded_len():
    msg = Sample(a=150, b="testing")
    assert msg.encoded_len() == 3 + 9
    assert len(encode(msg)) == msg.encoded_len()


def test_clear():
    msg = Sample(a=3, b="x", nums=[1])
    msg.clear()
    assert msg == Sample()
    assert encode(msg) == b""


@pytest.mark.parametrize("value", [1 << 31, -(1 << 31) - 1, "1", True])
def test_int32_out_of_range(value):
    with pytest.raises(EncodeError):
        encode(Sample(a=value))


def test_bool_requires_bool():
    with pytest.raises(EncodeError):
        encode(Sample(d=1))


def test_truncated_input():
    with pytest.raises(DecodeError):
        decode(Sample, b"\x12\x07test")


def test_invalid_utf8():
    with pytest.raises(DecodeError) as info:
        decode(Sample, b"\x12\x02\xff\xfe")
    assert info.value.stack == [("Sample", "b")]
    assert "Sample.b" in str(info.value)


def test_wrong_wire_type():
    with pytest.raises(DecodeError):
        decode(Sample, b"\x0a\x01x")


def test_zero_tag_rejected():
    with pytest.raises(DecodeError):
        decode(Sample, b"\x00\x01")


def test_bad_message_bytes():
    with pytest.raises(DecodeError):
        decode(Msg, b"bad message")


def test_duplicate_tags_rejected():
    with pytest.raises(TypeError):
        class Broken(Message):
            FIELDS = (Field("x", 1, FieldKind.INT32), Field("y", 1, FieldKind.INT32))


def test_invalid_tag():
    with pytest.raises(ValueError):
        Field("x", 0, FieldKind.INT32)