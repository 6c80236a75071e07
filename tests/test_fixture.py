import pytest

from distlab.codec import decode, encode
from distlab.fixture import Msg, MsgType


def test_basic_encode_decode():
    msg = Msg(type=MsgType.PUT, id=42, name="the answer", payload=[bytes([7] * 3)] * 2)
    assert Msg.decode(msg.encode()) == msg


def test_default():
    assert decode(Msg, b"") == Msg()


def test_pinned_encoding():
    msg = Msg(type=MsgType.PUT, id=42, name="ab", payload=[b"\x07"])
    assert encode(msg) == b"\x08\x01\x10\x2a\x1a\x02ab\x22\x01\x07"


def test_empty_payload_entries_kept():
    msg = Msg(payload=[b"", b""])
    assert encode(msg) == b"\x22\x00\x22\x00"
    assert Msg.decode(encode(msg)).payload == [b"", b""]


@pytest.mark.parametrize("value,expected", [(0, True), (1, True), (2, True), (3, True), (4, False), (-1, False)])
def test_is_valid(value, expected):
    assert MsgType.is_valid(value) is expected


def test_from_int():
    assert MsgType.from_int(2) is MsgType.GET
    assert MsgType.from_int(9) is None


def test_message_type():
    assert Msg(type=3).message_type() is MsgType.DEL
    assert Msg(type=77).message_type() is MsgType.UNKNOWN


def test_unknown_enum_value_round_trips():
    msg = Msg(type=77)
    assert Msg.decode(msg.encode()).type == 77


def test_clear_resets_fields():
    msg = Msg(type=MsgType.GET, id=5, name="n", payload=[b"x"])
    msg.clear()
    assert msg == Msg()
    assert msg.encoded_len() == 0