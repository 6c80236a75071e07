"""Protocol-buffer wire encoding for declaratively described messages."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, ClassVar, TypeVar

_VARINT = 0
_FIXED64 = 1
_LEN = 2
_START_GROUP = 3
_END_GROUP = 4
_FIXED32 = 5

_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1
_MAX_TAG = (1 << 29) - 1


class EncodeError(ValueError):
    """Raised when a message cannot be encoded."""


class DecodeError(ValueError):
    """Raised when bytes cannot be decoded into a message."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description
        self.stack: list[tuple[str, str]] = []

    def push(self, message: str, field: str) -> None:
        """Record the message and field in which the failure happened."""
        self.stack.append((message, field))

    def __str__(self) -> str:
        path = "".join(f"{message}.{field}: " for message, field in reversed(self.stack))
        return f"failed to decode Protobuf message: {path}{self.description}"


class FieldKind(enum.Enum):
    """Scalar type of a message field."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    BOOL = "bool"
    ENUM = "enum"
    STRING = "string"
    BYTES = "bytes"

    @property
    def length_delimited(self) -> bool:
        return self in (FieldKind.STRING, FieldKind.BYTES)


_INT_LIMITS = {
    FieldKind.INT32: (-(1 << 31), (1 << 31) - 1),
    FieldKind.ENUM: (-(1 << 31), (1 << 31) - 1),
    FieldKind.INT64: (-(1 << 63), (1 << 63) - 1),
    FieldKind.UINT32: (0, _MASK32),
    FieldKind.UINT64: (0, _MASK64),
}


@dataclass(frozen=True)
class Field:
    """Wire description of one message attribute."""

    name: str
    tag: int
    kind: FieldKind
    repeated: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.tag <= _MAX_TAG:
            raise ValueError(f"invalid tag {self.tag} for field {self.name!r}")


def _write_varint(out: bytearray, value: int) -> None:
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)


def _write_key(out: bytearray, tag: int, wire_type: int) -> None:
    _write_varint(out, (tag << 3) | wire_type)


def _varint_of(field: Field, value: Any) -> int:
    if field.kind is FieldKind.BOOL:
        if not isinstance(value, bool):
            raise EncodeError(f"field {field.name!r} expects a bool, got {value!r}")
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodeError(f"field {field.name!r} expects an integer, got {value!r}")
    low, high = _INT_LIMITS[field.kind]
    if not low <= value <= high:
        raise EncodeError(f"value {value} out of range for {field.kind.value} field {field.name!r}")
    return int(value) & _MASK64


def _as_bytes(field: Field, value: Any) -> bytes:
    if field.kind is FieldKind.STRING:
        if not isinstance(value, str):
            raise EncodeError(f"field {field.name!r} expects a str, got {value!r}")
        try:
            return value.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise EncodeError(f"field {field.name!r} is not valid UTF-8 text") from exc
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise EncodeError(f"field {field.name!r} expects bytes, got {value!r}")
    return bytes(value)


def _encode_field(field: Field, value: Any, out: bytearray) -> None:
    if field.repeated:
        if not isinstance(value, (list, tuple)):
            raise EncodeError(f"repeated field {field.name!r} expects a list, got {value!r}")
        if field.kind.length_delimited:
            for item in value:
                data = _as_bytes(field, item)
                _write_key(out, field.tag, _LEN)
                _write_varint(out, len(data))
                out += data
        elif value:
            packed = bytearray()
            for item in value:
                _write_varint(packed, _varint_of(field, item))
            _write_key(out, field.tag, _LEN)
            _write_varint(out, len(packed))
            out += packed
        return
    if field.kind.length_delimited:
        data = _as_bytes(field, value)
        if data:
            _write_key(out, field.tag, _LEN)
            _write_varint(out, len(data))
            out += data
    else:
        number = _varint_of(field, value)
        if number:
            _write_key(out, field.tag, _VARINT)
            _write_varint(out, number)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def varint(self) -> int:
        result = 0
        for shift in range(0, 64, 7):
            if self._pos >= len(self._data):
                raise DecodeError("buffer underflow")
            byte = self._data[self._pos]
            self._pos += 1
            if shift == 63 and byte > 1:
                raise DecodeError("invalid varint")
            result |= (byte & 0x7F) << shift
            if byte < 0x80:
                return result
        raise DecodeError("invalid varint")

    def take(self, count: int) -> bytes:
        if count > len(self._data) - self._pos:
            raise DecodeError("buffer underflow")
        chunk = self._data[self._pos : self._pos + count]
        self._pos += count
        return chunk

    def length_delimited(self) -> bytes:
        return self.take(self.varint())

    def key(self) -> tuple[int, int]:
        key = self.varint()
        if key > _MASK32:
            raise DecodeError(f"invalid key value: {key}")
        wire_type = key & 0x7
        if wire_type > _FIXED32:
            raise DecodeError(f"invalid wire type value: {wire_type}")
        tag = key >> 3
        if tag == 0:
            raise DecodeError("invalid tag value: 0")
        return tag, wire_type

    def skip(self, tag: int, wire_type: int) -> None:
        if wire_type == _VARINT:
            self.varint()
        elif wire_type == _FIXED64:
            self.take(8)
        elif wire_type == _LEN:
            self.length_delimited()
        elif wire_type == _FIXED32:
            self.take(4)
        elif wire_type == _START_GROUP:
            while True:
                inner_tag, inner_wire = self.key()
                if inner_wire == _END_GROUP:
                    if inner_tag != tag:
                        raise DecodeError("unexpected end group tag")
                    return
                self.skip(inner_tag, inner_wire)
        else:
            raise DecodeError("unexpected end group tag")


def _from_varint(kind: FieldKind, value: int) -> Any:
    if kind in (FieldKind.INT32, FieldKind.ENUM):
        value &= _MASK32
        return value - (1 << 32) if value >= 1 << 31 else value
    if kind is FieldKind.UINT32:
        return value & _MASK32
    if kind is FieldKind.INT64:
        return value - (1 << 64) if value >= 1 << 63 else value
    if kind is FieldKind.BOOL:
        return value != 0
    return value


def _from_bytes(kind: FieldKind, data: bytes) -> Any:
    if kind is FieldKind.STRING:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("invalid string value: data is not UTF-8 encoded") from exc
    return bytes(data)


def _expect_wire(actual: int, expected: int) -> None:
    if actual != expected:
        raise DecodeError(f"invalid wire type: {actual} (expected {expected})")


def _merge_field(message: Message, field: Field, wire_type: int, reader: _Reader) -> None:
    if field.kind.length_delimited:
        _expect_wire(wire_type, _LEN)
        value = _from_bytes(field.kind, reader.length_delimited())
        if field.repeated:
            getattr(message, field.name).append(value)
        else:
            setattr(message, field.name, value)
        return
    if field.repeated and wire_type == _LEN:
        packed = _Reader(reader.length_delimited())
        items = getattr(message, field.name)
        while not packed.at_end():
            items.append(_from_varint(field.kind, packed.varint()))
        return
    _expect_wire(wire_type, _VARINT)
    value = _from_varint(field.kind, reader.varint())
    if field.repeated:
        getattr(message, field.name).append(value)
    else:
        setattr(message, field.name, value)


M = TypeVar("M", bound="Message")


class Message:
    """Base for dataclass messages whose wire layout is listed in FIELDS.

    Every attribute must have a default so that an empty message can be built.
    """

    FIELDS: ClassVar[tuple[Field, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        tags = [field.tag for field in cls.FIELDS]
        if len(set(tags)) != len(tags):
            raise TypeError(f"{cls.__name__} declares a tag more than once")

    def encode(self) -> bytes:
        """Serialise the message to bytes."""
        out = bytearray()
        for field in self.FIELDS:
            _encode_field(field, getattr(self, field.name), out)
        return bytes(out)

    @classmethod
    def decode(cls: type[M], data: bytes) -> M:
        """Build a message from its serialised form."""
        message = cls()
        by_tag = {field.tag: field for field in cls.FIELDS}
        reader = _Reader(bytes(data))
        while not reader.at_end():
            tag, wire_type = reader.key()
            field = by_tag.get(tag)
            if field is None:
                reader.skip(tag, wire_type)
                continue
            try:
                _merge_field(message, field, wire_type, reader)
            except DecodeError as exc:
                exc.push(cls.__name__, field.name)
                raise
        return message

    def encoded_len(self) -> int:
        """Number of bytes the encoded message takes."""
        return len(self.encode())

    def clear(self) -> None:
        """Reset every attribute to its default."""
        if not dataclasses.is_dataclass(self):
            raise TypeError(f"{type(self).__name__} is not a dataclass")
        for attribute in dataclasses.fields(self):
            if attribute.default is not dataclasses.MISSING:
                setattr(self, attribute.name, attribute.default)
            elif attribute.default_factory is not dataclasses.MISSING:
                setattr(self, attribute.name, attribute.default_factory())


def encode(message: Message) -> bytes:
    """Serialise a message to bytes."""
    return message.encode()


def decode(message_type: type[M], data: bytes) -> M:
    """Decode bytes into an instance of message_type."""
    return message_type.decode(data)