"""A simple example message with an enumerated type."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar

from distlab.codec import Field, FieldKind, Message


class MsgType(enum.IntEnum):
    """Kind of operation a Msg carries."""

    UNKNOWN = 0
    PUT = 1
    GET = 2
    DEL = 3

    @classmethod
    def from_int(cls, value: int) -> MsgType | None:
        """Return the member for value, or None if there is none."""
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def is_valid(cls, value: int) -> bool:
        """Whether value names a member."""
        return cls.from_int(value) is not None


@dataclass
class Msg(Message):
    """A simple protobuf message."""

    FIELDS: ClassVar[tuple[Field, ...]] = (
        Field("type", 1, FieldKind.ENUM),
        Field("id", 2, FieldKind.UINT64),
        Field("name", 3, FieldKind.STRING),
        Field("payload", 4, FieldKind.BYTES, repeated=True),
    )

    type: int = MsgType.UNKNOWN
    id: int = 0
    name: str = ""
    payload: list[bytes] = field(default_factory=list)

    def message_type(self) -> MsgType:
        """The type as a MsgType, UNKNOWN if the stored value is not valid."""
        member = MsgType.from_int(self.type)
        return MsgType.UNKNOWN if member is None else member