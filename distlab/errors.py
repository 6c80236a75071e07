"""Errors raised by the simulated RPC layer."""

from __future__ import annotations

from typing import Any

from distlab.codec import DecodeError, EncodeError


class RpcError(Exception):
    """Base of every failure an RPC can end with.

    Two errors are equal when they are of the same class and carry the same
    details, so results can be compared directly.
    """

    def _key(self) -> tuple[Any, ...]:
        return self.args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RpcError):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash((type(self), self._key()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(repr(arg) for arg in self.args)})"

    def __str__(self) -> str:
        return repr(self)


class Unimplemented(RpcError):
    """The service or method named by a call does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class _WrappedCodecError(RpcError):
    def __init__(self, error: Exception) -> None:
        super().__init__(error)
        self.error = error
        self.__cause__ = error

    def _key(self) -> tuple[Any, ...]:
        return (type(self.error), str(self.error))


class EncodeFailed(_WrappedCodecError):
    """A request or reply could not be encoded."""

    def __init__(self, error: EncodeError) -> None:
        super().__init__(error)


class DecodeFailed(_WrappedCodecError):
    """A request or reply could not be decoded."""

    def __init__(self, error: DecodeError) -> None:
        super().__init__(error)


class ReceiveFailed(RpcError):
    """The reply channel was dropped before a reply was sent."""

    def __init__(self) -> None:
        super().__init__()


class RpcTimeout(RpcError):
    """No reply arrived, as if the call had timed out."""

    def __init__(self) -> None:
        super().__init__()


class Stopped(RpcError):
    """The network or the server handling the call has stopped."""

    def __init__(self) -> None:
        super().__init__()


class OtherError(RpcError):
    """Any other failure, described by a message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message