"""Histories and the model interface used by the linearizability checker."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

I = TypeVar("I")
O = TypeVar("O")


@dataclass
class Operation(Generic[I, O]):
    """A completed operation with its invocation and response times."""

    input: I
    call: int
    output: O
    finish: int


class EventKind(enum.Enum):
    """Whether an event marks an invocation or a response."""

    CALL = "call"
    RETURN = "return"


@dataclass
class Event:
    """An invocation or response; value is the input or output respectively."""

    kind: EventKind
    value: Any
    id: int


class Model(abc.ABC):
    """Sequential specification of a system whose histories are checked."""

    def partition(self, history: list[Operation]) -> list[list[Operation]]:
        """Split a history into parts that are linearizable independently."""
        return [history]

    def partition_event(self, history: list[Event]) -> list[list[Event]]:
        """Split an event history into parts that are linearizable independently."""
        return [history]

    @abc.abstractmethod
    def init(self) -> Any:
        """Initial state of the system."""

    @abc.abstractmethod
    def step(self, state: Any, input: Any, output: Any) -> tuple[bool, Any]:
        """Whether the step is allowed from state, and the state after it.

        Must not mutate state.
        """

    def equal(self, state1: Any, state2: Any) -> bool:
        """Equality on states."""
        return state1 == state2