"""A key-value store model and a parser for its recorded histories."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass

from distlab.model import Event, EventKind, Model, Operation


class Op(enum.Enum):
    """Key-value operation."""

    GET = "get"
    PUT = "put"
    APPEND = "append"


@dataclass
class KvInput:
    """Arguments of a key-value operation."""

    op: Op
    key: str
    value: str = ""


@dataclass
class KvOutput:
    """Result of a key-value operation."""

    value: str = ""


class KvModel(Model):
    """Model of a key-value store, checked one key at a time."""

    def partition(self, history: list[Operation]) -> list[list[Operation]]:
        by_key: dict[str, list[Operation]] = {}
        for op in history:
            by_key.setdefault(op.input.key, []).append(op)
        return list(by_key.values())

    def partition_event(self, history: list[Event]) -> list[list[Event]]:
        by_key: dict[str, list[Event]] = {}
        key_of_call: dict[int, str] = {}
        for event in history:
            if event.kind is EventKind.CALL:
                key = event.value.key
                key_of_call[event.id] = key
            else:
                try:
                    key = key_of_call[event.id]
                except KeyError:
                    raise ValueError(f"return event {event.id} has no matching call") from None
            by_key.setdefault(key, []).append(event)
        return list(by_key.values())

    def init(self) -> str:
        # A single key's value; histories are partitioned by key.
        return ""

    def step(self, state: str, input: KvInput, output: KvOutput) -> tuple[bool, str]:
        if input.op is Op.GET:
            return output.value == state, state
        if input.op is Op.PUT:
            return True, input.value
        return True, state + input.value


_INVOKE_GET = re.compile(r'\{:process (\d+), :type :invoke, :f :get, :key "(.*)", :value nil\}')
_INVOKE_PUT = re.compile(r'\{:process (\d+), :type :invoke, :f :put, :key "(.*)", :value "(.*)"\}')
_INVOKE_APPEND = re.compile(
    r'\{:process (\d+), :type :invoke, :f :append, :key "(.*)", :value "(.*)"\}'
)
_RETURN_GET = re.compile(r'\{:process (\d+), :type :ok, :f :get, :key ".*", :value "(.*)"\}')
_RETURN_PUT = re.compile(r'\{:process (\d+), :type :ok, :f :put, :key ".*", :value ".*"\}')
_RETURN_APPEND = re.compile(r'\{:process (\d+), :type :ok, :f :append, :key ".*", :value ".*"\}')

_INVOCATIONS = ((_INVOKE_GET, Op.GET), (_INVOKE_PUT, Op.PUT), (_INVOKE_APPEND, Op.APPEND))


def parse_kv_log(lines: Iterable[str]) -> list[Event]:
    """Parse a key-value history log into call and return events.

    Calls still pending at the end of the log get an empty return event.
    """
    events: list[Event] = []
    pending: dict[int, int] = {}
    next_id = 0

    def finish(process: str, value: str) -> None:
        try:
            call_id = pending.pop(int(process))
        except KeyError:
            raise ValueError(f"return from process {process} without an invocation") from None
        events.append(Event(EventKind.RETURN, KvOutput(value), call_id))

    for raw in lines:
        line = raw.rstrip("\r\n")
        for pattern, op in _INVOCATIONS:
            found = pattern.search(line)
            if found:
                value = found.group(3) if op is not Op.GET else ""
                events.append(Event(EventKind.CALL, KvInput(op, found.group(2), value), next_id))
                pending[int(found.group(1))] = next_id
                next_id += 1
                break
        else:
            found = _RETURN_GET.search(line)
            if found:
                finish(found.group(1), found.group(2))
                continue
            found = _RETURN_PUT.search(line) or _RETURN_APPEND.search(line)
            if found:
                finish(found.group(1), "")
                continue
            raise ValueError(f"unrecognised log line: {line!r}")

    for call_id in pending.values():
        events.append(Event(EventKind.RETURN, KvOutput(""), call_id))
    return events