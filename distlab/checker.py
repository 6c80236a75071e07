"""Linearizability checking of operation and event histories against a model."""

from __future__ import annotations

import enum
import queue
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from distlab.bitset import Bitset
from distlab.model import Event, EventKind, Model, Operation


class _EntryKind(enum.Enum):
    CALL = "call"
    RETURN = "return"


@dataclass
class _Entry:
    kind: _EntryKind
    value: Any
    id: int
    time: int


@dataclass(eq=False)
class _Node:
    value: Any
    id: int
    matched: _Node | None = None
    next: _Node | None = None
    prev: _Node | None = None


def _make_entries(history: Iterable[Operation]) -> list[_Entry]:
    entries: list[_Entry] = []
    for op_id, op in enumerate(history):
        entries.append(_Entry(_EntryKind.CALL, op.input, op_id, op.call))
        entries.append(_Entry(_EntryKind.RETURN, op.output, op_id, op.finish))
    entries.sort(key=lambda entry: entry.time)
    return entries


def _renumber(events: Iterable[Event]) -> list[Event]:
    numbering: dict[int, int] = {}
    renumbered = []
    for event in events:
        new_id = numbering.setdefault(event.id, len(numbering))
        renumbered.append(Event(event.kind, event.value, new_id))
    return renumbered


def _convert_events(events: Iterable[Event]) -> list[_Entry]:
    return [
        _Entry(
            _EntryKind.CALL if event.kind is EventKind.CALL else _EntryKind.RETURN,
            event.value,
            event.id,
            -1,
        )
        for event in events
    ]


def _link(entries: list[_Entry]) -> tuple[_Node, int]:
    """Build a doubly linked list behind a sentinel head; return it and its length."""
    returns: dict[int, _Node] = {}
    nodes: list[_Node] = []
    for entry in reversed(entries):
        if entry.kind is _EntryKind.CALL:
            node = _Node(entry.value, entry.id, matched=returns.get(entry.id))
        else:
            node = _Node(entry.value, entry.id)
            returns[entry.id] = node
        nodes.append(node)
    nodes.reverse()

    head = _Node(None, -1)
    previous = head
    for node in nodes:
        previous.next = node
        node.prev = previous
        previous = node
    return head, len(nodes)


def _lift(entry: _Node) -> None:
    entry.prev.next = entry.next
    entry.next.prev = entry.prev
    matched = entry.matched
    matched.prev.next = matched.next
    if matched.next is not None:
        matched.next.prev = matched.prev


def _unlift(entry: _Node) -> None:
    matched = entry.matched
    matched.prev.next = matched
    if matched.next is not None:
        matched.next.prev = matched
    entry.prev.next = entry
    entry.next.prev = entry


def _check_single(model: Model, entries: list[_Entry], kill: threading.Event) -> bool:
    head, length = _link(entries)
    linearized = Bitset(length // 2)
    cache: dict[Bitset, list[Any]] = {}
    calls: list[tuple[_Node, Any]] = []
    state = model.init()

    entry = head.next
    while head.next is not None:
        if kill.is_set():
            return False
        if entry.matched is not None:
            ok, new_state = model.step(state, entry.value, entry.matched.value)
            if ok:
                new_linearized = linearized.copy()
                new_linearized.set(entry.id)
                seen = cache.get(new_linearized, [])
                if not any(model.equal(new_state, other) for other in seen):
                    cache.setdefault(new_linearized, []).append(new_state)
                    calls.append((entry, state))
                    state = new_state
                    linearized.set(entry.id)
                    _lift(entry)
                    entry = head.next
                else:
                    entry = entry.next
            else:
                entry = entry.next
        else:
            if not calls:
                return False
            entry, state = calls.pop()
            linearized.clear(entry.id)
            _unlift(entry)
            entry = entry.next
    return True


def _seconds(timeout: float | timedelta) -> float | None:
    seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
    if seconds < 0:
        raise ValueError(f"timeout {seconds} is negative")
    return seconds or None


def _run(model: Model, partitions: list[list[_Entry]], timeout: float | timedelta) -> bool:
    wait = _seconds(timeout)
    results: queue.Queue[tuple[bool, BaseException | None]] = queue.Queue()
    kill = threading.Event()

    def work(entries: list[_Entry]) -> None:
        try:
            results.put((_check_single(model, entries, kill), None))
        except BaseException as exc:  # re-raised by the waiting thread
            results.put((False, exc))

    threads = [threading.Thread(target=work, args=(part,), daemon=True) for part in partitions]
    for thread in threads:
        thread.start()

    ok = True
    failure: BaseException | None = None
    try:
        for _ in threads:
            try:
                result, error = results.get(timeout=wait)
            except queue.Empty:
                break
            if error is not None:
                failure = error
                ok = False
                break
            if not result:
                ok = False
                break
    finally:
        kill.set()
        for thread in threads:
            thread.join()
    if failure is not None:
        raise failure
    return ok


def check_operations(
    model: Model, history: list[Operation], timeout: float | timedelta = 0.0
) -> bool:
    """Whether a history of timed operations is linearizable under model.

    A timeout of zero waits for the answer; when it runs out, the
    partitions not yet decided count as linearizable.
    """
    partitions = [_make_entries(part) for part in model.partition(list(history))]
    return _run(model, partitions, timeout)


def check_events(model: Model, history: list[Event], timeout: float | timedelta = 0.0) -> bool:
    """Whether an ordered history of call and return events is linearizable under model.

    A timeout of zero waits for the answer; when it runs out, the
    partitions not yet decided count as linearizable.
    """
    partitions = [
        _convert_events(_renumber(part)) for part in model.partition_event(list(history))
    ]
    return _run(model, partitions, timeout)