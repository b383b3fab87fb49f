"""Linearizability checking of operation and event histories."""

from __future__ import annotations

import dataclasses
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from .bitset import Bitset
from .model import (
    CheckResult,
    Event,
    EventKind,
    Model,
    Operation,
    default_describe_operation,
    default_describe_state,
    no_partition,
    no_partition_event,
    shallow_equal,
)


@dataclass
class _Entry:
    kind: EventKind
    value: Any
    id: int
    time: int
    client_id: int


@dataclass
class LinearizationInfo:
    """Per-partition entries and the longest partial linearizations found."""

    history: list[list[_Entry]] = field(default_factory=list)
    partial_linearizations: list[list[list[int]]] = field(default_factory=list)


class _Node:
    """Doubly linked list node; a call node points at its return node."""

    __slots__ = ("value", "match", "id", "next", "prev")

    def __init__(self, value: Any, match: Optional[_Node], id: int) -> None:
        self.value = value
        self.match = match
        self.id = id
        self.next: Optional[_Node] = None
        self.prev: Optional[_Node] = None


def make_entries(history: list[Operation]) -> list[_Entry]:
    """Split operations into call and return entries ordered by time."""
    entries = []
    for op_id, op in enumerate(history):
        entries.append(_Entry(EventKind.CALL, op.input, op_id, op.call_time, op.client_id))
        entries.append(_Entry(EventKind.RETURN, op.output, op_id, op.return_time, op.client_id))
    entries.sort(key=lambda entry: entry.time)
    return entries


def renumber(events: list[Event]) -> list[Event]:
    """Renumber event ids densely from zero in order of first appearance."""
    mapping: dict[int, int] = {}
    result = []
    for event in events:
        new_id = mapping.setdefault(event.id, len(mapping))
        result.append(Event(event.kind, event.value, new_id, event.client_id))
    return result


def convert_entries(events: list[Event]) -> list[_Entry]:
    """Turn events into entries, using each event's position as its time."""
    return [
        _Entry(event.kind, event.value, event.id, index, event.client_id)
        for index, event in enumerate(events)
    ]


def _insert_before(node: _Node, mark: Optional[_Node]) -> _Node:
    if mark is not None:
        before = mark.prev
        mark.prev = node
        node.next = mark
        if before is not None:
            node.prev = before
            before.next = node
    return node


def _length(node: Optional[_Node]) -> int:
    count = 0
    while node is not None:
        node = node.next
        count += 1
    return count


def _make_linked_entries(entries: list[_Entry]) -> Optional[_Node]:
    root: Optional[_Node] = None
    returns: dict[int, _Node] = {}
    for elem in reversed(entries):
        if elem.kind is EventKind.RETURN:
            node = _Node(elem.value, None, elem.id)
            returns[elem.id] = node
        else:
            node = _Node(elem.value, returns.get(elem.id), elem.id)
        _insert_before(node, root)
        root = node
    return root


def _lift(node: _Node) -> None:
    node.prev.next = node.next
    node.next.prev = node.prev
    match = node.match
    match.prev.next = match.next
    if match.next is not None:
        match.next.prev = match.prev


def _unlift(node: _Node) -> None:
    match = node.match
    match.prev.next = match
    if match.next is not None:
        match.next.prev = match
    node.prev.next = node
    node.next.prev = node


def _cache_contains(model: Model, cache: dict, linearized: Bitset, state: Any) -> bool:
    return any(
        linearized == seen and model.equal(state, seen_state)
        for seen, seen_state in cache.get(linearized.hash_value(), ())
    )


def _check_single(
    model: Model, history: list[_Entry], compute_partial: bool, kill: threading.Event
) -> tuple[bool, list[Optional[list[int]]]]:
    entry = _make_linked_entries(history)
    n = _length(entry) // 2
    linearized = Bitset(n)
    cache: dict[int, list[tuple[Bitset, Any]]] = {}
    calls: list[tuple[_Node, Any]] = []
    longest: list[Optional[list[int]]] = [None] * n

    state = model.init()
    head = _insert_before(_Node(None, None, -1), entry)
    while head.next is not None:
        if kill.is_set():
            return False, longest
        if entry.match is not None:
            ok, new_state = model.step(state, entry.value, entry.match.value)
            if ok:
                new_linearized = linearized.clone().set(entry.id)
                if not _cache_contains(model, cache, new_linearized, new_state):
                    cache.setdefault(new_linearized.hash_value(), []).append(
                        (new_linearized, new_state)
                    )
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
                return False, longest
            if compute_partial:
                seq: Optional[list[int]] = None
                for node, _ in calls:
                    current = longest[node.id]
                    if current is None or len(calls) > len(current):
                        if seq is None:
                            seq = [call_node.id for call_node, _ in calls]
                        longest[node.id] = seq
            entry, state = calls.pop()
            linearized.clear(entry.id)
            _unlift(entry)
            entry = entry.next

    seq = [node.id for node, _ in calls]
    return True, [seq] * n


def fill_default(model: Model) -> Model:
    """Return a copy of ``model`` with every missing callable defaulted."""
    return dataclasses.replace(
        model,
        partition=model.partition or no_partition,
        partition_event=model.partition_event or no_partition_event,
        equal=model.equal or shallow_equal,
        describe_operation=model.describe_operation or default_describe_operation,
        describe_state=model.describe_state or default_describe_state,
    )


def _check_parallel(
    model: Model, history: list[list[_Entry]], compute_info: bool, timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    results: queue.Queue = queue.Queue()
    longest: list[list[Optional[list[int]]]] = [[] for _ in history]
    kill = threading.Event()

    def work(index: int, subhistory: list[_Entry]) -> None:
        try:
            ok, partial = _check_single(model, subhistory, compute_info, kill)
        except BaseException as exc:  # handed to the waiting caller
            results.put(exc)
            return
        longest[index] = partial
        results.put(ok)

    for index, subhistory in enumerate(history):
        threading.Thread(target=work, args=(index, subhistory), daemon=True).start()

    deadline = time.monotonic() + timeout if timeout and timeout > 0 else None
    ok = True
    timed_out = False
    count = 0

    def receive(wait: Optional[float]) -> bool:
        result = results.get(timeout=wait)
        if isinstance(result, BaseException):
            kill.set()
            raise result
        return result

    while count < len(history):
        wait = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            result = receive(wait)
        except queue.Empty:
            timed_out = True
            kill.set()
            break
        count += 1
        ok = ok and result
        if not ok and not compute_info:
            kill.set()
            break

    info = LinearizationInfo()
    if compute_info:
        while count < len(history):
            receive(None)
            count += 1
        partial_linearizations = []
        for partials in longest:
            unique: dict[int, list[int]] = {}
            for seq in partials:
                if seq is not None:
                    unique.setdefault(id(seq), seq)
            partial_linearizations.append([list(seq) for seq in unique.values()])
        info = LinearizationInfo(history, partial_linearizations)

    if not ok:
        return CheckResult.ILLEGAL, info
    return (CheckResult.UNKNOWN if timed_out else CheckResult.OK), info


def check_events_info(
    model: Model, history: list[Event], verbose: bool, timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    """Check an event history; ``timeout`` in seconds, 0 or None for none."""
    model = fill_default(model)
    partitions = model.partition_event(history)
    entries = [convert_entries(renumber(part)) for part in partitions]
    return _check_parallel(model, entries, verbose, timeout)


def check_operations_info(
    model: Model, history: list[Operation], verbose: bool, timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    """Check an operation history; ``timeout`` in seconds, 0 or None for none."""
    model = fill_default(model)
    partitions = model.partition(history)
    entries = [make_entries(part) for part in partitions]
    return _check_parallel(model, entries, verbose, timeout)