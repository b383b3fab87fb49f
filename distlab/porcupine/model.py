"""Histories, models and results for the linearizability checker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional


@dataclass
class Operation:
    """A completed operation with its invocation and response times."""

    input: Any
    call_time: int
    output: Any
    return_time: int
    client_id: int = 0


class EventKind(Enum):
    CALL = False
    RETURN = True


@dataclass
class Event:
    """A call or return event; matching events share an id."""

    kind: EventKind
    value: Any
    id: int
    client_id: int = 0


@dataclass
class Model:
    """A sequential specification of the system being checked.

    ``step(state, input, output)`` returns ``(ok, new_state)`` and must not
    mutate ``state``. The optional callables fall back to defaults.
    """

    init: Callable[[], Any]
    step: Callable[[Any, Any, Any], tuple[bool, Any]]
    partition: Optional[Callable[[list[Operation]], list[list[Operation]]]] = None
    partition_event: Optional[Callable[[list[Event]], list[list[Event]]]] = None
    equal: Optional[Callable[[Any, Any], bool]] = None
    describe_operation: Optional[Callable[[Any, Any], str]] = None
    describe_state: Optional[Callable[[Any], str]] = None


class CheckResult(str, Enum):
    UNKNOWN = "Unknown"  # timed out
    OK = "Ok"
    ILLEGAL = "Illegal"


def no_partition(history: list[Operation]) -> list[list[Operation]]:
    """Treat the whole history as a single partition."""
    return [history]


def no_partition_event(history: list[Event]) -> list[list[Event]]:
    """Treat the whole event history as a single partition."""
    return [history]


def shallow_equal(state1: Any, state2: Any) -> bool:
    return state1 == state2


def default_describe_operation(input: Any, output: Any) -> str:
    return f"{input} -> {output}"


def default_describe_state(state: Any) -> str:
    return f"{state}"