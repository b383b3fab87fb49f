"""Sequential specification of a key/value store for linearizability checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from distlab.porcupine.model import Model, Operation

OP_GET = 0
OP_PUT = 1
OP_APPEND = 2


@dataclass
class KvInput:
    """A client request: ``op`` is 0 for get, 1 for put, 2 for append."""

    op: int
    key: str
    value: str = ""


@dataclass
class KvOutput:
    """The value a request returned; only meaningful for gets."""

    value: str = ""


def partition(history: list[Operation]) -> list[list[Operation]]:
    """Split a history by key, in key order; each key is checked on its own."""
    by_key: dict[str, list[Operation]] = {}
    for operation in history:
        by_key.setdefault(operation.input.key, []).append(operation)
    return [by_key[key] for key in sorted(by_key)]


def init() -> str:
    """Initial state of a single key: the empty string."""
    return ""


def step(state: str, input: KvInput, output: KvOutput) -> tuple[bool, str]:
    """Apply one request to the value of a single key."""
    if input.op == OP_GET:
        return output.value == state, state
    if input.op == OP_PUT:
        return True, input.value
    return True, state + input.value


def describe_operation(input: KvInput, output: Any) -> str:
    """Render a request and its result for display."""
    if input.op == OP_GET:
        return f"get('{input.key}') -> '{output.value}'"
    if input.op == OP_PUT:
        return f"put('{input.key}', '{input.value}')"
    if input.op == OP_APPEND:
        return f"append('{input.key}', '{input.value}')"
    return "<invalid>"


KV_MODEL = Model(
    init=init,
    step=step,
    partition=partition,
    describe_operation=describe_operation,
)