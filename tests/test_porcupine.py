import time
from dataclasses import dataclass

from distlab.porcupine.model import CheckResult, Event, EventKind, Model, Operation
from distlab.porcupine.porcupine import (
    check_events,
    check_events_timeout,
    check_events_verbose,
    check_operations,
    check_operations_timeout,
    check_operations_verbose,
)


@dataclass(frozen=True)
class RegisterInput:
    is_read: bool
    value: int = 0


def _step(state, inp, out):
    if inp.is_read:
        return out == state, state
    return True, inp.value


REGISTER = Model(init=lambda: 0, step=_step)


def _ops(read_value):
    return [
        Operation(RegisterInput(False, 100), 0, 0, 100, client_id=0),
        Operation(RegisterInput(True), 25, 100, 75, client_id=1),
        Operation(RegisterInput(True), 30, read_value, 60, client_id=2),
    ]


def _events(read_value):
    return [
        Event(EventKind.CALL, RegisterInput(False, 100), 0, 0),
        Event(EventKind.CALL, RegisterInput(True), 1, 1),
        Event(EventKind.CALL, RegisterInput(True), 2, 2),
        Event(EventKind.RETURN, read_value, 2, 2),
        Event(EventKind.RETURN, 100, 1, 1),
        Event(EventKind.RETURN, 0, 0, 0),
    ]


def test_register_operations_linearizable():
    assert check_operations(REGISTER, _ops(0)) is True


def test_register_operations_not_linearizable():
    assert check_operations(REGISTER, _ops(200)) is False


def test_register_events_linearizable():
    assert check_events(REGISTER, _events(0)) is True


def test_register_events_not_linearizable():
    assert check_events(REGISTER, _events(200)) is False


def test_timeout_variants():
    assert check_operations_timeout(REGISTER, _ops(0), 5) is CheckResult.OK
    assert check_operations_timeout(REGISTER, _ops(200), 5) is CheckResult.ILLEGAL
    assert check_events_timeout(REGISTER, _events(0), 0) is CheckResult.OK
    assert check_events_timeout(REGISTER, _events(200), 0) is CheckResult.ILLEGAL


def test_verbose_gives_full_linearization():
    result, info = check_operations_verbose(REGISTER, _ops(0), 0)
    assert result is CheckResult.OK
    (partials,) = info.partial_linearizations
    assert len(partials) == 1
    order = partials[0]
    assert sorted(order) == [0, 1, 2]
    # the read of 0 precedes the write, which precedes the read of 100
    assert order.index(2) < order.index(0) < order.index(1)


def test_verbose_events_illegal_has_partials():
    result, info = check_events_verbose(REGISTER, _events(200), 0)
    assert result is CheckResult.ILLEGAL
    assert all(len(p) < 3 for p in info.partial_linearizations[0])
    assert len(info.history[0]) == 6


def test_empty_history_is_linearizable():
    assert check_operations(REGISTER, []) is True
    assert check_events(REGISTER, []) is True


def test_slow_model_times_out_as_unknown():
    def slow_step(state, inp, out):
        time.sleep(0.05)
        return _step(state, inp, out)

    model = Model(init=lambda: 0, step=slow_step)
    assert check_operations_timeout(model, _ops(0), 0.01) is CheckResult.UNKNOWN


@dataclass(frozen=True)
class KeyedInput:
    key: str
    is_read: bool
    value: int = 0


def _keyed_partition(history):
    groups = {}
    for op in history:
        groups.setdefault(op.input.key, []).append(op)
    return [groups[k] for k in sorted(groups)]


def _keyed_step(state, inp, out):
    if inp.is_read:
        return out == state, state
    return True, inp.value


KEYED = Model(init=lambda: 0, step=_keyed_step, partition=_keyed_partition)


def test_partitioned_history():
    ok_history = [
        Operation(KeyedInput("a", False, 1), 0, None, 10),
        Operation(KeyedInput("b", False, 2), 0, None, 10),
        Operation(KeyedInput("a", True), 20, 1, 30),
        Operation(KeyedInput("b", True), 20, 2, 30),
    ]
    assert check_operations(KEYED, ok_history) is True
    bad_history = ok_history[:3] + [Operation(KeyedInput("b", True), 20, 1, 30)]
    assert check_operations(KEYED, bad_history) is False
    result, info = check_operations_verbose(KEYED, bad_history, 0)
    assert result is CheckResult.ILLEGAL
    assert len(info.partial_linearizations) == 2