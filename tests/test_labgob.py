import io
from dataclasses import dataclass, field
from typing import Any

import pytest

from distlab.labgob import (
    LabDecoder,
    LabEncoder,
    error_count,
    register,
    register_name,
)


@dataclass
class T1:
    t1int0: int = 0
    t1int1: int = 0
    t1string0: str = ""
    t1string1: str = ""


@dataclass
class T2:
    t2slice: list = field(default_factory=list)
    t2map: dict = field(default_factory=dict)
    t2t3: Any = None


@dataclass
class T3:
    t3int999: int = 0


@dataclass(frozen=True)
class T4:
    yes: int
    _no: int = 0


def test_gob():
    e0 = error_count()
    register(T3())

    w = io.BytesIO()
    t1 = T1(t1int1=1, t1string1="6.824")
    t2 = T2(t2slice=[T1(), t1], t2map={99: T1(1, 2, "x", "y")}, t2t3=T3(999))
    e = LabEncoder(w)
    e.encode(0)
    e.encode(1)
    e.encode(t1)
    e.encode(t2)

    d = LabDecoder(io.BytesIO(w.getvalue()))
    x0 = d.decode()
    x1 = d.decode()
    r1 = d.decode()
    r2 = d.decode()

    assert x0 == 0
    assert x1 == 1
    assert r1.t1int0 == 0
    assert r1.t1int1 == 1
    assert r1.t1string0 == ""
    assert r1.t1string1 == "6.824"
    assert len(r2.t2slice) == 2
    assert r2.t2slice[1].t1int1 == 1
    assert len(r2.t2map) == 1
    assert r2.t2map[99].t1string1 == "y"
    assert isinstance(r2.t2t3, T3)
    assert r2.t2t3.t3int999 == 999
    assert error_count() == e0


def test_capital():
    e0 = error_count()
    w = io.BytesIO()
    LabEncoder(w).encode([{T4(1, 5): 7}])
    decoded = LabDecoder(io.BytesIO(w.getvalue())).decode()
    assert error_count() == e0 + 1
    (key, value), = decoded[0].items()
    assert key.yes == 1
    assert key._no == 0
    assert value == 7


def test_default():
    e0 = error_count()

    @dataclass
    class DD:
        x: int = 0

    w = io.BytesIO()
    LabEncoder(w).encode(DD())
    reply = DD(99)
    LabDecoder(io.BytesIO(w.getvalue())).decode_into(reply)
    assert error_count() == e0 + 1
    assert reply.x == 0


def test_decode_into_default_target_does_not_warn():
    e0 = error_count()
    w = io.BytesIO()
    LabEncoder(w).encode(T1(t1int1=5, t1string1="s"))
    target = T1()
    LabDecoder(io.BytesIO(w.getvalue())).decode_into(target)
    assert target == T1(t1int1=5, t1string1="s")
    assert error_count() == e0


def test_round_trip_of_containers():
    value = {"a": (1, 2.5, None), "b": [b"\x00\xff", {3, 4}], "c": True}
    w = io.BytesIO()
    LabEncoder(w).encode(value)
    assert LabDecoder(io.BytesIO(w.getvalue())).decode() == value


def test_decoded_values_are_copies():
    original = T2(t2slice=[T1(t1int0=1)])
    w = io.BytesIO()
    LabEncoder(w).encode(original)
    copy = LabDecoder(io.BytesIO(w.getvalue())).decode()
    copy.t2slice[0].t1int0 = 42
    assert original.t2slice[0].t1int0 == 1


def test_decode_at_end_raises_eof():
    with pytest.raises(EOFError):
        LabDecoder(io.BytesIO(b"")).decode()


def test_decode_unknown_type_raises():
    stream = io.BytesIO(b'{"o":"no.such.Type","f":{}}\n')
    with pytest.raises(ValueError):
        LabDecoder(stream).decode()


def test_encode_unsupported_value_raises():
    with pytest.raises(TypeError):
        LabEncoder(io.BytesIO()).encode(object())


def test_decode_into_wrong_type_raises():
    w = io.BytesIO()
    LabEncoder(w).encode(T3(1))
    with pytest.raises(TypeError):
        LabDecoder(io.BytesIO(w.getvalue())).decode_into(T1())


def test_register_name_conflicts():
    @dataclass
    class A:
        v: int = 0

    @dataclass
    class B:
        v: int = 0

    register_name("labgob-test-shared", A)
    with pytest.raises(ValueError):
        register_name("labgob-test-shared", B)
    with pytest.raises(ValueError):
        register_name("labgob-test-other", A)


def test_register_name_is_used_on_the_wire():
    @dataclass
    class Named:
        v: int = 0

    register_name("labgob-test-named", Named)
    w = io.BytesIO()
    LabEncoder(w).encode(Named(3))
    assert b"labgob-test-named" in w.getvalue()
    assert LabDecoder(io.BytesIO(w.getvalue())).decode() == Named(3)


def test_register_rejects_plain_values():
    with pytest.raises(TypeError):
        register(5)