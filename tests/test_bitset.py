import pytest

from distlab.porcupine.bitset import Bitset


def test_new_bitset_is_empty():
    b = Bitset(100)
    assert b.popcnt() == 0
    assert not any(b.get(i) for i in range(100))


def test_set_and_get():
    b = Bitset(130)
    b.set(0).set(63).set(64).set(129)
    assert b.get(0) and b.get(63) and b.get(64) and b.get(129)
    assert not b.get(1)
    assert not b.get(128)
    assert b.popcnt() == 4


def test_set_returns_same_object():
    b = Bitset(10)
    assert b.set(3) is b
    assert b.clear(3) is b


def test_clear():
    b = Bitset(70)
    b.set(5).set(66)
    b.clear(5)
    assert not b.get(5)
    assert b.get(66)
    assert b.popcnt() == 1


def test_clear_unset_bit_is_noop():
    b = Bitset(10)
    b.set(2)
    before = b.clone()
    b.clear(7)
    assert b == before


def test_clone_is_independent():
    b = Bitset(20)
    b.set(4)
    c = b.clone()
    c.set(9)
    assert not b.get(9)
    assert c.get(4) and c.get(9)
    assert b != c


def test_equality_depends_on_size():
    assert Bitset(64) != Bitset(65)
    assert Bitset(10) == Bitset(64)


def test_equal_bitsets_have_equal_hash():
    a = Bitset(200).set(1).set(150)
    b = Bitset(200).set(150).set(1)
    assert a == b
    assert a.hash_value() == b.hash_value()


def test_empty_hash_is_zero():
    assert Bitset(10).hash_value() == 0


def test_set_then_clear_restores_hash():
    b = Bitset(128).set(3)
    h = b.hash_value()
    b.set(100).clear(100)
    assert b.hash_value() == h


def test_out_of_range():
    b = Bitset(64)
    with pytest.raises(IndexError):
        b.set(64)
    with pytest.raises(IndexError):
        b.get(-1)


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        Bitset(-1)


def test_not_hashable():
    with pytest.raises(TypeError):
        hash(Bitset(4))