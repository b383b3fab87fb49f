"""Fixed-size bit set used to track which operations have been linearized."""

from __future__ import annotations

_WORD_BITS = 64


class Bitset:
    """A set of bit positions stored in 64-bit words."""

    __slots__ = ("_words",)

    def __init__(self, bits: int) -> None:
        if bits < 0:
            raise ValueError(f"bit count must be non-negative, got {bits}")
        self._words = [0] * ((bits + _WORD_BITS - 1) // _WORD_BITS)

    def _locate(self, pos: int) -> tuple[int, int]:
        if pos < 0:
            raise IndexError(f"bit position {pos} is negative")
        major, minor = divmod(pos, _WORD_BITS)
        if major >= len(self._words):
            raise IndexError(f"bit position {pos} is out of range")
        return major, minor

    def clone(self) -> Bitset:
        """Return an independent copy of this bit set."""
        copy = Bitset(0)
        copy._words = list(self._words)
        return copy

    def set(self, pos: int) -> Bitset:
        """Set the bit at ``pos`` and return this bit set."""
        major, minor = self._locate(pos)
        self._words[major] |= 1 << minor
        return self

    def clear(self, pos: int) -> Bitset:
        """Clear the bit at ``pos`` and return this bit set."""
        major, minor = self._locate(pos)
        self._words[major] &= ~(1 << minor)
        return self

    def get(self, pos: int) -> bool:
        """Tell whether the bit at ``pos`` is set."""
        major, minor = self._locate(pos)
        return bool(self._words[major] & (1 << minor))

    def popcnt(self) -> int:
        """Number of bits that are set."""
        return sum(bin(word).count("1") for word in self._words)

    def hash_value(self) -> int:
        """Cheap hash mixing the population count with every word."""
        value = self.popcnt()
        for word in self._words:
            value ^= word
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._words == other._words

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        bits = [
            index * _WORD_BITS + offset
            for index, word in enumerate(self._words)
            for offset in range(_WORD_BITS)
            if word >> offset & 1
        ]
        return f"Bitset(words={len(self._words)}, set={bits})"