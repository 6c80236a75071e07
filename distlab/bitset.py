"""Fixed-size bit sets used to track which operations have been linearized."""

from __future__ import annotations

_WORD_BITS = 64
_MASK64 = (1 << 64) - 1


def _index(pos: int) -> tuple[int, int]:
    if pos < 0:
        raise IndexError(f"bit position {pos} is negative")
    return divmod(pos, _WORD_BITS)


class Bitset:
    """A set of bit positions stored in 64-bit words."""

    __slots__ = ("_words",)

    def __init__(self, bits: int) -> None:
        if bits < 0:
            raise ValueError(f"bit count {bits} is negative")
        self._words = [0] * (-(-bits // _WORD_BITS))

    def set(self, pos: int) -> None:
        """Turn the bit at pos on."""
        major, minor = _index(pos)
        self._words[major] |= 1 << minor

    def clear(self, pos: int) -> None:
        """Turn the bit at pos off."""
        major, minor = _index(pos)
        self._words[major] &= ~(1 << minor) & _MASK64

    def popcount(self) -> int:
        """Number of bits that are on."""
        return sum(bin(word).count("1") for word in self._words)

    def copy(self) -> Bitset:
        """An independent copy of this set."""
        duplicate = Bitset(0)
        duplicate._words = list(self._words)
        return duplicate

    def __hash__(self) -> int:
        value = self.popcount()
        for word in self._words:
            value ^= word
        return value & _MASK64

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._words == other._words

    def __repr__(self) -> str:
        positions = [
            major * _WORD_BITS + minor
            for major, word in enumerate(self._words)
            for minor in range(_WORD_BITS)
            if word >> minor & 1
        ]
        return f"Bitset(words={len(self._words)}, set={positions})"