"""
Alea PRNG, the deterministic random source used for river naming.

Based on Johannes Baagøe's Alea algorithm, the generator FMG uses, so a
seed string always yields the same sequence on every platform.
"""

from typing import List, Sequence, TypeVar

T = TypeVar("T")

_TWO_POW_32 = 0x100000000
_TWO_POW_MINUS_32 = 2.3283064365386963e-10


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class _Mash:
    """Alea's string hashing function; keeps its state between calls."""

    def __init__(self):
        self.n = 0xEFC8249D

    def __call__(self, data) -> float:
        for char in str(data):
            self.n += ord(char)
            h = 0.02519603282416938 * self.n
            self.n = _uint32(h)
            h -= self.n
            h *= self.n
            self.n = _uint32(h)
            h -= self.n
            self.n += h * _TWO_POW_32
        return _uint32(self.n) * _TWO_POW_MINUS_32


class AleaPRNG:
    """
    Seeded Alea generator.

    Accepts a single seed (string or number) or a sequence of seed parts.
    ``fork`` derives an independent stream from the same seed plus a
    label, so separate consumers never disturb each other's sequence.
    """

    def __init__(self, seed="default"):
        if isinstance(seed, (list, tuple)):
            self.seed_parts: List = list(seed)
        else:
            self.seed_parts = [seed]

        mash = _Mash()
        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for part in self.seed_parts:
            self.s0 -= mash(part)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(part)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(part)
            if self.s2 < 0:
                self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        t = 2091639 * self.s0 + self.c * _TWO_POW_MINUS_32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def randint(self, low: int, high: int) -> int:
        """Random integer in [low, high] inclusive."""
        if high < low:
            raise ValueError(f"Empty range [{low}, {high}]")
        return low + int(self.random() * (high - low + 1))

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def fork(self, label: str) -> "AleaPRNG":
        """Independent generator seeded with this seed plus ``label``."""
        return AleaPRNG([*self.seed_parts, label])
