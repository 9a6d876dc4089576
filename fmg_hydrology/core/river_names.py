"""River name generator.

Builds a syllable Markov chain from real-world river names and strings
new stems together from it. Bigger rivers get a prefix ("Great Tamar"),
smaller ones a suffix ("Tamarbrook").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .alea_prng import AleaPRNG

RIVER_STEMS = [
    "alder", "amur", "avon", "danube", "derwent", "douro", "elbe", "garonne",
    "indus", "irtysh", "kama", "lena", "loire", "medway", "mekong", "meuse",
    "moselle", "neva", "niger", "oder", "orinoco", "parana", "rhine", "rhone",
    "sava", "seine", "severn", "shannon", "tagus", "tamar", "tigris", "tweed",
    "volga", "yukon", "zambezi",
]

MAJOR_PREFIXES = ["Great", "Little", "North", "South", "East", "West"]
MINOR_SUFFIXES = ["water", "stream", "flow", "rush", "brook"]

VOWELS = set("aeiouy")


@dataclass
class MarkovChain:
    """Syllable transitions; ``""`` is both the start and the end token."""

    data: Dict[str, List[str]]

    @classmethod
    def from_names(cls, names: List[str]) -> MarkovChain:
        chain: Dict[str, List[str]] = {}
        for name in names:
            syllables = cls.split_syllables(name.lower())
            if not syllables:
                continue

            prev = ""
            for syllable in syllables:
                chain.setdefault(prev, []).append(syllable)
                prev = syllable
            chain.setdefault(prev, []).append("")
        return cls(data=chain)

    @staticmethod
    def split_syllables(name: str) -> List[str]:
        """Split after each vowel group, keeping one trailing consonant when two follow.

        Leftover consonants at the end are glued to the last syllable.
        """
        syllables = []
        current = ""
        i = 0
        while i < len(name):
            current += name[i]
            if name[i] in VOWELS and (i + 1 >= len(name) or name[i + 1] not in VOWELS):
                rest = name[i + 1:]
                if len(rest) >= 2 and rest[0] not in VOWELS and rest[1] not in VOWELS:
                    current += rest[0]
                    i += 1
                syllables.append(current)
                current = ""
            i += 1

        if current:
            if syllables:
                syllables[-1] += current
            else:
                syllables.append(current)
        return syllables


class RiverNameGenerator:
    """Generates unique, deterministic river names from an Alea stream."""

    def __init__(self, prng: Optional[AleaPRNG] = None, stems: Optional[List[str]] = None):
        self.prng = prng or AleaPRNG(seed="rivers")
        self.chain = MarkovChain.from_names(stems or RIVER_STEMS)
        self.used: Set[str] = set()

    def stem(self, min_length: int = 3, max_length: int = 8, max_attempts: int = 20) -> str:
        """A capitalised name stem; falls back to a single syllable."""
        for _ in range(max_attempts):
            stem = self._walk(max_length)
            if min_length <= len(stem) <= max_length:
                return stem.capitalize()

        syllables = sorted({s for options in self.chain.data.values() for s in options if s})
        return self.prng.choice(syllables).capitalize()

    def name(self, major: bool = False, max_attempts: int = 10) -> str:
        """Name a river; repeats are avoided while attempts remain."""
        name = ""
        for _ in range(max_attempts):
            stem = self.stem()
            if major:
                name = f"{self.prng.choice(MAJOR_PREFIXES)} {stem}"
            else:
                name = f"{stem}{self.prng.choice(MINOR_SUFFIXES)}"
            if name not in self.used:
                break
        self.used.add(name)
        return name

    def _walk(self, max_length: int) -> str:
        result = ""
        current = ""
        while True:
            options = self.chain.data.get(current)
            if not options:
                break
            syllable = self.prng.choice(options)
            if syllable == "" or len(result) + len(syllable) > max_length:
                break
            result += syllable
            current = syllable
        return result
