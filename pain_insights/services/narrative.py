"""Deterministic phrasing variants for recommendation text."""

import hashlib
from collections.abc import Sequence
from typing import TypeVar

PhraseT = TypeVar("PhraseT")

ENCOURAGEMENTS = (
    "Small, steady adjustments tend to add up.",
    "Noticing the pattern is already a useful step.",
    "Your tracking is what makes this visible.",
    "Consistency here gives clearer answers next week.",
)


def seeded_index(seed: str, size: int) -> int:
    """Map a seed to a stable index in [0, size)."""
    if size <= 0:
        raise ValueError("cannot pick from an empty phrase list")
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % size


def seeded_pick(seed: str, phrases: Sequence[PhraseT]) -> PhraseT:
    """Pick one phrase for a seed; the same seed always yields the same phrase."""
    return phrases[seeded_index(seed, len(phrases))]
