"""Normalized edit-distance similarity between strings."""

from __future__ import annotations

import unicodedata

from rapidfuzz.distance import Levenshtein


def normalize(text: str) -> str:
    """Compose combining sequences so code point offsets match what users see."""
    return unicodedata.normalize("NFC", text)


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance over Unicode code points."""
    return Levenshtein.distance(normalize(a), normalize(b))


def similarity(a: str, b: str) -> float:
    """
    Return similarity in ``[0, 1]`` where 1.0 means identical.

    Two empty strings are identical; an empty string shares nothing with a
    non-empty one. Otherwise ``1 - distance / max(len(a), len(b))``.
    Comparison is case-sensitive; callers lowercase first when needed.
    """
    a = normalize(a)
    b = normalize(b)
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0

    distance = Levenshtein.distance(a, b)
    return 1.0 - distance / max(len(a), len(b))
