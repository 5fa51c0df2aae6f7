"""Text normalization helpers applied before reconciliation."""

from __future__ import annotations

import unicodedata

from stream_dictate.similarity import normalize

# Letters, marks, numbers, punctuation and space separators survive cleaning
_KEPT_CATEGORIES = ("L", "M", "N", "P", "Zs")

AUTO_PUNCTUATION = (".", "!", "?", ":", ";")


def clean_text(text: str) -> str:
    """Drop symbols and control characters, collapse whitespace, and trim."""
    if not text:
        return text

    text = normalize(text)
    kept = []
    for char in text:
        if char.isspace():
            kept.append(" ")
        elif unicodedata.category(char).startswith(_KEPT_CATEGORIES):
            kept.append(char)
    return " ".join("".join(kept).split())


def auto_punctuate(text: str) -> str:
    """Append a period when the text lacks closing punctuation."""
    trimmed = text.strip()
    if not trimmed:
        return text
    if trimmed.endswith(AUTO_PUNCTUATION):
        return trimmed
    return trimmed + "."


def drop_boundary_repeat(text: str, previous_text: str) -> str:
    """Drop the first word of ``text`` when it repeats the last word of ``previous_text``."""
    previous_words = previous_text.split()
    words = text.split(" ")
    if not previous_words or not words or not words[0]:
        return text
    if previous_words[-1].lower() == words[0].lower():
        return " ".join(words[1:]).strip()
    return text


def find_divergence_point(old_text: str, new_text: str) -> tuple[str, str]:
    """Return the common prefix of both texts and the tail of ``new_text`` after it."""
    length = 0
    for old_char, new_char in zip(old_text, new_text):
        if old_char != new_char:
            break
        length += 1
    return new_text[:length], new_text[length:]
