"""Overlap removal between interim fragments and recently shown text."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator

from stream_dictate.config import ReconcilerConfig
from stream_dictate.similarity import normalize, similarity

logger = logging.getLogger("stream_dictate")


class OverlapHistory:
    """Bounded FIFO of recently emitted fragments, oldest evicted first."""

    def __init__(self, maxlen: int = 5):
        self._entries: deque[str] = deque(maxlen=maxlen)

    def push(self, text: str) -> None:
        self._entries.append(text)

    def discard(self, text: str) -> bool:
        """Drop the most recent entry equal to ``text``. Returns True if found."""
        for idx in range(len(self._entries) - 1, -1, -1):
            if self._entries[idx] == text:
                del self._entries[idx]
                return True
        return False

    def clear(self) -> None:
        self._entries.clear()

    def most_recent_first(self) -> Iterator[str]:
        return reversed(list(self._entries))

    @property
    def maxlen(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))


def _suffix_prefix_overlap(previous: str, text: str, min_chars: int) -> int:
    """Length of the longest tail of ``previous`` that starts ``text``, or 0."""
    longest = min(len(previous), len(text))
    shortest = min(min_chars, longest)
    if shortest <= 0:
        return 0
    for size in range(longest, shortest - 1, -1):
        if previous[-size:] == text[:size]:
            return size
    return 0


def remove_overlap(
    fragment: str,
    history: OverlapHistory,
    config: ReconcilerConfig | None = None,
) -> str:
    """
    Strip from ``fragment`` whatever was already shown by recent fragments.

    Entries are checked most recent first. A fragment that duplicates (or is
    contained in) an entry collapses to ``""``. An entry contained in the
    fragment is cut out of it, and a tail of an entry that begins the
    fragment is trimmed from its front. A non-empty result is pushed onto
    ``history``.

    Args:
        fragment: Interim text to clean
        history: Recently emitted fragments, updated in place
        config: Thresholds (defaults when omitted)

    Returns:
        The cleaned fragment, possibly empty
    """
    config = config or ReconcilerConfig()
    cleaned = normalize(fragment)

    for previous in history.most_recent_first():
        if not previous:
            continue
        if not cleaned:
            break

        if previous == cleaned:
            logger.debug("Overlap: exact duplicate of recent fragment %r", previous)
            return ""

        score = similarity(previous, cleaned)
        if score > config.duplicate_threshold:
            logger.debug("Overlap: near duplicate (similarity %.2f) of %r", score, previous)
            return ""

        if cleaned in previous:
            logger.debug("Overlap: %r already contained in %r", cleaned, previous)
            return ""

        if previous in cleaned:
            cleaned = cleaned.replace(previous, "")
            logger.debug("Overlap: removed contained fragment %r", previous)
            continue

        size = _suffix_prefix_overlap(previous, cleaned, config.min_overlap_chars)
        if size:
            cleaned = cleaned[size:]
            logger.debug("Overlap: trimmed %d leading characters shared with %r", size, previous)

    cleaned = " ".join(cleaned.split())
    if cleaned:
        history.push(cleaned)
    return cleaned


class SegmentOverlapResolver:
    """Owns an overlap history and cleans interim fragments against it."""

    def __init__(self, config: ReconcilerConfig | None = None):
        self.config = config or ReconcilerConfig()
        self.history = OverlapHistory(self.config.history_size)

    def resolve(self, fragment: str) -> str:
        return remove_overlap(fragment, self.history, self.config)

    def discard(self, text: str) -> bool:
        return self.history.discard(text)

    def reset(self) -> None:
        self.history.clear()
        logger.debug("Overlap: reset segment tracking")
