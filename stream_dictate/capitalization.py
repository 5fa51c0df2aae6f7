"""Sentence-boundary aware casing of a fragment's first character."""

from __future__ import annotations

import logging

logger = logging.getLogger("stream_dictate")

SENTENCE_TERMINATORS = (".", "!", "?")

# Recognizer output that is capitalized mid-sentence on purpose
ALWAYS_CAPITALIZED_WORDS = frozenset({"I", "I'll", "I'd", "I'm", "I've"})


class CapitalizationPolicy:
    """Decide the case of a new fragment's first letter from prior text."""

    def __init__(
        self,
        terminators: tuple[str, ...] = SENTENCE_TERMINATORS,
        preserved_words: frozenset[str] = ALWAYS_CAPITALIZED_WORDS,
    ):
        self.terminators = terminators
        self.preserved_words = preserved_words

    def should_capitalize(self, prior_finalized: str) -> bool:
        trimmed = prior_finalized.rstrip()
        return not trimmed or trimmed.endswith(self.terminators)

    def apply_case(self, fragment: str, prior_finalized: str) -> str:
        """
        Adjust only the first character of ``fragment``.

        Args:
            fragment: Text about to be committed
            prior_finalized: Text already committed before it

        Returns:
            The fragment with its first character re-cased
        """
        if not fragment:
            return fragment

        first_word = fragment.split(" ", 1)[0]
        if first_word in self.preserved_words:
            logger.debug("Capitalization: preserved %r", first_word)
            return fragment

        first = fragment[0]
        if self.should_capitalize(prior_finalized):
            return first.upper() + fragment[1:]
        if first.isupper():
            return first.lower() + fragment[1:]
        return fragment


def apply_case(fragment: str, prior_finalized: str) -> str:
    """Apply the default capitalization policy."""
    return CapitalizationPolicy().apply_case(fragment, prior_finalized)
