"""Detection and repair of recognizer stutter and loop artifacts."""

from __future__ import annotations

import logging

import numpy as np
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from stream_dictate.config import ReconcilerConfig
from stream_dictate.similarity import normalize, similarity

logger = logging.getLogger("stream_dictate")

SENTENCE_ENDINGS = (".", "!", "?")


def split_sentences(text: str) -> list[str]:
    """Split on periods, dropping empty pieces."""
    return [part.strip() for part in text.split(".") if part.strip()]


class RepetitionDetector:
    """Heuristics for repeated halves, sentences, phrases and words."""

    def __init__(self, config: ReconcilerConfig | None = None):
        self.config = config or ReconcilerConfig()

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------
    def has_repeated_phrases(self, text: str) -> bool:
        """Return True when ``text`` shows any repetition pattern."""
        text = normalize(text).strip()
        if not text:
            return False
        words = text.split()

        return (
            self._has_similar_halves(text, words)
            or self._has_similar_adjacent_sentences(text)
            or self._has_repeated_phrase(words)
            or self._has_stuttered_word(words)
        )

    def _has_similar_halves(self, text: str, words: list[str]) -> bool:
        if len(words) < 2:
            return False
        middle = len(text) // 2
        score = similarity(text[:middle], text[middle:])
        if score > self.config.halves_threshold:
            logger.debug("Repetition: similar halves (similarity %.2f)", score)
            return True
        return False

    def _has_similar_adjacent_sentences(self, text: str) -> bool:
        sentences = split_sentences(text)
        min_chars = self.config.min_sentence_chars
        for first, second in zip(sentences, sentences[1:]):
            if len(first) <= min_chars or len(second) <= min_chars:
                continue
            score = similarity(first, second)
            if score > self.config.sentence_threshold:
                logger.debug("Repetition: similar adjacent sentences (similarity %.2f)", score)
                return True
        return False

    def _has_repeated_phrase(self, words: list[str]) -> bool:
        # Earlier text was already checked when it was committed
        lowered = [w.lower() for w in words[-self.config.phrase_window_words :]]
        longest = min(self.config.max_phrase_words, len(lowered) // 2)
        for length in range(longest, self.config.min_phrase_words - 1, -1):
            windows = [
                " ".join(lowered[i : i + length]) for i in range(len(lowered) - length + 1)
            ]
            # Score one window against the later windows it does not overlap
            for i in range(len(windows) - length):
                scores = process.cdist(
                    [windows[i]],
                    windows[i + length :],
                    scorer=Levenshtein.normalized_similarity,
                    score_cutoff=self.config.phrase_threshold,
                    dtype=np.float64,
                )[0]
                hits = np.flatnonzero(scores > self.config.phrase_threshold)
                if hits.size:
                    logger.debug(
                        "Repetition: repeated phrase %r and %r",
                        windows[i],
                        windows[i + length + int(hits[0])],
                    )
                    return True
        return False

    def _has_stuttered_word(self, words: list[str]) -> bool:
        repeats = self.config.stutter_repeats
        min_chars = self.config.stutter_min_word_chars
        lowered = [w.lower() for w in words]
        for idx in range(len(lowered) - repeats + 1):
            word = lowered[idx]
            if len(word) < min_chars:
                continue
            if all(lowered[idx + k] == word for k in range(1, repeats)):
                logger.debug("Repetition: word %r repeated %d+ times", words[idx], repeats)
                return True
        return False

    def would_cause_repetition(self, current_text: str, new_text: str) -> bool:
        """Check whether replacing ``current_text`` by ``new_text`` re-types earlier text."""
        if not current_text or not new_text or len(current_text) < self.config.min_sentence_chars:
            return False

        if new_text != current_text and new_text.startswith(current_text):
            appended = new_text[len(current_text) :].strip()
            appended_words = appended.split()
            if len(appended_words) >= self.config.min_phrase_words:
                words = current_text.split()
                for i in range(len(words) - len(appended_words) + 1):
                    segment = " ".join(words[i : i + len(appended_words)])
                    if similarity(segment, appended) > self.config.sentence_threshold:
                        logger.debug("Repetition: %r re-types %r", appended, segment)
                        return True

        return self.has_repeated_phrases(new_text)

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------
    def clean_repeated_text(self, text: str) -> str:
        """
        Remove duplicate sentences and stuttered words.

        A sentence is kept only when it is no more than
        ``keep_sentence_threshold`` similar to every sentence already kept.
        Never returns an empty string for non-empty input.
        """
        text = normalize(text)
        sentences = split_sentences(text)
        if not sentences:
            return text

        kept: list[str] = []
        for sentence in sentences:
            if any(
                similarity(existing, sentence) > self.config.keep_sentence_threshold
                for existing in kept
            ):
                logger.debug("Repetition: dropping duplicate sentence %r", sentence)
                continue
            collapsed = self.collapse_repeated_words(sentence)
            if collapsed:
                kept.append(collapsed)

        if not kept:
            kept = [sentences[0]]

        result = ". ".join(kept)
        if not result.endswith(SENTENCE_ENDINGS):
            result += "."
        return result

    def collapse_repeated_words(self, sentence: str) -> str:
        """Keep one occurrence of consecutive near-identical words."""
        words = sentence.split()
        cleaned: list[str] = []
        for word in words:
            if cleaned and (
                similarity(cleaned[-1].lower(), word.lower()) > self.config.word_collapse_threshold
            ):
                continue
            cleaned.append(word)
        return " ".join(cleaned)

    def handle_problematic_repetition_pattern(self, text: str) -> str:
        """Prefer the first substantial sentence over aggressive cleanup."""
        sentences = split_sentences(normalize(text))
        if sentences and len(sentences[0]) > self.config.min_sentence_chars:
            logger.debug("Repetition: keeping first sentence %r", sentences[0])
            return sentences[0] + "."
        return self.clean_repeated_text(text)
