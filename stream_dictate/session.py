"""Reconciliation of interim and final fragments into sink operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from stream_dictate.capitalization import CapitalizationPolicy
from stream_dictate.config import ReconcilerConfig
from stream_dictate.formatting import (
    auto_punctuate,
    clean_text,
    drop_boundary_repeat,
    find_divergence_point,
)
from stream_dictate.fragments import TranscriptionFragment
from stream_dictate.overlap import SegmentOverlapResolver
from stream_dictate.repetition import RepetitionDetector
from stream_dictate.shortcuts import ShortcutTable, apply_shortcuts
from stream_dictate.sink import Insert, Replace, ResetAndInsert, SinkOperation

logger = logging.getLogger("stream_dictate")


@dataclass
class SessionState:
    """Mutable state owned by exactly one session."""

    finalized_text: str = ""
    pending_text: str = ""
    epoch: int = 0
    last_sequence: int | None = None


class ReconciliationSession:
    """
    Turn a stream of fragments into ordered Insert/Replace operations.

    ``finalized_text`` only grows between resets. ``pending_text`` always
    equals what the sink shows after the finalized text. One instance per
    dictation; not thread-safe.
    """

    def __init__(
        self,
        config: ReconcilerConfig | None = None,
        shortcuts: ShortcutTable | None = None,
        capitalization: CapitalizationPolicy | None = None,
    ):
        self.config = config or ReconcilerConfig()
        self.shortcuts = shortcuts
        self.capitalization = capitalization or CapitalizationPolicy()
        self.detector = RepetitionDetector(self.config)
        self.resolver = SegmentOverlapResolver(self.config)
        self.state = SessionState()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def finalized_text(self) -> str:
        return self.state.finalized_text

    @property
    def pending_text(self) -> str:
        return self.state.pending_text

    @property
    def epoch(self) -> int:
        return self.state.epoch

    @property
    def recent_history(self) -> tuple[str, ...]:
        return tuple(self.resolver.history)

    @property
    def is_idle(self) -> bool:
        return not self.state.finalized_text and not self.state.pending_text

    def visible_text(self) -> str:
        """What the sink shows when this session is its only writer."""
        return self.state.finalized_text + self.state.pending_text

    # ------------------------------------------------------------------
    # Fragment handling
    # ------------------------------------------------------------------
    def handle_fragment(
        self, fragment: TranscriptionFragment, visible_text: str | None = None
    ) -> list[SinkOperation]:
        """
        Process one fragment and return the sink operations it produces.

        Args:
            fragment: Next fragment in arrival order
            visible_text: Current sink content, when the caller can read it

        Returns:
            Operations to apply to the sink, in order (possibly none)
        """
        if fragment.is_blank():
            logger.debug("Ignoring empty fragment #%d", fragment.sequence)
            return []

        self.track_sequence(fragment)

        if fragment.is_final:
            formatted = self.prepare_final(fragment.text)
            return self.commit_final(formatted, self.state.epoch, visible_text)
        return self._handle_interim(fragment.text)

    def prepare_final(self, text: str) -> str:
        """Locally format final text: clean, de-duplicate the boundary word, re-case."""
        formatted = clean_text(text)
        finalized = self.state.finalized_text
        if formatted and self.config.drop_boundary_repeat:
            formatted = drop_boundary_repeat(formatted, finalized)
        if formatted:
            formatted = self.capitalization.apply_case(formatted, finalized)
        if formatted and self.config.auto_punctuate:
            formatted = auto_punctuate(formatted)
        return formatted

    def commit_final(
        self, text: str, epoch: int, visible_text: str | None = None
    ) -> list[SinkOperation]:
        """
        Commit formatted final text produced for ``epoch``.

        A stale epoch (the session was reset meanwhile) drops the text.
        """
        if epoch != self.state.epoch:
            logger.debug(
                "Discarding final text from epoch %d (current epoch %d)", epoch, self.state.epoch
            )
            return []

        text = apply_shortcuts(text.strip(), self.shortcuts)
        if not text:
            logger.debug("Final fragment empty after formatting, ignoring")
            return []

        pending = self.state.pending_text
        visible = self.visible_text() if visible_text is None else visible_text

        repair = None
        if self.detector.has_repeated_phrases(visible):
            repair = self._repair(visible, text)
            if repair:
                logger.info("Repetition detected in visible text, rewriting content")
        elif pending:
            predicted = _replace_last(visible, pending, text + " ")
            if self.detector.would_cause_repetition(visible, predicted):
                repair = self._repair(visible, text)
                if repair:
                    logger.info("Replacement would repeat earlier text, rewriting content")

        operation: SinkOperation
        if repair:
            operation, committed = repair
        elif pending:
            operation, committed = Replace(pending, text + " "), text
            prefix, tail = find_divergence_point(pending, text)
            logger.debug("Finalizing %r (kept %d chars, new tail %r)", text, len(prefix), tail)
        else:
            operation, committed = Insert(text + " "), text

        self.state.finalized_text += committed + " "
        self.state.pending_text = ""
        self.resolver.reset()
        return [operation]

    def _repair(self, visible: str, text: str) -> tuple[ResetAndInsert, str] | None:
        """
        Rebuild the visible content keeping everything up to the committed text.

        Returns None when the rebuild would keep exactly what precedes the
        pending text and the fragment needs no cleanup, so a plain
        Replace/Insert gives the same result.
        """
        committed_region = self.state.finalized_text.rstrip()
        pending = self.state.pending_text

        if committed_region and committed_region in visible:
            cut = visible.find(committed_region) + len(committed_region)
        elif pending and pending in visible:
            cut = visible.find(pending)
        else:
            cut = len(visible)
        preserved = visible[:cut]

        repaired = text
        if self.detector.has_repeated_phrases(text):
            repaired = self.detector.clean_repeated_text(text)
            logger.debug("Repaired final text %r -> %r", text, repaired)

        before_pending = visible[: len(visible) - len(pending)] if visible.endswith(pending) else visible
        if repaired == text and preserved.rstrip() == before_pending.rstrip():
            logger.debug("Repetition is in committed text only, nothing to rewrite")
            return None

        if preserved and not preserved[-1].isspace():
            preserved += " "
        return ResetAndInsert(preserved + repaired + " "), repaired

    def _handle_interim(self, text: str) -> list[SinkOperation]:
        cleaned = clean_text(text)
        if cleaned and self.config.expand_interim:
            cleaned = apply_shortcuts(cleaned, self.shortcuts)
        if not cleaned:
            return []

        pending = self.state.pending_text
        revising = bool(pending) and self._is_revision(pending, cleaned)
        if revising:
            # The new hypothesis supersedes the pending one
            self.resolver.discard(pending)

        result = self.resolver.resolve(cleaned)
        if not result:
            if revising:
                self.resolver.history.push(pending)
            logger.debug("Interim %r fully overlaps recent text", cleaned)
            return []
        if result == pending:
            return []

        operation: SinkOperation = Replace(pending, result) if pending else Insert(result)
        self.state.pending_text = result
        return [operation]

    @staticmethod
    def _is_revision(pending: str, text: str) -> bool:
        prefix, _ = find_divergence_point(pending.lower(), text.lower())
        return len(prefix) >= max(1, (len(pending) + 1) // 2)

    def track_sequence(self, fragment: TranscriptionFragment) -> None:
        """Remember the latest sequence number, logging fragments that arrive out of order."""
        last = self.state.last_sequence
        if last is not None and fragment.sequence < last:
            logger.debug("Fragment #%d arrived after #%d", fragment.sequence, last)
        self.state.last_sequence = fragment.sequence

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> int:
        """Clear all text state and start a new epoch. Returns the new epoch."""
        self.state = SessionState(epoch=self.state.epoch + 1)
        self.resolver.reset()
        logger.info("Session reset (epoch %d)", self.state.epoch)
        return self.state.epoch


def _replace_last(text: str, old: str, new: str) -> str:
    index = text.rfind(old)
    if index < 0:
        return text + new
    return text[:index] + new + text[index + len(old) :]
