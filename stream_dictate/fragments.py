"""Transcription fragments produced by a speech engine."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


class FragmentParseError(Exception):
    """Raised when a fragment record cannot be parsed."""


@dataclass(frozen=True)
class TranscriptionFragment:
    """A single recognizer hypothesis; final fragments close an utterance."""

    text: str
    is_final: bool = False
    sequence: int = 0

    def is_blank(self) -> bool:
        return not self.text.strip()

    @classmethod
    def from_dict(cls, data: dict, default_sequence: int = 0) -> TranscriptionFragment:
        """Create a fragment from a decoded JSON object.

        ``isFinal`` is accepted as an alias for ``is_final``.
        """
        text = data.get("text")
        if not isinstance(text, str):
            raise FragmentParseError(f"Fragment text must be a string, got {text!r}")
        is_final = data.get("is_final", data.get("isFinal", False))
        sequence = data.get("sequence", default_sequence)
        if not isinstance(sequence, int) or isinstance(sequence, bool):
            raise FragmentParseError(f"Fragment sequence must be an integer, got {sequence!r}")
        return cls(text=text, is_final=bool(is_final), sequence=sequence)


def read_fragments(lines: Iterable[str]) -> Iterator[TranscriptionFragment]:
    """
    Parse JSON-lines fragment records.

    Blank lines and lines starting with ``#`` are skipped. A missing
    ``sequence`` defaults to the record's position.

    Raises:
        FragmentParseError: If a line is not a valid fragment record
    """
    position = 0
    for line_number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise FragmentParseError(f"Line {line_number}: invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise FragmentParseError(f"Line {line_number}: expected an object")
        try:
            yield TranscriptionFragment.from_dict(data, default_sequence=position)
        except FragmentParseError as e:
            raise FragmentParseError(f"Line {line_number}: {e}") from e
        position += 1
