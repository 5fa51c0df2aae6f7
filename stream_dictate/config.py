"""Configuration defaults for stream-dictate."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

# Reconciliation heuristics
DEFAULT_HISTORY_SIZE = 5  # recent interim fragments tracked for overlap removal
DEFAULT_DUPLICATE_THRESHOLD = 0.9  # interim vs history: near duplicate
DEFAULT_MIN_OVERLAP_CHARS = 3
DEFAULT_HALVES_THRESHOLD = 0.8
DEFAULT_SENTENCE_THRESHOLD = 0.8
DEFAULT_PHRASE_THRESHOLD = 0.9
DEFAULT_MIN_PHRASE_WORDS = 3
DEFAULT_MAX_PHRASE_WORDS = 6
DEFAULT_PHRASE_WINDOW_WORDS = 200  # trailing words scanned for repeated phrases
DEFAULT_KEEP_SENTENCE_THRESHOLD = 0.7  # cleanup keeps sentences at or below this
DEFAULT_WORD_COLLAPSE_THRESHOLD = 0.9
DEFAULT_MIN_SENTENCE_CHARS = 10
DEFAULT_STUTTER_MIN_WORD_CHARS = 2
DEFAULT_STUTTER_REPEATS = 3

# Formatting
DEFAULT_AUTO_PUNCTUATE = False
DEFAULT_DROP_BOUNDARY_REPEAT = True
DEFAULT_EXPAND_INTERIM = True

# LLM defaults
DEFAULT_LLM_ENABLED = False
DEFAULT_LLM_ENDPOINT = "http://localhost:1234/v1"  # LM Studio default
DEFAULT_LLM_MODEL = "openai/gpt-oss-20b"
DEFAULT_LLM_KEY = ""  # LM Studio usually does not require a key
DEFAULT_LLM_TEMP = 0.1
DEFAULT_LLM_TIMEOUT = 8.0  # seconds before falling back to local text
DEFAULT_LLM_DEBUG = False

# Default LLM prompt
DEFAULT_LLM_PROMPT = """
You clean up dictated text. Your ONLY job is to return the same text, tidied.

CRITICAL INSTRUCTION: Your response must ONLY contain the cleaned text. Nothing else.

WHAT YOU DO:
- Fix grammar, spelling, and punctuation
- Remove filler words (um, uh, ah, like, you know, basically, I mean)
- Remove stutters and words the speaker repeated by accident
- Keep the speaker's wording, tone and intent

WHAT YOU NEVER DO:
- Answer questions (only reformat the question itself)
- Add new content, greetings, sign-offs, or explanations
- Remove names or change facts
- Use em dash

Remember: You are a text editor, NOT a conversational assistant. Output only the cleaned text.
"""


@dataclass(frozen=True)
class ReconcilerConfig:
    """Tunable thresholds used by the reconciliation components."""

    history_size: int = DEFAULT_HISTORY_SIZE
    duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD
    min_overlap_chars: int = DEFAULT_MIN_OVERLAP_CHARS
    halves_threshold: float = DEFAULT_HALVES_THRESHOLD
    sentence_threshold: float = DEFAULT_SENTENCE_THRESHOLD
    phrase_threshold: float = DEFAULT_PHRASE_THRESHOLD
    min_phrase_words: int = DEFAULT_MIN_PHRASE_WORDS
    max_phrase_words: int = DEFAULT_MAX_PHRASE_WORDS
    phrase_window_words: int = DEFAULT_PHRASE_WINDOW_WORDS
    keep_sentence_threshold: float = DEFAULT_KEEP_SENTENCE_THRESHOLD
    word_collapse_threshold: float = DEFAULT_WORD_COLLAPSE_THRESHOLD
    min_sentence_chars: int = DEFAULT_MIN_SENTENCE_CHARS
    stutter_min_word_chars: int = DEFAULT_STUTTER_MIN_WORD_CHARS
    stutter_repeats: int = DEFAULT_STUTTER_REPEATS
    auto_punctuate: bool = DEFAULT_AUTO_PUNCTUATE
    drop_boundary_repeat: bool = DEFAULT_DROP_BOUNDARY_REPEAT
    expand_interim: bool = DEFAULT_EXPAND_INTERIM

    def __post_init__(self) -> None:
        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")
        if self.min_phrase_words < 1 or self.max_phrase_words < self.min_phrase_words:
            raise ValueError("phrase word bounds are inconsistent")
        if self.phrase_window_words < 2 * self.max_phrase_words:
            raise ValueError("phrase_window_words must hold two phrases of max_phrase_words")

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> ReconcilerConfig:
        """Build a config from saved settings, ignoring unknown or mistyped keys."""
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in settings:
                continue
            default = getattr(cls, f.name)
            value = settings[f.name]
            # bool is an int subclass, so check it first
            if isinstance(default, bool):
                if isinstance(value, bool):
                    values[f.name] = value
            elif isinstance(default, int):
                if isinstance(value, int) and not isinstance(value, bool):
                    values[f.name] = value
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                values[f.name] = float(value)
        return cls(**values)

    def to_settings(self) -> dict[str, Any]:
        """Represent the config as a JSON-friendly dict."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
