"""Tests for config.py - reconciliation thresholds and defaults."""

import dataclasses

import pytest

from stream_dictate.config import (
    DEFAULT_DUPLICATE_THRESHOLD,
    DEFAULT_HISTORY_SIZE,
    DEFAULT_LLM_PROMPT,
    ReconcilerConfig,
)


class TestReconcilerConfig:
    """Tests for ReconcilerConfig."""

    def test_defaults(self):
        config = ReconcilerConfig()
        assert config.history_size == DEFAULT_HISTORY_SIZE == 5
        assert config.duplicate_threshold == DEFAULT_DUPLICATE_THRESHOLD == 0.9
        assert config.keep_sentence_threshold == 0.7
        assert (config.min_phrase_words, config.max_phrase_words) == (3, 6)
        assert config.phrase_window_words == 200

    def test_is_frozen(self):
        config = ReconcilerConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.history_size = 10

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"history_size": 0},
            {"min_phrase_words": 0},
            {"min_phrase_words": 4, "max_phrase_words": 3},
            {"phrase_window_words": 11},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ReconcilerConfig(**kwargs)

    def test_from_settings_applies_known_keys(self):
        config = ReconcilerConfig.from_settings(
            {"history_size": 3, "duplicate_threshold": 1, "auto_punctuate": True, "unknown": 1}
        )
        assert config.history_size == 3
        assert config.duplicate_threshold == 1.0
        assert isinstance(config.duplicate_threshold, float)
        assert config.auto_punctuate is True

    def test_from_settings_ignores_mistyped_values(self):
        config = ReconcilerConfig.from_settings(
            {"min_phrase_words": True, "stutter_repeats": "3", "expand_interim": 0}
        )
        assert config == ReconcilerConfig()

    def test_settings_round_trip(self):
        config = ReconcilerConfig(history_size=7, phrase_threshold=0.85)
        assert ReconcilerConfig.from_settings(config.to_settings()) == config


def test_default_prompt_forbids_answers():
    assert "Output only the cleaned text" in DEFAULT_LLM_PROMPT
