"""Tests for LLM cleanup functionality."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from stream_dictate import llm_cleanup
from stream_dictate.llm_cleanup import LLMCleaner, LLMCleanupError, clean_with_llm


class DummyChunk:
    def __init__(self, content: str = None, has_usage: bool = False):
        self.choices = [type("Choice", (), {"delta": type("Delta", (), {"content": content})()})]
        if has_usage:
            self.usage = type("Usage", (), {"prompt_tokens": 10, "completion_tokens": 5})()
        else:
            self.usage = None


def _streaming_client(*parts, usage=True):
    """Client mock whose completions stream ``parts`` then a usage chunk."""
    chunks = [DummyChunk(part) for part in parts]
    if usage:
        chunks.append(DummyChunk(None, has_usage=True))
    mock_client = MagicMock()
    mock_client.chat.completions.create.return_value = iter(chunks)
    return mock_client


class TestCleanWithLLM:
    """Test LLM cleanup functionality."""

    def test_clean_with_llm_empty_text(self):
        """Test that empty text returns empty string."""
        with patch("stream_dictate.llm_cleanup.OpenAI") as mock_openai:
            result = clean_with_llm("", "http://test", "model", None, "prompt", 0.1)
            assert result == ""
            mock_openai.assert_not_called()

    def test_clean_with_llm_whitespace_only(self):
        """Test that whitespace-only text returns empty string."""
        with patch("stream_dictate.llm_cleanup.OpenAI") as mock_openai:
            result = clean_with_llm("   \n  ", "http://test", "model", None, "prompt", 0.1)
            assert result == ""
            mock_openai.assert_not_called()

    def test_clean_with_llm_success(self):
        """Streamed chunks are joined and stripped."""
        mock_client = _streaming_client(" Cleaned ", "text ")

        with patch("stream_dictate.llm_cleanup.OpenAI", return_value=mock_client) as mock_openai:
            result = clean_with_llm("raw text", "http://test", "model", "key", " prompt ", 0.3)

        assert result == "Cleaned text"
        mock_openai.assert_called_once_with(base_url="http://test", api_key="key")
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "model"
        assert kwargs["temperature"] == 0.3
        assert kwargs["stream"] is True
        assert kwargs["messages"] == [
            {"role": "system", "content": "prompt"},
            {"role": "user", "content": "raw text"},
        ]

    def test_clean_with_llm_placeholder_key(self):
        """Endpoints without auth still get a non-empty key."""
        mock_client = _streaming_client("ok")
        with patch("stream_dictate.llm_cleanup.OpenAI", return_value=mock_client) as mock_openai:
            clean_with_llm("text", "http://test", "model", None, "prompt", 0.1)
        assert mock_openai.call_args.kwargs["api_key"] == "sk-no-key"

    def test_clean_with_llm_passes_timeout(self):
        mock_client = _streaming_client("ok")
        with patch("stream_dictate.llm_cleanup.OpenAI", return_value=mock_client):
            clean_with_llm("text", "http://test", "model", None, "prompt", 0.1, timeout=2.5)
        assert mock_client.chat.completions.create.call_args.kwargs["timeout"] == 2.5

    def test_clean_with_llm_no_openai(self):
        """Test that missing OpenAI raises error."""
        with patch("stream_dictate.llm_cleanup.OpenAI", None):
            with pytest.raises(LLMCleanupError, match="OpenAI client not installed"):
                clean_with_llm("text", "http://test", "model", None, "prompt", 0.1)

    def test_clean_with_llm_api_error(self):
        """Test handling of API errors."""
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = Exception("API error")

        with patch("stream_dictate.llm_cleanup.OpenAI", return_value=mock_client):
            with pytest.raises(LLMCleanupError, match="LLM cleanup failed"):
                clean_with_llm("text", "http://test", "model", None, "prompt", 0.1)

    def test_clean_with_llm_empty_response(self):
        """An empty stream yields None."""
        mock_client = _streaming_client(usage=False)

        with patch("stream_dictate.llm_cleanup.OpenAI", return_value=mock_client):
            result = clean_with_llm("text", "http://test", "model", None, "prompt", 0.1)
            assert result is None


def test_logs_full_prompt_when_debug_enabled(monkeypatch, caplog):
    monkeypatch.setattr(llm_cleanup, "OpenAI", MagicMock(return_value=_streaming_client("cleaned")))

    with caplog.at_level(logging.INFO, logger="stream_dictate"):
        result = llm_cleanup.clean_with_llm(
            raw_text="hello world",
            endpoint="http://example/v1",
            model="test-model",
            api_key=None,
            prompt="system prompt",
            temperature=0.2,
            debug_logging=True,
        )

    assert result == "cleaned"
    assert any("LLM prompt payload" in rec.message for rec in caplog.records)
    assert any("LLM statistics" in rec.message for rec in caplog.records)
    assert any("LLM response" in rec.message for rec in caplog.records)


def test_skips_prompt_logging_when_debug_disabled(monkeypatch, caplog):
    monkeypatch.setattr(
        llm_cleanup, "OpenAI", MagicMock(return_value=_streaming_client("cleaned", usage=False))
    )

    with caplog.at_level(logging.INFO, logger="stream_dictate"):
        llm_cleanup.clean_with_llm("hello world", "http://example/v1", "m", None, "p", 0.2)

    assert not any("LLM prompt payload" in rec.message for rec in caplog.records)
    assert any("token usage not available" in rec.message for rec in caplog.records)


class TestLLMCleaner:
    """Tests for the callable cleaner used by the pipeline."""

    def test_returns_cleaned_text(self):
        cleaner = LLMCleaner(model="m", api_key="k")
        with patch("stream_dictate.llm_cleanup.clean_with_llm", return_value="Clean.") as mock_clean:
            assert cleaner("dirty") == "Clean."
        assert mock_clean.call_args.kwargs["model"] == "m"
        assert mock_clean.call_args.kwargs["api_key"] == "k"

    def test_falls_back_to_input_on_empty_result(self):
        with patch("stream_dictate.llm_cleanup.clean_with_llm", return_value=None):
            assert LLMCleaner()("dirty") == "dirty"

    def test_errors_propagate(self):
        with patch(
            "stream_dictate.llm_cleanup.clean_with_llm", side_effect=LLMCleanupError("down")
        ):
            with pytest.raises(LLMCleanupError):
                LLMCleaner()("dirty")

    def test_from_settings(self):
        cleaner = LLMCleaner.from_settings(
            {"llm_endpoint": "http://x/v1", "llm_model": "", "llm_temp": 0.5, "llm_debug": True},
            api_key="secret",
        )
        assert cleaner.endpoint == "http://x/v1"
        assert cleaner.model == llm_cleanup.DEFAULT_LLM_MODEL
        assert cleaner.temperature == 0.5
        assert cleaner.debug_logging is True
        assert cleaner.api_key == "secret"
