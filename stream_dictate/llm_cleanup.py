"""Optional LLM cleanup of finalized dictation text."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from stream_dictate.config import (
    DEFAULT_LLM_ENDPOINT,
    DEFAULT_LLM_MODEL,
    DEFAULT_LLM_PROMPT,
    DEFAULT_LLM_TEMP,
    DEFAULT_LLM_TIMEOUT,
)

try:
    from openai import OpenAI
except ImportError:
    OpenAI = None  # type: ignore


logger = logging.getLogger("stream_dictate")


class LLMCleanupError(Exception):
    """Raised when LLM cleanup fails."""


def clean_with_llm(
    raw_text: str,
    endpoint: str,
    model: str,
    api_key: str | None,
    prompt: str,
    temperature: float,
    debug_logging: bool = False,
    timeout: float = DEFAULT_LLM_TIMEOUT,
) -> str | None:
    """
    Send raw_text to an OpenAI-compatible LLM for cleanup.

    Args:
        raw_text: Locally formatted final text
        endpoint: Base URL for OpenAI-compatible API
        model: Model name to use
        api_key: API key (optional, can be None)
        prompt: System prompt for the LLM
        temperature: Temperature for generation
        debug_logging: When True, log the full prompt payload and response
        timeout: Request timeout in seconds

    Returns:
        Cleaned text, or None when the model returned nothing

    Raises:
        LLMCleanupError: If the client is missing or the request fails
    """
    if not raw_text.strip():
        return ""

    if OpenAI is None:
        raise LLMCleanupError("OpenAI client not installed. Run: pip install openai")

    messages = [
        {"role": "system", "content": prompt.strip()},
        {"role": "user", "content": raw_text},
    ]

    if debug_logging:
        logger.info(
            "LLM prompt payload: endpoint=%s model=%s temperature=%s messages=%s",
            endpoint,
            model,
            temperature,
            messages,
        )

    try:
        client = OpenAI(base_url=endpoint, api_key=api_key or "sk-no-key")

        start_time = time.perf_counter()
        first_token_time = None

        # Stream so time to first token can be reported
        stream = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            timeout=timeout,
            stream=True,
            stream_options={"include_usage": True},
        )

        collected_text = []
        usage_info = None

        for chunk in stream:
            if chunk.choices:
                content = chunk.choices[0].delta.content
                if content:
                    if first_token_time is None:
                        first_token_time = time.perf_counter()
                    collected_text.append(content)

            # Usage arrives on the last chunk
            if getattr(chunk, "usage", None) is not None:
                usage_info = chunk.usage

        total_time = time.perf_counter() - start_time
        time_to_first_token = (first_token_time - start_time) if first_token_time else 0.0
        text = "".join(collected_text).strip()

        if usage_info:
            output_tokens = getattr(usage_info, "completion_tokens", 0)
            logger.info(
                "LLM statistics: time_to_first_token=%.3fs total_time=%.3fs "
                "input_tokens=%d output_tokens=%d token_rate=%.1f tok/s",
                time_to_first_token,
                total_time,
                getattr(usage_info, "prompt_tokens", 0),
                output_tokens,
                output_tokens / total_time if total_time > 0 else 0,
            )
        else:
            logger.info(
                "LLM statistics: time_to_first_token=%.3fs total_time=%.3fs "
                "(token usage not available)",
                time_to_first_token,
                total_time,
            )

        if debug_logging:
            logger.info("LLM response: %s", text)

        return text if text else None
    except Exception as e:
        raise LLMCleanupError(f"LLM cleanup failed: {e}") from e


@dataclass
class LLMCleaner:
    """Callable cleaner bound to one endpoint configuration."""

    endpoint: str = DEFAULT_LLM_ENDPOINT
    model: str = DEFAULT_LLM_MODEL
    api_key: str | None = None
    prompt: str = DEFAULT_LLM_PROMPT
    temperature: float = DEFAULT_LLM_TEMP
    timeout: float = DEFAULT_LLM_TIMEOUT
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: dict[str, Any], api_key: str | None = None) -> LLMCleaner:
        return cls(
            endpoint=settings.get("llm_endpoint") or DEFAULT_LLM_ENDPOINT,
            model=settings.get("llm_model") or DEFAULT_LLM_MODEL,
            api_key=api_key,
            prompt=settings.get("llm_prompt") or DEFAULT_LLM_PROMPT,
            temperature=float(settings.get("llm_temp", DEFAULT_LLM_TEMP)),
            timeout=float(settings.get("llm_timeout", DEFAULT_LLM_TIMEOUT)),
            debug_logging=bool(settings.get("llm_debug", False)),
        )

    def __call__(self, text: str) -> str:
        """Return cleaned text, or ``text`` unchanged when the model returns nothing."""
        cleaned = clean_with_llm(
            text,
            endpoint=self.endpoint,
            model=self.model,
            api_key=self.api_key,
            prompt=self.prompt,
            temperature=self.temperature,
            debug_logging=self.debug_logging,
            timeout=self.timeout,
        )
        return cleaned or text
