"""
Text generation backends used by the extraction pipeline.

Anything with a ``generate(prompt, system_instruction, *, model=None)``
method returning a string can be plugged in; ``OpenAIGenerator`` talks to
any OpenAI-compatible chat-completions endpoint.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Optional, Protocol, runtime_checkable

import httpx
from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class GenerationError(Exception):
    """The language model could not produce usable text."""


@runtime_checkable
class TextGenerator(Protocol):
    def generate(self, prompt: str, system_instruction: str, *, model: Optional[str] = None) -> str:
        ...


class OpenAIGenerator:
    """
    Chat-completions client.

    Args:
        api_key:      API key (falls back to ``OPENAI_API_KEY``)
        model:        default model when ``generate`` is called without one
        base_url:     alternative OpenAI-compatible endpoint
        temperature:  kept low, the task is faithful extraction
        max_tokens:   completion budget per page
        timeout:      HTTP timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ):
        self.api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY", "")
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client: Optional[OpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            # trust_env=False keeps proxy env vars from hijacking the API calls
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url or None,
                http_client=httpx.Client(trust_env=False, timeout=self.timeout),
            )
        return self._client

    def generate(self, prompt: str, system_instruction: str, *, model: Optional[str] = None) -> str:
        if not self.is_configured:
            raise GenerationError("No LLM API key configured (set OPENAI_API_KEY)")

        model = model or self.model
        start_time = time.time()
        logger.debug(f"[LLM] Calling {model} ({len(prompt)} prompt chars)")
        response = self._get_client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        elapsed = time.time() - start_time

        if not response.choices:
            raise GenerationError("LLM returned no choices")
        content = response.choices[0].message.content
        if not content:
            raise GenerationError(
                f"Empty LLM response (finish reason: {response.choices[0].finish_reason})"
            )

        usage = response.usage
        if usage is not None:
            logger.debug(
                f"[LLM] {model} answered in {elapsed:.2f}s - prompt: {usage.prompt_tokens} tokens, "
                f"completion: {usage.completion_tokens} tokens"
            )
        return content

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
