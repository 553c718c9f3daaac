"""
Single-shot chat completion calls against an OpenAI-compatible endpoint
(OpenRouter by default).

The openai client's own retries are disabled; the dispatch engine decides
what to retry. Every upstream failure surfaces as a `yuka.llm.errors.LLMError`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from .errors import (
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMForbiddenError,
    LLMNotFoundError,
    LLMRateLimitError,
    LLMUpstreamError,
)


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TIMEOUT_SECONDS = 30
NO_CONTENT_PLACEHOLDER = "⚠️ No answer."


def _translate(error: openai.OpenAIError) -> LLMError:
    status = getattr(error, "status_code", None)
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimitError(str(error), status)
    if isinstance(error, openai.AuthenticationError):
        return LLMAuthError(str(error), status)
    if isinstance(error, openai.PermissionDeniedError):
        return LLMForbiddenError(str(error), status)
    if isinstance(error, openai.NotFoundError):
        return LLMNotFoundError(str(error), status)
    if isinstance(error, openai.APIConnectionError):
        return LLMConnectionError(str(error))
    return LLMUpstreamError(str(error), status)


class CompletionClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self._openai = AsyncOpenAI(
            base_url=base_url,
            api_key="sk-no-key-required",
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    async def complete(self, model: str, messages: list[dict[str, Any]], credential: str) -> str:
        """
        Send the full message list to `model` and return the reply text.

        A reply without content is not an error; it yields the placeholder.
        """
        client = self._openai.with_options(api_key=credential)
        try:
            response = await client.chat.completions.create(model=model, messages=messages)
        except openai.OpenAIError as e:
            raise _translate(e) from e

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice and choice.message else None
        if not content:
            logging.info("Model %s returned no content", model)
        return content or NO_CONTENT_PLACEHOLDER
