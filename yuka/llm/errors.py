from __future__ import annotations

import asyncio


class LLMError(Exception):
    """Base error for upstream completion failures."""

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LLMRateLimitError(LLMError):
    pass


class LLMAuthError(LLMError):
    pass


class LLMNotFoundError(LLMError):
    pass


class LLMForbiddenError(LLMError):
    pass


class LLMUpstreamError(LLMError):
    pass


class LLMConnectionError(LLMError):
    pass


def parse_error_message(error: Exception) -> str:
    """
    Map raw exceptions into short, human-readable messages.
    Used for admin notifications and logs.
    """
    s, t = str(error), type(error).__name__
    if isinstance(error, LLMRateLimitError) or "429" in s:
        return "⚠️ Rate Limited: API provider is temporarily rate-limited. Please retry shortly."
    if isinstance(error, LLMAuthError) or "401" in s or "Unauthorized" in s:
        return "❌ Authentication Error: Invalid API key or credentials."
    if isinstance(error, LLMNotFoundError) or "404" in s:
        return "❌ Not Found: The requested model or resource was not found."
    if isinstance(error, LLMForbiddenError) or "403" in s:
        return "❌ Forbidden: You don't have permission to access this resource."
    if isinstance(error, LLMConnectionError) or "Connection" in t or "Timeout" in t:
        return "❌ Connection Error: Unable to reach the API provider."
    if isinstance(error, LLMError) and error.status_code:
        return f"❌ Upstream Error {error.status_code}: {s.split(chr(10))[0][:100]}"
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"


def format_user_friendly_error(error: Exception) -> str:
    """
    Short, safe error message suitable for end users.
    """
    if isinstance(error, LLMRateLimitError):
        return "The models are busy right now, please try again in a moment."
    if isinstance(error, (LLMAuthError, LLMForbiddenError)):
        return "I can't reach the model service right now. An admin has been notified."
    if isinstance(error, LLMConnectionError):
        return "Connecting to the model service failed. Please try again later."
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return "That took too long to answer. Please try again later."
    return "Something went wrong while handling that. An admin has been notified."
