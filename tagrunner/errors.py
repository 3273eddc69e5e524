#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Error taxonomy for tagrunner.

Action errors are captured into ``ActionResult`` values and reported back to
the model. LLM errors are raised by the transport and classified so the turn
loop can decide between retrying, evicting context and giving up.
"""

from enum import Enum
from typing import Any, Optional


class TagrunnerError(Exception):
    """Base class for all tagrunner errors."""


class ConfigError(TagrunnerError):
    """Invalid or unreadable configuration."""


class ContextError(TagrunnerError):
    """A message was rejected by the conversation context."""


# ============================================================================
# Action errors
# ============================================================================

class ActionError(TagrunnerError):
    """Base class for errors produced while parsing or running an action."""


class FormatError(ActionError):
    """Tag structure is malformed (unbalanced, stray or nested tags)."""


class ValidationError(ActionError):
    """A required field is missing or a field value is invalid."""


class OperationError(ActionError):
    """A collaborator (filesystem, shell, search, network) failed."""


# ============================================================================
# LLM errors
# ============================================================================

class LLMErrorType(Enum):
    """Classification of LLM transport failures."""
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    CONTEXT_LENGTH = "context_length"
    MODEL = "model"
    QUOTA = "quota"
    STREAM = "stream"
    BUFFER_OVERFLOW = "buffer_overflow"
    UNKNOWN = "unknown"


class LLMError(TagrunnerError):
    """Base class for LLM transport errors."""

    error_type = LLMErrorType.UNKNOWN

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def retryable(self) -> bool:
        return self.error_type in (LLMErrorType.NETWORK, LLMErrorType.RATE_LIMIT)


class NetworkError(LLMError):
    error_type = LLMErrorType.NETWORK


class RateLimitError(LLMError):
    error_type = LLMErrorType.RATE_LIMIT


class ContextLengthError(LLMError):
    error_type = LLMErrorType.CONTEXT_LENGTH


class ModelError(LLMError):
    error_type = LLMErrorType.MODEL


class QuotaError(LLMError):
    error_type = LLMErrorType.QUOTA


class StreamError(LLMError):
    error_type = LLMErrorType.STREAM


class BufferOverflowError(StreamError):
    error_type = LLMErrorType.BUFFER_OVERFLOW


class UnknownError(LLMError):
    error_type = LLMErrorType.UNKNOWN


_NETWORK_MARKERS = (
    "econnreset", "etimedout", "connection", "network", "timeout", "timed out",
    "temporarily unavailable", "502", "503", "504",
)
_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "too many requests", "429")
_CONTEXT_MARKERS = (
    "context length", "context_length", "maximum context", "context window",
    "too many tokens", "token limit",
)
_QUOTA_MARKERS = ("insufficient_quota", "insufficient quota", "quota", "credits", "402")
_MODEL_MARKERS = ("model not found", "model_not_found", "invalid model", "no endpoints", "unknown model")


def classify_llm_error(error: Any) -> LLMError:
    """Turn an exception or an ``{"error": ...}`` payload into an LLMError.

    Already classified errors are returned unchanged. Payloads carrying an
    explicit ``code`` (HTTP status or a string code) are matched on the code
    first, then on the message text.
    """
    if isinstance(error, LLMError):
        return error

    code: Any = None
    details: Any = error
    if isinstance(error, dict):
        payload = error.get("error", error)
        if isinstance(payload, dict):
            message = str(payload.get("message") or payload)
            code = payload.get("code") or payload.get("type")
        else:
            message = str(payload)
    else:
        message = str(error) or type(error).__name__
        code = getattr(error, "status_code", None) or getattr(error, "code", None)

    code_text = str(code).lower() if code is not None else ""
    haystack = f"{code_text} {message}".lower()

    if code_text == "429" or any(marker in haystack for marker in _RATE_LIMIT_MARKERS):
        return RateLimitError(message, details)
    if any(marker in haystack for marker in _CONTEXT_MARKERS):
        return ContextLengthError(message, details)
    if code_text == "402" or any(marker in haystack for marker in _QUOTA_MARKERS):
        return QuotaError(message, details)
    if any(marker in haystack for marker in _MODEL_MARKERS):
        return ModelError(message, details)
    if isinstance(error, (ConnectionError, TimeoutError)) or any(
        marker in haystack for marker in _NETWORK_MARKERS
    ):
        return NetworkError(message, details)
    return UnknownError(message, details)
