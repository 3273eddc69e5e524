#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Base interface for LLM providers."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from tagrunner.errors import LLMError, classify_llm_error


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Providers never raise on transport failures. ``chat`` and ``chat_stream``
    return ``{"message": {...}, "usage": {...}}`` on success and
    ``{"error": ...}`` on failure; the client classifies the payload and
    decides whether to retry.
    """

    def __init__(self):
        self.name = "base"

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Make a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model name to use (provider-specific)
            **kwargs: Additional provider-specific parameters

        Returns:
            Dict with 'message' and optional 'usage' keys, or an 'error' key
        """

    @abstractmethod
    def chat_stream(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Make a streaming chat completion request.

        ``on_chunk`` receives each text delta as it arrives. The returned dict
        carries the accumulated message; when the stream breaks part way the
        dict holds both the partial ``message`` and the ``error``.
        """

    @abstractmethod
    def validate_model(self, model: str) -> bool:
        """Check that the provider can serve ``model``."""

    @abstractmethod
    def get_model_context_length(self, model: str) -> Optional[int]:
        """Return the model's context window in tokens, None when unknown."""

    def classify_error(self, error: Any) -> LLMError:
        """Classify an exception or ``{"error": ...}`` payload."""
        return classify_llm_error(error)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
