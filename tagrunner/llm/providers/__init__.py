"""LLM provider implementations."""

from .base import LLMProvider
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "LLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
]
