"""LLM transport for tagrunner: providers, retry and the client."""

from tagrunner.llm.client import LLMClient
from tagrunner.llm.model_info import ModelInfo, ModelManager
from tagrunner.llm.provider_factory import get_provider
from tagrunner.llm.retry import RetryHandler

__all__ = [
    "LLMClient",
    "ModelInfo",
    "ModelManager",
    "RetryHandler",
    "get_provider",
]
