"""Provider factory for creating LLM provider instances."""

from typing import Dict, Optional

from tagrunner import config
from tagrunner.errors import ConfigError
from tagrunner.llm.providers.base import LLMProvider
from tagrunner.llm.providers.ollama import OllamaProvider
from tagrunner.llm.providers.openai_provider import OpenAIProvider


# Cache for provider instances
_provider_cache: Dict[str, LLMProvider] = {}

AVAILABLE_PROVIDERS = ("openrouter", "openai", "ollama")


def get_provider(provider_name: Optional[str] = None, force_new: bool = False) -> LLMProvider:
    """Get a provider instance by name.

    Args:
        provider_name: openrouter, openai or ollama. Defaults to
            ``config.LLM_PROVIDER``.
        force_new: Create a new instance instead of reusing the cached one

    Raises:
        ConfigError: If the provider name is not recognized
    """
    provider_name = (provider_name or config.LLM_PROVIDER).lower().strip()

    if not force_new and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    if provider_name == "openrouter":
        provider: LLMProvider = OpenAIProvider.for_openrouter()
    elif provider_name == "openai":
        provider = OpenAIProvider(api_key=config.OPENAI_API_KEY)
    elif provider_name == "ollama":
        provider = OllamaProvider()
    else:
        raise ConfigError(
            f"Unknown LLM provider '{provider_name}'. Choose one of: {', '.join(AVAILABLE_PROVIDERS)}"
        )

    _provider_cache[provider_name] = provider
    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache.

    Useful for testing or when configuration changes.
    """
    _provider_cache.clear()
