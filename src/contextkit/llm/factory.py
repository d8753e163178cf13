"""Factory for creating LLM providers from configuration."""

from __future__ import annotations

from contextkit.config import LLMConfig
from contextkit.exceptions import ConfigError
from contextkit.llm.base import LLMProvider


def create_provider(config: LLMConfig) -> LLMProvider:
    """Create an LLM provider from configuration.

    Args:
        config: LLM configuration with provider, model, etc.

    Returns:
        An initialized LLM provider.

    Raises:
        ConfigError: If the provider is unknown.
        ProviderNotAvailableError: If the provider's SDK is not installed.
    """
    provider = config.provider.lower()

    if provider == "openai" or provider == "local":
        from contextkit.llm.openai_provider import OpenAIProvider

        return OpenAIProvider(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            supports_tools=config.supports_tools,
        )
    elif provider == "anthropic":
        from contextkit.llm.anthropic_provider import AnthropicProvider

        return AnthropicProvider(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            supports_tools=config.supports_tools,
        )
    else:
        raise ConfigError(
            f"Unknown LLM provider: '{provider}'. "
            f"Supported providers: openai, anthropic, local"
        )
