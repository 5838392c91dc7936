"""
Provider construction by name.
"""

from __future__ import annotations

from typing import Optional

import httpx

from ..exceptions import UnsupportedProviderError
from .anthropic_provider import AnthropicConfig, AnthropicProvider
from .base import Provider
from .ollama_provider import OllamaConfig, OllamaProvider
from .openai_provider import OpenAIConfig, OpenAIProvider

SUPPORTED_PROVIDERS = ("anthropic", "openai", "ollama")

# Providers that run without credentials.
_KEYLESS_PROVIDERS = frozenset({"ollama"})


def is_supported(provider_name: str) -> bool:
    return provider_name in SUPPORTED_PROVIDERS


def requires_api_key(provider_name: str) -> bool:
    """True for supported providers that refuse to start without a key."""
    return is_supported(provider_name) and provider_name not in _KEYLESS_PROVIDERS


def create_provider(
    provider_name: str,
    api_key: str = "",
    base_url: str = "",
    http_client: Optional[httpx.Client] = None,
) -> Provider:
    """
    Build the adapter registered under `provider_name`.

    Args:
        provider_name: Exact, case-sensitive provider name.
        api_key: Credential; required by anthropic and openai, ignored by ollama.
        base_url: Optional override of the vendor base URL (self-hosted or tests).
        http_client: Optional httpx client handed through to the adapter.

    Raises:
        ProviderConfigurationError: If a key-requiring provider gets no key.
        UnsupportedProviderError: If the name matches no adapter.
    """
    if provider_name == "anthropic":
        anthropic_config = AnthropicConfig(api_key=api_key, http_client=http_client)
        if base_url:
            anthropic_config.base_url = base_url
        return AnthropicProvider(anthropic_config)

    if provider_name == "openai":
        openai_config = OpenAIConfig(api_key=api_key, http_client=http_client)
        if base_url:
            openai_config.base_url = base_url
        return OpenAIProvider(openai_config)

    if provider_name == "ollama":
        ollama_config = OllamaConfig(http_client=http_client)
        if base_url:
            ollama_config.base_url = base_url
        return OllamaProvider(ollama_config)

    raise UnsupportedProviderError(provider_name, SUPPORTED_PROVIDERS)


__all__ = ["SUPPORTED_PROVIDERS", "create_provider", "is_supported", "requires_api_key"]
