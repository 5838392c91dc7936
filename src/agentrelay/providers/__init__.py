"""Provider implementations for the supported LLM backends."""

from .anthropic_provider import AnthropicConfig, AnthropicProvider
from .base import Provider
from .factory import SUPPORTED_PROVIDERS, create_provider, is_supported, requires_api_key
from .ollama_provider import OllamaConfig, OllamaProvider
from .openai_provider import OpenAIConfig, OpenAIProvider

__all__ = [
    "Provider",
    "AnthropicProvider",
    "AnthropicConfig",
    "OpenAIProvider",
    "OpenAIConfig",
    "OllamaProvider",
    "OllamaConfig",
    "SUPPORTED_PROVIDERS",
    "create_provider",
    "is_supported",
    "requires_api_key",
]
