"""
Custom exceptions with helpful error messages and suggestions.

Provider failures are categorized (see `ErrorCategory`) at the adapter
boundary; everything above the adapters only ever sees `ProviderError` or,
inside a delegation tree, an error `ToolResult`.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class AgentRelayError(Exception):
    """Base exception for all agentrelay errors."""

    pass


class ErrorCategory(str, Enum):
    """Fixed set of provider failure categories."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    OVERLOADED = "overloaded"
    BAD_REQUEST = "bad_request"
    SERVER = "server"


class ProviderError(AgentRelayError):
    """
    Categorized provider failure.

    Constructed once at the adapter boundary and never mutated afterwards.
    `status` is the HTTP status code, or 0 when no response was received.
    """

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        status: int = 0,
        cause: Optional[BaseException] = None,
    ):
        self.category = category
        self.status = status
        self.message = message
        self.cause = cause
        super().__init__(f"{category.value}: {message}")


class ProviderConfigurationError(AgentRelayError):
    """Raised when a provider cannot be constructed from its configuration."""

    def __init__(self, provider_name: str, missing_config: str, env_var: str = ""):
        self.provider_name = provider_name
        self.missing_config = missing_config
        self.env_var = env_var

        message = f"{provider_name}: {missing_config} is required"
        if env_var:
            message += f" (set {env_var} or add it to config.toml)"
        super().__init__(message)


class UnsupportedProviderError(AgentRelayError):
    """Raised when a provider name does not match any adapter."""

    def __init__(self, provider_name: str, supported: Iterable[str]):
        self.provider_name = provider_name
        self.supported = list(supported)
        super().__init__(
            f'unsupported provider "{provider_name}": supported providers are '
            f"{', '.join(self.supported)}"
        )


class ModelFormatError(AgentRelayError):
    """Raised when a model string is not of the form provider/model-name."""

    def __init__(self, model: str, reason: str):
        self.model = model
        self.reason = reason
        super().__init__(f'invalid model format "{model}": {reason}')


class ConversationLimitError(AgentRelayError):
    """Raised when a conversation does not finish within the turn ceiling."""

    def __init__(self, max_turns: int):
        self.max_turns = max_turns
        super().__init__(f"exceeded maximum conversation turns ({max_turns})")


class AgentConfigError(AgentRelayError):
    """Raised when an agent definition cannot be found, parsed, or validated."""

    pass


class ConfigError(AgentRelayError):
    """Raised when the global config file cannot be read or parsed."""

    pass


class ResolveError(AgentRelayError):
    """Raised when files or skills referenced by an agent cannot be resolved."""

    pass


class MemoryStoreError(AgentRelayError):
    """Raised when an agent memory file cannot be read or written."""

    pass


__all__ = [
    "AgentRelayError",
    "ErrorCategory",
    "ProviderError",
    "ProviderConfigurationError",
    "UnsupportedProviderError",
    "ModelFormatError",
    "ConversationLimitError",
    "AgentConfigError",
    "ConfigError",
    "ResolveError",
    "MemoryStoreError",
]
