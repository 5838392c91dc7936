"""Public exports for the agentrelay package."""

from .agent import (
    CALL_AGENT_TOOL_NAME,
    AgentConfig,
    ConversationEngine,
    ExecuteOptions,
    SubAgentExecutor,
    call_agent_tool,
    parse_model,
)
from .context import CallContext
from .exceptions import (
    AgentConfigError,
    AgentRelayError,
    ConfigError,
    ConversationLimitError,
    ErrorCategory,
    MemoryStoreError,
    ModelFormatError,
    ProviderConfigurationError,
    ProviderError,
    ResolveError,
    UnsupportedProviderError,
)
from .providers import AnthropicProvider, OllamaProvider, OpenAIProvider, create_provider
from .types import Message, Request, Response, Role, Tool, ToolCall, ToolParameter, ToolResult
from .usage import ConversationUsage

__version__ = "0.4.0"

__all__ = [
    "__version__",
    "CallContext",
    "ConversationEngine",
    "SubAgentExecutor",
    "ExecuteOptions",
    "AgentConfig",
    "CALL_AGENT_TOOL_NAME",
    "call_agent_tool",
    "parse_model",
    "create_provider",
    "AnthropicProvider",
    "OpenAIProvider",
    "OllamaProvider",
    "Message",
    "Request",
    "Response",
    "Role",
    "Tool",
    "ToolParameter",
    "ToolCall",
    "ToolResult",
    "ConversationUsage",
    # Exceptions
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
