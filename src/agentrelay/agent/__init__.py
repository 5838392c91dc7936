"""
Public exports for the agent package.
"""

from .config import AgentConfig, load_agent
from .core import MAX_CONVERSATION_TURNS, ConversationEngine
from .subagent import (
    CALL_AGENT_TOOL_NAME,
    ExecuteOptions,
    SubAgentExecutor,
    call_agent_tool,
    parse_model,
)

__all__ = [
    "AgentConfig",
    "load_agent",
    "ConversationEngine",
    "MAX_CONVERSATION_TURNS",
    "CALL_AGENT_TOOL_NAME",
    "ExecuteOptions",
    "SubAgentExecutor",
    "call_agent_tool",
    "parse_model",
]
