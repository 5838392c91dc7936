"""
Core message, tool and request types for agentrelay.

These primitives are provider-agnostic and are reused across adapters,
the conversation engine, the sub-agent executor, and tests.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Union


class Role(str, Enum):
    """Conversation role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolParameter:
    """
    Schema definition for a single tool parameter.

    Attributes:
        type: JSON schema type name ("string", "integer", ...).
        description: Human-readable description sent to the model.
        required: Whether the model must supply this argument.
    """

    type: str
    description: str
    required: bool = False


@dataclass(frozen=True)
class Tool:
    """
    Tool declaration offered to a model.

    Parameters keep their insertion order so the generated JSON schema (and the
    `required` list) is stable across calls.
    """

    name: str
    description: str
    parameters: Dict[str, ToolParameter] = field(default_factory=dict)

    def json_schema(self) -> Dict[str, Any]:
        """Return the JSON-Schema object describing this tool's arguments."""
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in self.parameters.items():
            properties[name] = {"type": param.type, "description": param.description}
            if param.required:
                required.append(name)

        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema


@dataclass
class ToolCall:
    """A tool invocation requested by the model. Arguments are always strings."""

    id: str
    name: str
    arguments: Dict[str, str] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of executing one ToolCall; `call_id` points back at the call."""

    call_id: str
    content: str
    is_error: bool = False


@dataclass
class Message:
    """
    Conversation message.

    `tool_calls` is only populated on assistant messages that invoked tools and
    `tool_results` only on tool-result messages.
    """

    role: Role
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_results: List[ToolResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain-JSON-safe representation for logging or debugging."""
        return {
            "role": self.role.value,
            "content": self.content,
            "tool_calls": [
                {"id": c.id, "name": c.name, "arguments": dict(c.arguments)}
                for c in self.tool_calls
            ],
            "tool_results": [
                {"call_id": r.call_id, "content": r.content, "is_error": r.is_error}
                for r in self.tool_results
            ],
        }


@dataclass
class Request:
    """
    Completion request in the unified model.

    `temperature` and `max_tokens` use 0 as "unset". `system` is never part of
    `messages`; adapters decide how to send it. An empty `tools` list disables
    tool calling for the request.
    """

    model: str
    messages: List[Message] = field(default_factory=list)
    system: str = ""
    temperature: float = 0.0
    max_tokens: int = 0
    tools: List[Tool] = field(default_factory=list)


@dataclass
class Response:
    """Completion response in the unified model."""

    content: str = ""
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass(frozen=True)
class PlainText:
    """Message content that goes on the wire as a bare string."""

    text: str

    def to_wire(self) -> Any:
        return self.text


@dataclass(frozen=True)
class ContentBlocks:
    """Message content that goes on the wire as an array of typed blocks."""

    blocks: List[Dict[str, Any]]

    def to_wire(self) -> Any:
        return list(self.blocks)


MessageContent = Union[PlainText, ContentBlocks]


def stringify_argument(value: Any) -> str:
    """Flatten a decoded JSON argument value into the string form ToolCall carries."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def flatten_arguments(raw: Any) -> Dict[str, str]:
    """Flatten a decoded JSON object of arguments; anything else yields {}."""
    if not isinstance(raw, dict):
        return {}
    return {str(key): stringify_argument(value) for key, value in raw.items()}


__all__ = [
    "Role",
    "ToolParameter",
    "Tool",
    "ToolCall",
    "ToolResult",
    "Message",
    "Request",
    "Response",
    "PlainText",
    "ContentBlocks",
    "MessageContent",
    "stringify_argument",
    "flatten_arguments",
]
