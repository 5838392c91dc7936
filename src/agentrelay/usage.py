"""
Token usage tracking across conversation turns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .types import Response


@dataclass
class ConversationUsage:
    """
    Aggregates usage across the turns of one conversation.

    Attributes:
        turns: Number of provider calls made.
        input_tokens: Cumulative input tokens reported by the provider.
        output_tokens: Cumulative output tokens reported by the provider.
        tool_calls: Number of tool calls executed.
        tool_usage: Tool name to call count.
    """

    turns: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: int = 0
    tool_usage: Dict[str, int] = field(default_factory=dict)

    def add_response(self, response: Response) -> None:
        self.turns += 1
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens

    def add_tool_call(self, tool_name: str) -> None:
        self.tool_calls += 1
        self.tool_usage[tool_name] = self.tool_usage.get(tool_name, 0) + 1

    def to_dict(self) -> Dict[str, int]:
        """Counters reported in the CLI's JSON envelope."""
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "tool_calls": self.tool_calls,
        }

    def __str__(self) -> str:
        return (
            f"{self.input_tokens} input, {self.output_tokens} output "
            f"({self.turns} turns, {self.tool_calls} tool calls)"
        )


__all__ = ["ConversationUsage"]
