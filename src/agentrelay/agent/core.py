"""
Provider-agnostic conversation loop with native tool calling.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..context import CallContext
from ..exceptions import ConversationLimitError
from ..providers.base import Provider
from ..types import Message, Request, Response, Role, ToolCall, ToolResult
from ..usage import ConversationUsage

logger = logging.getLogger(__name__)

MAX_CONVERSATION_TURNS = 50

ToolHandler = Callable[[CallContext, ToolCall], ToolResult]


class ConversationEngine:
    """
    Drives one request through a provider until the model stops calling tools.

    The engine manages the loop of:
    1. Sending the request (full history) to the provider
    2. Returning the response when it carries no tool calls
    3. Otherwise executing each requested tool, in order, one at a time
    4. Appending the assistant turn and the tool results, then repeating

    Provider failures propagate unchanged. A model that keeps calling tools
    past `max_turns` sends raises `ConversationLimitError`.

    Attributes:
        provider: Adapter used for every turn.
        tool_handlers: Tool name to handler. Unknown names yield an error result.
        max_turns: Send ceiling. Default: 50.
        usage: Cumulative usage of the most recent `run`.

    Example:
        >>> engine = ConversationEngine(provider, {"call_agent": handler})
        >>> response = engine.run(CallContext.background(), request)
        >>> print(response.content, engine.usage)
    """

    def __init__(
        self,
        provider: Provider,
        tool_handlers: Optional[Dict[str, ToolHandler]] = None,
        max_turns: int = MAX_CONVERSATION_TURNS,
    ):
        self.provider = provider
        self.tool_handlers = dict(tool_handlers or {})
        self.max_turns = max_turns
        self.usage = ConversationUsage()

    def run(self, ctx: CallContext, request: Request) -> Response:
        """
        Run the conversation to completion.

        `request.messages` is extended in place with every assistant tool-call
        turn and its tool results.

        Raises:
            ProviderError: If any provider call fails.
            ConversationLimitError: If the turn ceiling is reached.
        """
        self.usage = ConversationUsage()

        for turn in range(1, self.max_turns + 1):
            logger.info(
                "[turn %d] Sending request (%d messages)", turn, len(request.messages)
            )
            response = self.provider.send(ctx, request)
            self.usage.add_response(response)
            logger.info(
                "[turn %d] Received response: %s (%d tool calls)",
                turn,
                response.stop_reason or "-",
                len(response.tool_calls),
            )

            # A model may hallucinate a tool call when none were offered.
            if not response.tool_calls or not request.tools:
                return response

            request.messages.append(
                Message(
                    role=Role.ASSISTANT,
                    content=response.content,
                    tool_calls=list(response.tool_calls),
                )
            )
            results = self._execute_tool_calls(ctx, response.tool_calls)
            request.messages.append(Message(role=Role.TOOL, tool_results=results))

        raise ConversationLimitError(self.max_turns)

    def _execute_tool_calls(self, ctx: CallContext, calls: List[ToolCall]) -> List[ToolResult]:
        results: List[ToolResult] = []
        for call in calls:
            self.usage.add_tool_call(call.name)
            handler = self.tool_handlers.get(call.name)
            if handler is None:
                logger.warning("Model requested unknown tool %r", call.name)
                results.append(
                    ToolResult(call_id=call.id, content=f'Unknown tool: "{call.name}"', is_error=True)
                )
                continue
            results.append(handler(ctx, call))
        return results


__all__ = ["ConversationEngine", "MAX_CONVERSATION_TURNS", "ToolHandler"]
