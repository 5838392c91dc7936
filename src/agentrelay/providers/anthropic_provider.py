"""
Anthropic provider adapter (content-block wire style).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import anthropic
import httpx

from ..context import CallContext
from ..exceptions import ErrorCategory, ProviderConfigurationError, ProviderError
from ..types import (
    ContentBlocks,
    Message,
    MessageContent,
    PlainText,
    Request,
    Response,
    Role,
    Tool,
    ToolCall,
    flatten_arguments,
)
from .base import (
    DEFAULT_REQUEST_TIMEOUT,
    Provider,
    StatusTable,
    call_until_done,
    ensure_live,
    nested_error_message,
    request_timeout,
    status_error,
    timeout_error,
    transport_error,
)

DEFAULT_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"

# The Messages API rejects requests without a positive max_tokens.
DEFAULT_MAX_TOKENS = 4096

STATUS_TABLE: StatusTable = {
    400: ErrorCategory.BAD_REQUEST,
    401: ErrorCategory.AUTH,
    429: ErrorCategory.RATE_LIMIT,
    529: ErrorCategory.OVERLOADED,
}


@dataclass
class AnthropicConfig:
    """
    Construction parameters for `AnthropicProvider`.

    Attributes:
        api_key: Anthropic API key. Required.
        base_url: API root; `/v1/messages` is appended by the client.
        timeout: Per-request ceiling in seconds when the context has no deadline.
        http_client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_client: Optional[httpx.Client] = None


class AnthropicProvider(Provider):
    """Anthropic Messages API adapter."""

    name = "anthropic"

    def __init__(self, config: AnthropicConfig):
        if not config.api_key:
            raise ProviderConfigurationError(self.name, "API key", "ANTHROPIC_API_KEY")

        self.config = config
        self._client = anthropic.Anthropic(
            api_key=config.api_key,
            base_url=config.base_url or DEFAULT_BASE_URL,
            max_retries=0,
            http_client=config.http_client,
            default_headers={"anthropic-version": ANTHROPIC_VERSION},
        )

    def send(self, ctx: CallContext, request: Request) -> Response:
        """
        Call the Messages API for a non-streaming completion.

        Raises:
            ProviderError: Categorized failure (see STATUS_TABLE).
        """
        ensure_live(ctx)
        params = self.build_params(request)
        try:
            message = call_until_done(
                ctx,
                lambda: self._client.messages.create(
                    **params, timeout=request_timeout(ctx, self.config.timeout)
                ),
                self.name,
            )
        except anthropic.APITimeoutError as exc:
            raise timeout_error(ctx, exc) from exc
        except anthropic.APIConnectionError as exc:
            raise transport_error(ctx, exc) from exc
        except anthropic.APIStatusError as exc:
            raise status_error(exc.response, STATUS_TABLE, nested_error_message, cause=exc) from exc
        except anthropic.APIError as exc:
            raise ProviderError(
                ErrorCategory.SERVER, f"failed to parse response: {exc}", cause=exc
            ) from exc

        return self.parse_message(message)

    def build_params(self, request: Request) -> Dict[str, Any]:
        """Translate a unified request into Messages API keyword arguments."""
        params: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [self._format_message(m) for m in request.messages],
        }
        if request.system:
            params["system"] = request.system
        if request.temperature != 0:
            params["temperature"] = request.temperature
        if request.tools:
            params["tools"] = [self._format_tool(t) for t in request.tools]
        return params

    def parse_message(self, message: Any) -> Response:
        """Translate a Messages API response into the unified model."""
        blocks = getattr(message, "content", None) or []
        if not blocks:
            raise ProviderError(ErrorCategory.SERVER, "response contains no content")

        text = ""
        tool_calls: List[ToolCall] = []
        for block in blocks:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text += block.text
            elif block_type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=flatten_arguments(block.input))
                )

        usage = getattr(message, "usage", None)
        return Response(
            content=text,
            model=getattr(message, "model", "") or "",
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            stop_reason=getattr(message, "stop_reason", "") or "",
            tool_calls=tool_calls,
        )

    def _format_message(self, message: Message) -> Dict[str, Any]:
        """
        Format one message for the Messages API.

        Tool results travel as a `user` message of `tool_result` blocks, and
        assistant turns that called tools become `text` + `tool_use` blocks.
        """
        role = message.role.value
        content: MessageContent
        if message.role == Role.TOOL and message.tool_results:
            role = Role.USER.value
            content = ContentBlocks(
                [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.call_id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                    for result in message.tool_results
                ]
            )
        elif message.role == Role.ASSISTANT and message.tool_calls:
            blocks: List[Dict[str, Any]] = []
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": dict(call.arguments),
                    }
                )
            content = ContentBlocks(blocks)
        else:
            content = PlainText(message.content)
        return {"role": role, "content": content.to_wire()}

    @staticmethod
    def _format_tool(tool: Tool) -> Dict[str, Any]:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.json_schema(),
        }


__all__ = ["AnthropicProvider", "AnthropicConfig", "ANTHROPIC_VERSION", "DEFAULT_MAX_TOKENS"]
