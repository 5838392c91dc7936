"""
OpenAI provider adapter (function-call wire style).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import openai

from ..context import CallContext
from ..exceptions import ErrorCategory, ProviderConfigurationError, ProviderError
from ..types import Message, Request, Response, Role, Tool, ToolCall, flatten_arguments
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

DEFAULT_BASE_URL = "https://api.openai.com"

STATUS_TABLE: StatusTable = {
    400: ErrorCategory.BAD_REQUEST,
    401: ErrorCategory.AUTH,
    403: ErrorCategory.AUTH,
    404: ErrorCategory.BAD_REQUEST,
    429: ErrorCategory.RATE_LIMIT,
}


@dataclass
class OpenAIConfig:
    """
    Construction parameters for `OpenAIProvider`.

    Attributes:
        api_key: OpenAI API key. Required.
        base_url: Server root without the `/v1` suffix; it is added here.
        timeout: Per-request ceiling in seconds when the context has no deadline.
        http_client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_client: Optional[httpx.Client] = None


class OpenAIProvider(Provider):
    """Adapter that speaks to OpenAI's Chat Completions API."""

    name = "openai"

    def __init__(self, config: OpenAIConfig):
        if not config.api_key:
            raise ProviderConfigurationError(self.name, "API key", "OPENAI_API_KEY")

        self.config = config
        base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self._client = openai.OpenAI(
            api_key=config.api_key,
            base_url=f"{base_url}/v1",
            max_retries=0,
            http_client=config.http_client,
        )

    def send(self, ctx: CallContext, request: Request) -> Response:
        """
        Call Chat Completions for a non-streaming completion.

        Raises:
            ProviderError: Categorized failure (see STATUS_TABLE).
        """
        ensure_live(ctx)
        params = self.build_params(request)
        try:
            completion = call_until_done(
                ctx,
                lambda: self._client.chat.completions.create(
                    **params, timeout=request_timeout(ctx, self.config.timeout)
                ),
                self.name,
            )
        except openai.APITimeoutError as exc:
            raise timeout_error(ctx, exc) from exc
        except openai.APIConnectionError as exc:
            raise transport_error(ctx, exc) from exc
        except openai.APIStatusError as exc:
            raise status_error(exc.response, STATUS_TABLE, nested_error_message, cause=exc) from exc
        except openai.APIError as exc:
            raise ProviderError(
                ErrorCategory.SERVER, f"failed to parse response: {exc}", cause=exc
            ) from exc

        return self.parse_completion(completion)

    def build_params(self, request: Request) -> Dict[str, Any]:
        """Translate a unified request into Chat Completions keyword arguments."""
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": Role.SYSTEM.value, "content": request.system})
        for message in request.messages:
            messages.extend(self._format_message(message))

        params: Dict[str, Any] = {"model": request.model, "messages": messages}
        if request.temperature != 0:
            params["temperature"] = request.temperature
        if request.max_tokens != 0:
            params["max_tokens"] = request.max_tokens
        if request.tools:
            params["tools"] = [self._format_tool(t) for t in request.tools]
        return params

    def parse_completion(self, completion: Any) -> Response:
        """Translate a Chat Completions response into the unified model."""
        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise ProviderError(ErrorCategory.SERVER, "response contains no choices")

        choice = choices[0]
        message = getattr(choice, "message", None)
        tool_calls: List[ToolCall] = []
        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            tool_calls.append(
                ToolCall(
                    id=call.id,
                    name=function.name,
                    arguments=_decode_arguments(function.arguments),
                )
            )

        usage = getattr(completion, "usage", None)
        return Response(
            content=getattr(message, "content", None) or "",
            model=getattr(completion, "model", "") or "",
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            stop_reason=getattr(choice, "finish_reason", "") or "",
            tool_calls=tool_calls,
        )

    def _format_message(self, message: Message) -> List[Dict[str, Any]]:
        """
        Format one unified message; tool results fan out to one message each.
        """
        if message.role == Role.TOOL and message.tool_results:
            return [
                {"role": "tool", "tool_call_id": result.call_id, "content": result.content}
                for result in message.tool_results
            ]
        if message.role == Role.ASSISTANT and message.tool_calls:
            return [
                {
                    "role": "assistant",
                    "content": message.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(dict(call.arguments)),
                            },
                        }
                        for call in message.tool_calls
                    ],
                }
            ]
        return [{"role": message.role.value, "content": message.content}]

    @staticmethod
    def _format_tool(tool: Tool) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.json_schema(),
            },
        }


def _decode_arguments(raw: Optional[str]) -> Dict[str, str]:
    """Decode the JSON-string argument blob; malformed input yields no arguments."""
    if not raw:
        return {}
    try:
        return flatten_arguments(json.loads(raw))
    except (ValueError, TypeError):
        return {}


__all__ = ["OpenAIProvider", "OpenAIConfig"]
