"""
Ollama provider adapter for local LLM inference (reduced wire style).

Talks to Ollama's native `/api/chat` endpoint. The dialect carries no tool-call
ids: arguments travel as JSON objects, tool results are correlated by order,
and the adapter synthesizes positional ids (`ollama_0`, `ollama_1`, ...) for
each response.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..context import CallContext
from ..exceptions import ErrorCategory, ProviderError
from ..types import Message, Request, Response, Role, Tool, ToolCall, flatten_arguments
from .base import (
    DEFAULT_REQUEST_TIMEOUT,
    Provider,
    StatusTable,
    call_until_done,
    ensure_live,
    request_timeout,
    status_error,
    timeout_error,
    transport_error,
)

DEFAULT_BASE_URL = "http://localhost:11434"

STATUS_TABLE: StatusTable = {
    400: ErrorCategory.BAD_REQUEST,
    404: ErrorCategory.BAD_REQUEST,
}


@dataclass
class OllamaConfig:
    """
    Construction parameters for `OllamaProvider`.

    Attributes:
        base_url: Ollama server root. Default: http://localhost:11434
        timeout: Per-request ceiling in seconds when the context has no deadline.
        http_client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    http_client: Optional[httpx.Client] = None


class OllamaProvider(Provider):
    """
    Adapter for Ollama's native chat API.

    Features:
    - No API key required (runs locally)
    - Privacy-preserving (no data sent to cloud)

    Note:
        Requires Ollama to be installed and running. Start it with `ollama serve`.
    """

    name = "ollama"

    def __init__(self, config: Optional[OllamaConfig] = None):
        self.config = config or OllamaConfig()
        self.base_url = (self.config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self._client = self.config.http_client or httpx.Client(follow_redirects=False)

    def send(self, ctx: CallContext, request: Request) -> Response:
        """
        POST to `/api/chat` with streaming disabled.

        Raises:
            ProviderError: Categorized failure. A refused connection is reported
                as a server error naming the configured base URL.
        """
        ensure_live(ctx)
        body = self.build_body(request)
        try:
            http_response = call_until_done(
                ctx,
                lambda: self._client.post(
                    f"{self.base_url}/api/chat",
                    json=body,
                    timeout=request_timeout(ctx, self.config.timeout),
                ),
                self.name,
            )
        except httpx.TimeoutException as exc:
            raise timeout_error(ctx, exc) from exc
        except httpx.TransportError as exc:
            if ctx.err() is None and _is_connection_refused(exc):
                raise ProviderError(
                    ErrorCategory.SERVER,
                    f"connection refused: is Ollama running? (expected at {self.base_url})",
                    cause=exc,
                ) from exc
            raise transport_error(ctx, exc) from exc

        if not http_response.is_success:
            raise status_error(http_response, STATUS_TABLE, _error_message)

        try:
            payload = http_response.json()
        except ValueError as exc:
            raise ProviderError(
                ErrorCategory.SERVER, f"failed to parse response: {exc}", cause=exc
            ) from exc
        return self.parse_payload(payload)

    def build_body(self, request: Request) -> Dict[str, Any]:
        """Translate a unified request into an `/api/chat` JSON body."""
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": Role.SYSTEM.value, "content": request.system})
        for message in request.messages:
            messages.extend(self._format_message(message))

        body: Dict[str, Any] = {"model": request.model, "messages": messages, "stream": False}

        options: Dict[str, Any] = {}
        if request.temperature != 0:
            options["temperature"] = request.temperature
        if request.max_tokens != 0:
            options["num_predict"] = request.max_tokens
        if options:
            body["options"] = options

        if request.tools:
            body["tools"] = [self._format_tool(t) for t in request.tools]
        return body

    def parse_payload(self, payload: Any) -> Response:
        """Translate an `/api/chat` response body into the unified model."""
        if not isinstance(payload, dict):
            raise ProviderError(ErrorCategory.SERVER, "failed to parse response: expected object")

        message = payload.get("message") or {}
        if not isinstance(message, dict):
            raise ProviderError(
                ErrorCategory.SERVER, "failed to parse response: message is not an object"
            )
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise ProviderError(
                ErrorCategory.SERVER, "failed to parse response: content is not a string"
            )

        wire_calls = message.get("tool_calls") or []
        if not isinstance(wire_calls, list):
            raise ProviderError(
                ErrorCategory.SERVER, "failed to parse response: tool_calls is not a list"
            )
        tool_calls: List[ToolCall] = []
        for index, wire in enumerate(wire_calls):
            function = wire.get("function") if isinstance(wire, dict) else None
            if not isinstance(function, dict):
                raise ProviderError(
                    ErrorCategory.SERVER, "failed to parse response: malformed tool call"
                )
            tool_calls.append(
                ToolCall(
                    id=f"{self.name}_{index}",
                    name=str(function.get("name") or ""),
                    arguments=flatten_arguments(function.get("arguments")),
                )
            )

        if not tool_calls and not content:
            raise ProviderError(ErrorCategory.SERVER, "response contains no content")

        return Response(
            content=content,
            model=payload.get("model", ""),
            input_tokens=payload.get("prompt_eval_count", 0) or 0,
            output_tokens=payload.get("eval_count", 0) or 0,
            stop_reason=payload.get("done_reason", ""),
            tool_calls=tool_calls,
        )

    def _format_message(self, message: Message) -> List[Dict[str, Any]]:
        if message.role == Role.TOOL and message.tool_results:
            # No tool_call_id on this wire; order carries the correlation.
            return [{"role": "tool", "content": result.content} for result in message.tool_results]
        if message.role == Role.ASSISTANT and message.tool_calls:
            return [
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [
                        {"function": {"name": call.name, "arguments": dict(call.arguments)}}
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


def _error_message(body: Any) -> Optional[str]:
    """Ollama error envelopes are `{"error": "<text>"}`."""
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, str) else None


def _is_connection_refused(exc: BaseException) -> bool:
    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, ConnectionRefusedError):
            return True
        if "connection refused" in str(current).lower():
            return True
        current = current.__cause__ or current.__context__
    return False


__all__ = ["OllamaProvider", "OllamaConfig"]
