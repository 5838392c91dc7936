"""
Provider abstraction for model-agnostic tool calling.

Every adapter translates a unified `Request` into one vendor HTTP call and the
vendor's answer (or failure) back into a `Response` or a categorized
`ProviderError`. Adapters are the only layer that classifies raw transport and
decoding errors.
"""

from __future__ import annotations

import json
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar, runtime_checkable

import httpx

from ..context import DEADLINE_EXCEEDED, CallContext
from ..exceptions import ErrorCategory, ProviderError
from ..types import Request, Response

# Per-request ceiling applied when the call context carries no deadline.
DEFAULT_REQUEST_TIMEOUT = 600.0

StatusTable = Dict[int, ErrorCategory]
EnvelopeReader = Callable[[Any], Optional[str]]
T = TypeVar("T")


@runtime_checkable
class Provider(Protocol):
    """
    Interface every provider adapter must satisfy.

    `send` blocks until the vendor answers. It returns a `Response` or raises
    `ProviderError`; no other exception type may escape an adapter.
    """

    name: str

    def send(self, ctx: CallContext, request: Request) -> Response:
        """Send one completion request."""
        ...


def ensure_live(ctx: CallContext) -> None:
    """Fail fast with a timeout error when the context is already done."""
    reason = ctx.err()
    if reason is not None:
        raise ProviderError(ErrorCategory.TIMEOUT, reason)


def request_timeout(ctx: CallContext, ceiling: float) -> float:
    """Timeout for the next HTTP call: the context's remaining time, capped."""
    remaining = ctx.remaining()
    if remaining is None:
        return ceiling
    return min(remaining, ceiling)


def call_until_done(ctx: CallContext, call: Callable[[], T], name: str = "provider") -> T:
    """
    Run a blocking vendor call, giving up as soon as `ctx` is done.

    The call runs on a worker thread while the caller waits for whichever
    comes first: the call finishing, the context being cancelled, or the
    context deadline. An abandoned call keeps running until its own HTTP
    timeout and its outcome is discarded. A call that finishes after the
    context is done is discarded too.

    Raises:
        ProviderError: With category timeout when the context is done.
        Exception: Whatever `call` raised, re-raised in the caller.
    """
    cancelled: Future = Future()
    unregister = ctx.on_cancel(lambda: cancelled.set_result(None))
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"agentrelay-{name}")
    try:
        future = executor.submit(call)
        wait([future, cancelled], timeout=ctx.remaining(), return_when=FIRST_COMPLETED)
    finally:
        unregister()
        executor.shutdown(wait=False)

    reason = ctx.err()
    if future.done() and reason is None:
        return future.result()
    future.cancel()
    raise ProviderError(ErrorCategory.TIMEOUT, reason or DEADLINE_EXCEEDED)


def categorize_status(status: int, table: StatusTable) -> ErrorCategory:
    """Look up `status` in a provider's table; unknown codes are server errors."""
    return table.get(status, ErrorCategory.SERVER)


def status_error(
    response: httpx.Response,
    table: StatusTable,
    read_envelope: EnvelopeReader,
    cause: Optional[BaseException] = None,
) -> ProviderError:
    """
    Build the categorized error for a non-2xx vendor response.

    The message comes from the vendor's JSON error envelope when it parses,
    otherwise from the HTTP reason phrase for the status.
    """
    status = response.status_code
    message = httpx.codes.get_reason_phrase(status)
    try:
        extracted = read_envelope(json.loads(response.content))
    except (ValueError, TypeError, AttributeError):
        extracted = None
    if extracted:
        message = extracted
    return ProviderError(categorize_status(status, table), message, status=status, cause=cause)


def transport_error(ctx: CallContext, exc: BaseException) -> ProviderError:
    """Classify a failure that happened before any HTTP response arrived."""
    reason = ctx.err()
    if reason is not None:
        return ProviderError(ErrorCategory.TIMEOUT, reason, cause=exc)
    return ProviderError(ErrorCategory.SERVER, str(exc) or type(exc).__name__, cause=exc)


def timeout_error(ctx: CallContext, exc: BaseException) -> ProviderError:
    """Classify a transport-level timeout."""
    return ProviderError(ErrorCategory.TIMEOUT, ctx.err() or str(exc) or "request timed out", cause=exc)


def nested_error_message(body: Any) -> Optional[str]:
    """Read `{"error": {"message": ...}}` envelopes."""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str):
            return message
    return None


__all__ = [
    "Provider",
    "DEFAULT_REQUEST_TIMEOUT",
    "StatusTable",
    "ensure_live",
    "request_timeout",
    "call_until_done",
    "categorize_status",
    "status_error",
    "transport_error",
    "timeout_error",
    "nested_error_message",
]
