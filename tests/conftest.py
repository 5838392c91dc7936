"""
Pytest configuration for agentrelay tests.

Registers the e2e marker and option, and provides the shared HTTP recording
transport and the scripted fake provider used across the suite.
"""

from __future__ import annotations

import copy
import json
import threading
from typing import Any, Callable, List, Union

import httpx
import pytest

from agentrelay.context import CallContext
from agentrelay.types import Request, Response


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run end-to-end tests with real API calls",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end (requires real API keys, use --run-e2e to run)"
    )
    config.addinivalue_line("markers", "openai: mark test as requiring OpenAI API key")
    config.addinivalue_line("markers", "anthropic: mark test as requiring Anthropic API key")
    config.addinivalue_line("markers", "ollama: mark test as requiring a running Ollama server")


def pytest_collection_modifyitems(config, items):
    """Skip e2e tests unless --run-e2e is passed."""
    if config.getoption("--run-e2e"):
        return

    skip_e2e = pytest.mark.skip(reason="Need --run-e2e option to run end-to-end tests")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


# ---------------------------------------------------------------------------
# HTTP recording
# ---------------------------------------------------------------------------

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class RecordingTransport:
    """
    Serves queued replies through `httpx.MockTransport` and records requests.

    The last reply repeats once the queue is exhausted. Exceptions are raised
    from inside the transport, the way a real network failure would be.
    """

    def __init__(self, *replies: Reply):
        self.replies = list(replies)
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies[min(len(self.requests) - 1, len(self.replies) - 1)]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply) and not isinstance(reply, httpx.Response):
            return reply(request)
        return reply

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def recording_transport():
    """Factory for RecordingTransport instances."""
    return RecordingTransport


class StalledReply:
    """
    Reply that holds the request open, like a vendor that is slow to answer.

    `on_start` runs once the request reaches the transport. The reply then
    blocks until released (or `limit` seconds pass) and returns `response`.
    """

    def __init__(
        self,
        response: httpx.Response,
        on_start: Callable[[], None] = lambda: None,
        limit: float = 5.0,
    ):
        self.response = response
        self.on_start = on_start
        self.limit = limit
        self.release = threading.Event()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.on_start()
        self.release.wait(self.limit)
        return self.response


@pytest.fixture
def stalled_reply():
    """Factory for StalledReply instances; all are released at teardown."""
    created: List[StalledReply] = []

    def make(response: httpx.Response, on_start: Callable[[], None] = lambda: None) -> StalledReply:
        reply = StalledReply(response, on_start)
        created.append(reply)
        return reply

    yield make
    for reply in created:
        reply.release.set()


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------


class FakeProvider:
    """Provider stub that returns (or raises) queued items and records requests."""

    name = "fake"

    def __init__(self, responses: List[Union[Response, Exception, str]]):
        self.responses = list(responses)
        self.calls = 0
        self.requests: List[Request] = []
        self.contexts: List[CallContext] = []

    def send(self, ctx: CallContext, request: Request) -> Response:
        self.requests.append(copy.deepcopy(request))
        self.contexts.append(ctx)
        item = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return Response(content=item, model="fake-model", stop_reason="end_turn")
        return item


@pytest.fixture
def fake_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


