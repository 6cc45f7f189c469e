"""
Shared fixtures for relay tests.

Upstream providers are faked two ways:
- FakeUpstream: a ByteStream handed straight to ChatRelay
- httpx.MockTransport: plugged into UpstreamClient for HTTP-level tests
"""
import asyncio
import json
from typing import Callable, Iterable, List, Optional

import httpx
import pytest

from chat_relay.services.upstream import UpstreamClient


def upstream_sse(*deltas: str, done: bool = True) -> bytes:
    """Build a provider SSE body the way OpenRouter frames a streamed completion."""
    frames = [": OPENROUTER PROCESSING"]
    frames.append("data: " + json.dumps({"choices": [{"index": 0, "delta": {"role": "assistant"}}]}))
    for delta in deltas:
        chunk = {"choices": [{"index": 0, "delta": {"content": delta}, "finish_reason": None}]}
        frames.append("data: " + json.dumps(chunk))
    frames.append("data: " + json.dumps({"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]}))
    if done:
        frames.append("data: [DONE]")
    return ("\n\n".join(frames) + "\n\n").encode("utf-8")


def split_bytes(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class FakeUpstream:
    """Upstream stream double that records how often it was closed."""

    provider = "fake"
    model = "fake-model"

    def __init__(
        self,
        chunks: Iterable[bytes],
        hang: bool = False,
        error: Optional[Exception] = None,
    ):
        self.chunks = list(chunks)
        self.hang = hang
        self.error = error
        self.close_calls = 0

    async def aiter_bytes(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.close_calls += 1


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in the given pieces."""

    def __init__(self, chunks: Iterable[bytes]):
        self.chunks = list(chunks)

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


async def collect(relay) -> List[str]:
    return [frame async for frame in relay.frames()]


def make_upstream_client(handler: Callable[[httpx.Request], httpx.Response]) -> UpstreamClient:
    return UpstreamClient(
        base_url="https://llm.test/api/v1",
        api_key="sk-test",
        default_model="openai/gpt-3.5-turbo",
        extra_headers={"X-Title": "Brainrack AI"},
        connect_timeout=1.0,
        idle_timeout=1.0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def upstream_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def make_app(upstream_requests):
    """Build the app with the upstream provider replaced by a handler."""
    from chat_relay.api.dependencies.relay import get_upstream_client
    from main import create_app

    def factory(handler: Callable[[httpx.Request], httpx.Response]):
        def recording_handler(request: httpx.Request) -> httpx.Response:
            upstream_requests.append(request)
            return handler(request)

        app = create_app()
        client = make_upstream_client(recording_handler)
        app.dependency_overrides[get_upstream_client] = lambda: client
        return app

    return factory
