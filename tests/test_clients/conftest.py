"""Client-specific fixtures: a mock API server and a stream body the test feeds by hand."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx
import pytest

BASE_URL = "https://k8s.test"

_EOF = object()

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


class StreamFeed:
    """Response body whose chunks arrive only when the test pushes them."""

    def __init__(self) -> None:
        self._chunks: asyncio.Queue[Any] = asyncio.Queue()

    def push(self, *texts: str) -> None:
        for text in texts:
            self._chunks.put_nowait(text.encode())

    def end(self) -> None:
        self._chunks.put_nowait(_EOF)

    def fail(self, error: Exception) -> None:
        self._chunks.put_nowait(error)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._chunks.get()
            if chunk is _EOF:
                return
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


class MockApiServer:
    """Records every request and answers with ``handler``, or streams ``feed`` by default."""

    def __init__(self, feed: StreamFeed) -> None:
        self.feed = feed
        self.requests: list[httpx.Request] = []
        self.handler: Handler | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            return httpx.Response(200, content=self.feed)
        response = self.handler(request)
        if isinstance(response, Awaitable):
            response = await response
        return response

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def feed() -> StreamFeed:
    return StreamFeed()


@pytest.fixture
def api(feed: StreamFeed) -> MockApiServer:
    return MockApiServer(feed)


@pytest.fixture
async def http(api: MockApiServer) -> AsyncIterator[httpx.AsyncClient]:
    """AsyncClient routed to the mock API server."""
    async with httpx.AsyncClient(base_url=BASE_URL, transport=api.transport()) as client:
        yield client
