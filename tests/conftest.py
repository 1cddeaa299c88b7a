"""Pytest configuration and fixtures for ghost_admin tests.

This file provides:
- ChunkStream: A response body stream that records how often it is closed
- make_executor: An httpx.Client executor backed by a request handler
- Fixtures: A client wired to a recording mock server
"""

from __future__ import annotations

from typing import Callable, Iterator

import httpx
import pytest
from pydantic import BaseModel

from ghost_admin.client import AdminClient
from ghost_admin.transport import ContextTransport

BASE_URL = "https://blog.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


class Post(BaseModel):
    id: str
    title: str
    html: str | None = None


class PostsEnvelope(BaseModel):
    posts: list[Post]


class ChunkStream(httpx.SyncByteStream):
    """Response body that yields fixed chunks and counts close() calls.

    on_chunk(index) runs before each chunk is yielded, which lets tests
    cancel a context in the middle of a body.
    """

    def __init__(
        self,
        chunks: list[bytes],
        on_chunk: Callable[[int], None] | None = None,
    ) -> None:
        self.chunks = chunks
        self.on_chunk = on_chunk
        self.close_count = 0

    def __iter__(self) -> Iterator[bytes]:
        for index, chunk in enumerate(self.chunks):
            if self.on_chunk is not None:
                self.on_chunk(index)
            yield chunk

    def close(self) -> None:
        self.close_count += 1


def make_executor(handler: Handler) -> httpx.Client:
    """Create an executor that answers every request with handler."""
    return httpx.Client(transport=ContextTransport(httpx.MockTransport(handler)))


class RecordingServer:
    """Mock server returning a configurable response and recording requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.response_factory: Callable[[], httpx.Response] = lambda: httpx.Response(200)

    def respond_with(self, factory: Callable[[], httpx.Response]) -> None:
        self.response_factory = factory

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response_factory()


@pytest.fixture
def server() -> RecordingServer:
    return RecordingServer()


@pytest.fixture
def client(server: RecordingServer) -> Iterator[AdminClient]:
    executor = make_executor(server)
    try:
        yield AdminClient(BASE_URL, executor)
    finally:
        executor.close()
