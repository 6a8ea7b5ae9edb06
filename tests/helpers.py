"""Shared test fakes for the OpenAI SDK and the model provider.

Import from here instead of redefining stubs in each test module.
"""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any, AsyncIterator, Iterable, Mapping, Sequence

import httpx
from openai import APIConnectionError, AsyncOpenAI


def make_chunk(content: str | None) -> SimpleNamespace:
    """Build an object shaped like a ``ChatCompletionChunk``."""

    return SimpleNamespace(choices=[SimpleNamespace(index=0, delta=SimpleNamespace(content=content))])


def connection_error(message: str = "Connection error.") -> APIConnectionError:
    return APIConnectionError(message=message, request=httpx.Request("POST", "http://local/chat/completions"))


class FakeChunkStream:
    """Async iterator standing in for the SDK's ``AsyncStream``."""

    def __init__(self, chunks: Iterable[Any], *, error: Exception | None = None) -> None:
        self._iterator = iter(list(chunks))
        self._error = error
        self.closed = False

    def __aiter__(self) -> "FakeChunkStream":
        return self

    async def __anext__(self) -> Any:
        try:
            return next(self._iterator)
        except StopIteration:
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration

    async def close(self) -> None:
        self.closed = True


class FakeCompletions:
    def __init__(
        self,
        chunks: Iterable[Any],
        *,
        stream_error: Exception | None = None,
        open_error: Exception | None = None,
    ) -> None:
        self._chunks = list(chunks)
        self._stream_error = stream_error
        self._open_error = open_error
        self.calls: list[dict[str, Any]] = []
        self.streams: list[FakeChunkStream] = []

    async def create(self, **kwargs: Any) -> FakeChunkStream:
        self.calls.append(kwargs)
        if self._open_error is not None:
            raise self._open_error
        stream = FakeChunkStream(self._chunks, error=self._stream_error)
        self.streams.append(stream)
        return stream


def make_openai(
    chunks: Iterable[Any] = (),
    *,
    stream_error: Exception | None = None,
    open_error: Exception | None = None,
) -> SimpleNamespace:
    """Return an object exposing ``chat.completions.create`` like ``AsyncOpenAI``."""

    completions = FakeCompletions(chunks, stream_error=stream_error, open_error=open_error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class FakeStreamer:
    """Model provider stub yielding canned fragments.

    When ``gate`` is set the stream pauses after the first fragment until the
    event is released, which keeps a request in flight for concurrency tests.
    """

    def __init__(
        self,
        fragments: Sequence[str] = (),
        *,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.gate = gate
        self.calls: list[dict[str, Any]] = []
        self.closed_streams = 0

    async def stream_text(
        self, messages: Iterable[Mapping[str, Any]], *, model: str | None = None
    ) -> AsyncIterator[str]:
        self.calls.append({"messages": [dict(message) for message in messages], "model": model})
        try:
            for index, fragment in enumerate(self.fragments):
                yield fragment
                if index == 0 and self.gate is not None:
                    await self.gate.wait()
            if self.error is not None:
                raise self.error
        finally:
            self.closed_streams += 1


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


def sse_chunk(content: str) -> bytes:
    """Encode one ``chat.completion.chunk`` as a server-sent event."""

    payload = {
        "id": "chatcmpl-test",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "gpt-3.5-turbo",
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": None}],
    }
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


def sse_openai(body: bytes) -> AsyncOpenAI:
    """Real ``AsyncOpenAI`` client whose transport replays ``body`` as an event stream."""

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=body,
            request=request,
        )

    return AsyncOpenAI(
        api_key="sk-test",
        base_url="http://local/v1",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_handler)),
    )
