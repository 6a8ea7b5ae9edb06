"""Prompt request sequencing with a per-instance single-flight guard.

A :class:`ReversePrompter` runs at most one request at a time. Its state moves
``IDLE -> VALIDATING -> (IDLE | STREAMING) -> IDLE`` and every other edge is
refused. The guard is owned by the instance rather than by the process, and it
is released on every exit path of the returned :class:`FragmentStream`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable, Mapping, Protocol

from ..errors import ConfigurationError, InputTooShortError, RequestInProgressError
from ..notifications import LoggingNotifier, Notifier
from .client import AIClient, ClientSettings

if TYPE_CHECKING:  # pragma: no cover
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

MIN_CONTEXT_LENGTH = 2
REQUEST_STARTED_MESSAGE = "Requesting reverse prompt..."


class RequestState(str, Enum):
    """Lifecycle of one generation request."""

    IDLE = "idle"
    VALIDATING = "validating"
    STREAMING = "streaming"


_TRANSITIONS: Mapping[RequestState, frozenset[RequestState]] = {
    RequestState.IDLE: frozenset({RequestState.VALIDATING}),
    RequestState.VALIDATING: frozenset({RequestState.IDLE, RequestState.STREAMING}),
    RequestState.STREAMING: frozenset({RequestState.IDLE}),
}


@dataclass(slots=True, frozen=True)
class RequestConfiguration:
    """Per-call snapshot of everything a request needs. Never mutated."""

    api_key: str
    prompt: str
    model: str
    prefix: str = "> AI: "
    postfix: str = "\n"
    include_source_path: bool = False
    base_url: str = "https://api.openai.com/v1"
    organization: str | None = None
    request_timeout: float | None = 60.0
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestConfiguration":
        return cls(
            api_key=settings.api_key,
            prompt=settings.prompt,
            model=settings.model,
            prefix=settings.prefix,
            postfix=settings.postfix,
            include_source_path=settings.include_source_path,
            base_url=settings.base_url,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            debug_logging=settings.debug_logging,
        )

    def client_settings(self) -> ClientSettings:
        return ClientSettings(
            api_key=self.api_key,
            model=self.model,
            base_url=self.base_url,
            organization=self.organization,
            request_timeout=self.request_timeout,
            debug_logging=self.debug_logging,
        )


class ChatStreamer(Protocol):
    """Model provider collaborator: one streamed chat completion per call."""

    def stream_text(
        self, messages: Iterable[Mapping[str, Any]], *, model: str | None = None
    ) -> AsyncIterator[str]:
        ...


def build_messages(context_text: str, config: RequestConfiguration) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": config.prompt},
        {"role": "user", "content": context_text},
    ]


class FragmentStream:
    """Cancellable async iterator over the fragments of one response.

    The provider connection opens on the first ``__anext__``. Once exhausted,
    failed or cancelled the stream stays done and cannot be restarted.

    Attributes:
        done: True once the stream has finished for any reason.
        cancelled: True if :meth:`cancel` ended the stream early.
        error: The exception that ended the stream, if any.
        fragment_count: Number of fragments yielded so far.
    """

    def __init__(
        self,
        owner: ReversePrompter,
        messages: list[dict[str, str]],
        config: RequestConfiguration,
        client: ChatStreamer | None,
    ) -> None:
        self._owner = owner
        self._messages = messages
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._iterator: AsyncIterator[str] | None = None
        self._reading = False
        self.done = False
        self.cancelled = False
        self.error: BaseException | None = None
        self.fragment_count = 0

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> str:
        if self.done or self.cancelled:
            raise StopAsyncIteration
        self._reading = True
        try:
            if self._iterator is None:
                self._iterator = self._open()
            fragment = await self._iterator.__anext__()
        except StopAsyncIteration:
            LOGGER.debug("Reverse prompt stream finished after %s fragment(s)", self.fragment_count)
            await self._finish()
            raise
        except BaseException as exc:
            self.error = exc
            self.cancelled = self.cancelled or isinstance(exc, asyncio.CancelledError)
            await self._finish()
            raise
        finally:
            self._reading = False
        if self.cancelled:
            # cancel() arrived while this read was pending
            await self._finish()
            raise StopAsyncIteration
        self.fragment_count += 1
        return fragment

    async def cancel(self) -> None:
        """Stop the stream early and release the single-flight guard.

        Called from another task while a fragment is being awaited, the stream
        stops as soon as that read returns and its fragment is dropped.
        """

        if self.done:
            return
        self.cancelled = True
        LOGGER.debug("Reverse prompt stream cancelled after %s fragment(s)", self.fragment_count)
        if self._reading:
            return
        await self._finish()

    async def aclose(self) -> None:
        await self.cancel()

    async def __aenter__(self) -> "FragmentStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.cancel()
        return False

    def _open(self) -> AsyncIterator[str]:
        if self._client is None:
            self._client = AIClient(self._config.client_settings())
        return self._client.stream_text(self._messages, model=self._config.model)

    async def _finish(self) -> None:
        if self.done:
            return
        self.done = True
        try:
            aclose = getattr(self._iterator, "aclose", None)
            if aclose is not None:
                await aclose()
            if self._owns_client and isinstance(self._client, AIClient):
                await self._client.aclose()
        finally:
            self._owner._release(self)


class ReversePrompter:
    """Validates a request and hands out the stream of model fragments.

    Args:
        client: Provider used for every request. When omitted a fresh
            :class:`AIClient` is built from each request's configuration and
            closed when its stream ends.
        notifier: Receives the "request started" notification.
    """

    def __init__(self, client: ChatStreamer | None = None, *, notifier: Notifier | None = None) -> None:
        self._client = client
        self._notifier = notifier or LoggingNotifier()
        self._state = RequestState.IDLE
        self._active: FragmentStream | None = None

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def active_stream(self) -> FragmentStream | None:
        return self._active

    def is_busy(self) -> bool:
        return self._state is not RequestState.IDLE

    def generate(self, context_text: str, config: RequestConfiguration) -> FragmentStream:
        """Validate the request and return its fragment stream.

        Raises:
            RequestInProgressError: If another stream is still active.
            ConfigurationError: If no API key is configured.
            InputTooShortError: If ``context_text`` is shorter than
                :data:`MIN_CONTEXT_LENGTH`.
        """

        if self.is_busy():
            raise RequestInProgressError()

        self._transition(RequestState.VALIDATING)
        try:
            self._validate(context_text, config)
        except Exception:
            self._transition(RequestState.IDLE)
            raise

        stream = FragmentStream(self, build_messages(context_text, config), config, self._client)
        self._active = stream
        self._transition(RequestState.STREAMING)
        LOGGER.debug("Sending %s character(s) of context to %s", len(context_text), config.model)
        self._notifier.notify(REQUEST_STARTED_MESSAGE)
        return stream

    @staticmethod
    def _validate(context_text: str, config: RequestConfiguration) -> None:
        if not config.api_key.strip():
            raise ConfigurationError(message="OpenAI API Key is not set", field_name="api_key")
        if len(context_text) < MIN_CONTEXT_LENGTH:
            raise InputTooShortError(length=len(context_text), minimum=MIN_CONTEXT_LENGTH)

    def _release(self, stream: FragmentStream) -> None:
        if stream is not self._active:
            return
        self._active = None
        self._transition(RequestState.IDLE)

    def _transition(self, target: RequestState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal request state transition {self._state.value} -> {target.value}")
        LOGGER.debug("Request state %s -> %s", self._state.value, target.value)
        self._state = target


__all__ = [
    "ChatStreamer",
    "FragmentStream",
    "MIN_CONTEXT_LENGTH",
    "RequestConfiguration",
    "RequestState",
    "ReversePrompter",
    "build_messages",
]
