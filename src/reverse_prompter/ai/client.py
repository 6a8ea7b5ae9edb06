"""Async streaming client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, cast

import httpx
from openai import APIStatusError, AsyncOpenAI, OpenAIError
from openai.types.chat import ChatCompletionMessageParam

from ..errors import ProviderError

LOGGER = logging.getLogger(__name__)

# ValueError covers json.JSONDecodeError from a malformed SSE ``data:`` line.
# httpx.StreamError is a RuntimeError, not an httpx.HTTPError.
_PROVIDER_FAILURES: tuple[type[BaseException], ...] = (
    OpenAIError,
    httpx.HTTPError,
    httpx.StreamError,
    ValueError,
)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    organization: str | None = None
    request_timeout: float | None = 60.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class AIClient:
    """Opens one streamed chat completion per call and yields text deltas.

    Failures are never retried. They surface as :class:`ProviderError`.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def stream_text(
        self,
        messages: Iterable[Mapping[str, Any] | ChatCompletionMessageParam],
        *,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Yield the content delta of every streamed chunk in arrival order.

        Chunks without text content yield ``""``.

        Raises:
            ProviderError: If the request cannot be opened or the stream breaks.
        """

        payload = self._build_chat_payload(self._coerce_messages(messages), model=model)
        LOGGER.debug(
            "Starting streamed chat completion via %s with %s message(s)",
            payload["model"],
            len(payload["messages"]),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            stream = await self._client.chat.completions.create(**payload)
        except _PROVIDER_FAILURES as exc:
            raise _provider_error(exc) from exc

        try:
            async for chunk in stream:
                yield _delta_text(chunk)
        except _PROVIDER_FAILURES as exc:
            raise _provider_error(exc) from exc
        finally:
            await _close_stream(stream)

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _coerce_messages(
        self, messages: Iterable[Mapping[str, Any] | ChatCompletionMessageParam]
    ) -> List[ChatCompletionMessageParam]:
        normalized = [cast(ChatCompletionMessageParam, dict(message)) for message in messages]
        if not normalized:
            raise ValueError("At least one message is required to start a chat")
        return normalized

    def _build_chat_payload(
        self, messages: List[ChatCompletionMessageParam], *, model: str | None
    ) -> Dict[str, Any]:
        return {
            "model": model or self._settings.model,
            "messages": messages,
            "stream": True,
        }

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


def _delta_text(chunk: Any) -> str:
    choices = getattr(chunk, "choices", None) or ()
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    content = getattr(delta, "content", None)
    return content if isinstance(content, str) else ""


async def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


def _provider_error(exc: Exception) -> ProviderError:
    status_code = exc.status_code if isinstance(exc, APIStatusError) else None
    detail = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    LOGGER.warning("Model provider request failed: %s", detail)
    return ProviderError(
        message=f"Model request failed: {detail}",
        details={"exception": type(exc).__name__},
        status_code=status_code,
    )


__all__ = ["AIClient", "ClientSettings"]
