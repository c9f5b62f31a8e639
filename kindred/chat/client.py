"""Completion client -- sends a user message to the remote chat API.

Builds the request (persona prompt + windowed history + new message),
walks the candidate models through FallbackPolicy, and either streams
the reply through a chunk sink or reads it whole. Uses direct httpx
calls against the OpenAI-compatible /chat/completions endpoint.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from kindred.chat import catalog
from kindred.chat.decoder import ChunkSink, read_stream
from kindred.chat.errors import (
    ConfigurationError,
    RemoteRejection,
    RequestCancelledError,
    StreamDecodeError,
    TransportError,
)
from kindred.chat.fallback import FallbackPolicy
from kindred.chat.persona import PERSONA_PROMPT
from kindred.chat.schemas import ConversationTurn, ModelInfo, Role
from kindred.config import Settings

logger = logging.getLogger(__name__)

# Prior user/assistant turns forwarded per request
HISTORY_WINDOW = 10
COMPLETIONS_PATH = "/chat/completions"

EMPTY_REPLY = (
    "I apologize, but I encountered an issue generating a response. Please try again."
)

HistoryItem = ConversationTurn | Mapping[str, Any]


class CompletionClient:
    """Chat-completion client with multi-model fallback and streaming.

    Construct once from Settings and pass it to whatever needs it.
    Calls are independent; the only state shared between them is the
    last model that answered, kept for status display.
    """

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._http = http
        self._owns_http = http is None
        self._current_model = settings.candidate_models[0]

    async def start(self) -> None:
        """Initialize the httpx client with timeout settings."""
        if not self.is_configured():
            logger.warning(
                "GROQ_API_KEY is not set (or still the placeholder) -- "
                "chat requests will be refused"
            )
        if self._http is not None:
            return

        settings = self._settings
        timeout = httpx.Timeout(
            connect=settings.api_timeout_connect,
            read=settings.api_timeout_read,
            write=10.0,
            pool=10.0,
        )
        limits = httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        )
        self._http = httpx.AsyncClient(timeout=timeout, limits=limits)
        logger.info("httpx client initialized (endpoint: %s)", settings.api_base_url)

    async def close(self) -> None:
        """Clean up the httpx client if this instance created it."""
        if self._http and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> CompletionClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        """True when an API key is present and is not the placeholder."""
        return self._settings.has_usable_api_key

    @property
    def current_model(self) -> str:
        return self._current_model

    def get_current_model(self) -> str:
        return self._current_model

    def get_model_display_name(self) -> str:
        return catalog.display_name(self._current_model)

    def get_model_info(self) -> ModelInfo:
        return catalog.model_info(self._current_model)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(
        self,
        user_message: str,
        history: Sequence[HistoryItem] = (),
        on_chunk: ChunkSink | None = None,
        cancel: asyncio.Event | None = None,
    ) -> str:
        """Get the assistant's reply to user_message.

        When on_chunk is given the request is streamed and every delta is
        passed to it as it arrives; the full text is returned either way.

        Raises ConfigurationError before any network call when no usable
        key is set, AllModelsFailedError when every candidate failed, and
        RequestCancelledError when cancel was set mid-request.
        """
        if not self.is_configured():
            raise ConfigurationError(
                "Groq API is not configured. Please add your API key to the environment variables."
            )
        if not self._http:
            raise RuntimeError("httpx client not initialized -- call start() first")

        messages = self.build_messages(user_message, history)
        stream = on_chunk is not None
        policy = FallbackPolicy(
            self._settings.candidate_models,
            stop_on_auth_failure=self._settings.stop_on_auth_failure,
        )

        async def attempt(model: str) -> httpx.Response:
            if cancel is not None and cancel.is_set():
                raise RequestCancelledError()
            return await self._open_completion(model, messages, stream)

        model, response = await policy.run(attempt)
        self._current_model = model
        logger.info("Successfully using model: %s", model)

        if stream:
            return await read_stream(response, on_chunk, cancel)
        return await self._read_whole(response)

    def build_messages(
        self,
        user_message: str,
        history: Sequence[HistoryItem] = (),
    ) -> list[dict[str, str]]:
        """Persona prompt, the last HISTORY_WINDOW prior turns, then the new message.

        System turns in history are dropped; only the persona prompt is sent.
        """
        turns = [_coerce_turn(item) for item in history]
        turns = [t for t in turns if t.role is not Role.SYSTEM][-HISTORY_WINDOW:]
        return [
            {"role": Role.SYSTEM.value, "content": PERSONA_PROMPT},
            *(t.to_api() for t in turns),
            {"role": Role.USER.value, "content": user_message},
        ]

    def _build_api_payload(
        self,
        model: str,
        messages: list[dict[str, str]],
        stream: bool = False,
    ) -> dict[str, Any]:
        settings = self._settings
        return {
            "model": model,
            "messages": messages,
            "stream": stream,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "top_p": settings.top_p,
            "frequency_penalty": settings.frequency_penalty,
            "presence_penalty": settings.presence_penalty,
        }

    async def _open_completion(
        self,
        model: str,
        messages: list[dict[str, str]],
        stream: bool,
    ) -> httpx.Response:
        """POST one completion request and return the open response on 2xx.

        Raises TransportError or RemoteRejection so the fallback policy can
        move on to the next candidate. The caller must close the response.
        """
        if not self._http:
            raise RuntimeError("httpx client not initialized -- call start() first")
        request = self._http.build_request(
            "POST",
            self._settings.api_base_url.rstrip("/") + COMPLETIONS_PATH,
            headers={
                "Authorization": f"Bearer {self._settings.api_key}",
                "Content-Type": "application/json",
            },
            json=self._build_api_payload(model, messages, stream),
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(model, e) from e

        if response.is_success:
            return response

        try:
            await response.aread()
        except httpx.HTTPError as e:
            logger.debug("Could not read error body from %s: %s", model, e)
        finally:
            await response.aclose()
        raise RemoteRejection(model, response.status_code, _error_message(response))

    async def _read_whole(self, response: httpx.Response) -> str:
        """Read a non-streamed reply: choices[0].message.content."""
        try:
            await response.aread()
        except (httpx.StreamConsumed, httpx.StreamClosed) as e:
            raise StreamDecodeError(f"Failed to read response body: {e}") from e
        except (httpx.TransportError, httpx.DecodingError) as e:
            logger.warning("Response body unreadable: %s", e)
            return EMPTY_REPLY
        finally:
            await response.aclose()

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Unexpected completion body: %s", e)
            return EMPTY_REPLY
        if not isinstance(content, str) or not content:
            return EMPTY_REPLY
        return content


def _coerce_turn(item: HistoryItem) -> ConversationTurn:
    if isinstance(item, ConversationTurn):
        return item
    return ConversationTurn.model_validate(item)


def _error_message(response: httpx.Response) -> str | None:
    """Pull error.message out of a rejection body without ever raising."""
    try:
        data = response.json()
    except (ValueError, httpx.ResponseNotRead):
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) else None
    if isinstance(error, str):
        return error
    return None
