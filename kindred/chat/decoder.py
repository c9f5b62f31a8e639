"""Decode a streamed chat-completion body into text deltas.

The body is a sequence of newline-delimited ``data: {json}`` lines ending
with ``data: [DONE]``. Raw reads may split a line (or a multi-byte UTF-8
character) anywhere, so StreamDecoder keeps undecoded bytes and the
trailing partial line between feeds.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from collections.abc import Callable
from typing import Any

import httpx

from kindred.chat.errors import RequestCancelledError, StreamDecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

ChunkSink = Callable[[str], Any]


def parse_delta(payload: str) -> str | None:
    """Return choices[0].delta.content from one data payload, or None.

    Malformed JSON and unexpected shapes yield None; the caller skips the line.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None
    try:
        content = data["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    if isinstance(content, str) and content:
        return content
    return None


class StreamDecoder:
    """Incremental line decoder for the completion event stream."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, data: bytes) -> list[str]:
        """Consume one raw read. Returns the deltas from every completed line."""
        if self.done:
            return []
        self._buffer += self._utf8.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process(lines)

    def finish(self) -> list[str]:
        """Flush at end of stream, processing a final unterminated line."""
        if self.done:
            return []
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._process([tail]) if tail else []

    def _process(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            payload = line[len(DATA_PREFIX):]
            if payload.strip() == DONE_SENTINEL:
                # Anything queued after the sentinel is dropped
                self.done = True
                self._buffer = ""
                break
            delta = parse_delta(payload)
            if delta is not None:
                deltas.append(delta)
        return deltas


async def read_stream(
    response: httpx.Response,
    on_chunk: ChunkSink | None = None,
    cancel: asyncio.Event | None = None,
) -> str:
    """Read an open streaming response to completion and return the full text.

    Each delta is passed to on_chunk exactly once, in arrival order. The
    response is always closed before returning or raising.

    cancel is checked as each read arrives; a read that stalls is only
    interrupted by cancelling the task running read_stream.
    """
    decoder = StreamDecoder()
    parts: list[str] = []

    def emit(deltas: list[str]) -> None:
        for delta in deltas:
            parts.append(delta)
            if on_chunk is not None:
                on_chunk(delta)

    try:
        try:
            async for raw in response.aiter_bytes():
                if cancel is not None and cancel.is_set():
                    raise RequestCancelledError("".join(parts))
                emit(decoder.feed(raw))
                if decoder.done:
                    break
            else:
                emit(decoder.finish())
                if not decoder.done:
                    logger.debug("Stream closed without %s sentinel", DONE_SENTINEL)
        except (httpx.StreamConsumed, httpx.StreamClosed) as e:
            raise StreamDecodeError(f"Failed to get response stream: {e}") from e
        except (httpx.TransportError, httpx.DecodingError) as e:
            # Premature close or corrupt body: keep what arrived
            logger.warning("Stream interrupted after %d chunks: %s", len(parts), e)
    finally:
        await response.aclose()

    return "".join(parts)
