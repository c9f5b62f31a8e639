"""Shared fixtures: settings factory and a fake completion API on httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from kindred.config import Settings

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from any local .env file."""
    defaults: dict[str, Any] = {
        "GROQ_API_KEY": "gsk_test_key",
        "candidate_models": ["m1", "m2"],
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Stream bodies
# ---------------------------------------------------------------------------


def delta_line(content: str | None) -> str:
    """One `data:` line carrying a content delta."""
    delta = {} if content is None else {"content": content}
    return f"data: {json.dumps({'choices': [{'delta': delta}]}, ensure_ascii=False)}\n"


DONE_LINE = "data: [DONE]\n"


class ChunkStream(httpx.AsyncByteStream):
    """Async byte stream yielding exactly the given raw reads.

    An Exception in the list is raised at that point instead of yielding.
    """

    def __init__(self, chunks: list[bytes | Exception]) -> None:
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def stream_response(*chunks: bytes | str | Exception, status_code: int = 200) -> httpx.Response:
    raw = [c.encode() if isinstance(c, str) else c for c in chunks]
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        stream=ChunkStream(raw),
    )


def completion_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def error_response(status_code: int, message: str | None = None) -> httpx.Response:
    if message is None:
        return httpx.Response(status_code, content=b"<html>upstream error</html>")
    return httpx.Response(status_code, json={"error": {"message": message, "type": "api_error"}})


# ---------------------------------------------------------------------------
# Fake completion API
# ---------------------------------------------------------------------------


Outcome = httpx.Response | Exception | Callable[[], httpx.Response]


class FakeCompletionAPI:
    """MockTransport handler answering per model id and recording every request."""

    def __init__(self, outcomes: dict[str, Outcome] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.requests: list[httpx.Request] = []

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def models_tried(self) -> list[str]:
        return [p["model"] for p in self.payloads]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        model = json.loads(request.content)["model"]
        outcome = self.outcomes.get(model)
        if outcome is None:
            return error_response(404, f"The model `{model}` does not exist")
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome()
        return outcome

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_api() -> FakeCompletionAPI:
    return FakeCompletionAPI()
