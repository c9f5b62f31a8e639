"""REST API the chat UI talks to.

Endpoints:
  POST /chat         - Send message (+ prior turns), get the full reply
  POST /chat/stream  - Same, as SSE deltas followed by a done event
  GET  /status       - Configuration + active model for the status badge
  GET  /health       - Liveness check

The server keeps no conversation state; the UI sends its own history.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from kindred.chat import (
    ChatError,
    CompletionClient,
    ConfigurationError,
    ConversationTurn,
    FailureReason,
    user_message,
)
from kindred.config import Settings

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    pass


async def _parse_chat_body(request: Request) -> tuple[str, list[ConversationTurn]]:
    try:
        body = await request.json()
    except Exception:
        raise BadRequest("Invalid JSON body")
    if not isinstance(body, dict):
        raise BadRequest("Invalid JSON body")

    message = body.get("message")
    if not message or not isinstance(message, str):
        raise BadRequest("Missing required field: message")

    raw_history = body.get("history") or []
    if not isinstance(raw_history, list):
        raise BadRequest("history must be a list of {role, content} objects")
    try:
        history = [ConversationTurn.model_validate(item) for item in raw_history]
    except ValidationError as e:
        raise BadRequest(f"Invalid history entry: {e.errors()[0]['msg']}")
    return message, history


def _error_status(error: ChatError) -> int:
    if isinstance(error, ConfigurationError):
        return 503
    if error.reason is FailureReason.RATE_LIMITED:
        return 429
    return 502


def _error_body(error: ChatError) -> dict[str, Any]:
    return {
        "error": user_message(error),
        "reason": error.reason.value,
        "detail": str(error),
    }


def _sse(data: dict[str, Any]) -> str:
    return f"data: {json.dumps(data)}\n\n"


def create_app(
    client: CompletionClient,
    settings: Settings,
    lifespan: Any | None = None,
) -> Starlette:
    """Create the Starlette ASGI app with all routes."""

    async def chat(request: Request) -> JSONResponse:
        """POST /chat - Send a message, get a response."""
        try:
            message, history = await _parse_chat_body(request)
        except BadRequest as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        try:
            reply = await client.send_message(message, history)
        except ChatError as e:
            logger.error("Chat error: %s", e)
            return JSONResponse(_error_body(e), status_code=_error_status(e))
        except Exception as e:
            logger.exception("Unexpected chat error")
            return JSONResponse({"error": user_message(e)}, status_code=500)

        return JSONResponse(
            {
                "response": reply,
                "model": client.current_model,
                "model_name": client.get_model_display_name(),
            }
        )

    async def chat_stream(request: Request) -> StreamingResponse | JSONResponse:
        """POST /chat/stream - SSE streaming chat."""
        try:
            message, history = await _parse_chat_body(request)
        except BadRequest as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        if not client.is_configured():
            error = ConfigurationError("Groq API is not configured")
            return JSONResponse(_error_body(error), status_code=503)

        async def event_generator():
            deltas: asyncio.Queue[str | None] = asyncio.Queue()
            cancel = asyncio.Event()
            task = asyncio.create_task(
                client.send_message(message, history, on_chunk=deltas.put_nowait, cancel=cancel)
            )
            # Queued after every delta: the sink runs inside the task
            task.add_done_callback(lambda _: deltas.put_nowait(None))
            try:
                while (delta := await deltas.get()) is not None:
                    yield _sse({"type": "delta", "text": delta})
                full_text = task.result()
                yield _sse(
                    {
                        "type": "done",
                        "text": full_text,
                        "model": client.current_model,
                        "model_name": client.get_model_display_name(),
                    }
                )
            except ChatError as e:
                logger.error("Stream error: %s", e)
                yield _sse({"type": "error", "reason": e.reason.value, "text": user_message(e)})
            except Exception as e:
                logger.exception("Unexpected stream error")
                yield _sse({"type": "error", "reason": "internal", "text": user_message(e)})
            finally:
                if not task.done():
                    # Client went away; release the upstream stream
                    cancel.set()
                    task.cancel()

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    async def status(request: Request) -> JSONResponse:
        """GET /status - Configuration and active model."""
        return JSONResponse(
            {
                "configured": client.is_configured(),
                "model": client.current_model,
                "model_name": client.get_model_display_name(),
                "model_info": client.get_model_info().model_dump(),
                "candidate_models": list(settings.candidate_models),
            }
        )

    async def health(request: Request) -> JSONResponse:
        """GET /health - Liveness check."""
        return JSONResponse({"status": "ok"})

    routes = [
        Route("/chat", chat, methods=["POST"]),
        Route("/chat/stream", chat_stream, methods=["POST"]),
        Route("/status", status),
        Route("/health", health),
    ]

    kwargs: dict[str, Any] = {"routes": routes}
    if lifespan is not None:
        kwargs["lifespan"] = lifespan
    return Starlette(**kwargs)
