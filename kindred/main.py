"""Kindred chat backend entry point.

  Settings -> CompletionClient -> App -> Uvicorn

Uses Starlette lifespan so the httpx client is opened and closed on the
same event loop as uvicorn.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from starlette.applications import Starlette

from kindred.api.rest import create_app
from kindred.chat import CompletionClient
from kindred.config import Settings

logger = logging.getLogger(__name__)


def build_app(settings: Settings, client: CompletionClient | None = None) -> Starlette:
    """Build the Starlette app around a single CompletionClient."""
    client = client or CompletionClient(settings)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        await client.start()
        app.state.client = client
        logger.info(
            "Kindred started: %d candidate models, first choice %s",
            len(settings.candidate_models),
            settings.candidate_models[0],
        )
        yield
        logger.info("Shutting down Kindred...")
        await client.close()

    return create_app(client, settings, lifespan=lifespan)


def main() -> None:
    """Entry point: parse settings, build app, run server."""
    settings = Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    logger.info("Starting Kindred chat backend")
    logger.info("Endpoint: %s", settings.api_base_url)
    logger.info("Models: %s", ", ".join(settings.candidate_models))

    if not settings.has_usable_api_key:
        logger.warning("GROQ_API_KEY is not set, /chat endpoints will return 503")

    app = build_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
