"""Tests for app assembly and lifespan in kindred.main."""

import pytest
from httpx import ASGITransport, AsyncClient

from kindred.chat import CompletionClient
from kindred.main import build_app
from tests.conftest import make_settings


class TestBuildApp:
    def test_routes_registered(self):
        app = build_app(make_settings())
        paths = {route.path for route in app.routes}
        assert {"/chat", "/chat/stream", "/status", "/health"} <= paths

    @pytest.mark.asyncio
    async def test_lifespan_starts_and_closes_client(self):
        settings = make_settings()
        client = CompletionClient(settings)
        app = build_app(settings, client)

        async with app.router.lifespan_context(app):
            assert app.state.client is client
            assert client._http is not None
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
                response = await http.get("/status")
            assert response.json()["configured"] is True

        assert client._http is None
