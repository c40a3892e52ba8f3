"""Smoke tests for the combined Socket.IO + FastAPI application."""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from peerstream.app_config import AppEnvironConfig
from peerstream.main import build_granian_kwargs, create_app


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=create_app())  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["results"] == "OK"

    async def test_streams_mounted_under_api_v1(self, client: AsyncClient):
        """Should serve the stream directory through the combined app."""
        response = await client.get("/api/v1/streams")

        assert response.status_code == 200
        assert response.json()["results"]["total"] == 0


class TestGranianKwargs:
    def test_single_worker(self):
        """Signaling state is per process, so workers is always 1."""
        kwargs = build_granian_kwargs(AppEnvironConfig(API_PORT=4000, API_WORKERS=4))

        assert kwargs["workers"] == 1
        assert kwargs["port"] == 4000
        assert kwargs["interface"] == "asgi"
