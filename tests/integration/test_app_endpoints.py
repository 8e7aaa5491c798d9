"""Integration tests for app-level endpoints, middleware and handlers."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from storefront_api import app, create_app
from storefront_api.config import settings
from storefront_api.dependencies import get_services
from storefront_api.ratelimit import limiter


class TestHealth:
    """Test GET /health."""

    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert body["database"] == "healthy"
        assert body["environment"] == "development"
        assert body["version"] == "1.0.0"
        assert body["uptime"] >= 0

    @pytest.mark.asyncio
    async def test_database_down(self, client, monkeypatch):
        """Should answer 503 when the database is unreachable."""
        database = get_services().database
        monkeypatch.setattr(
            database,
            "health_check",
            AsyncMock(return_value={"status": "unhealthy", "error": "connection refused"}),
        )

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "ERROR"
        assert response.json()["database"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_before_startup(self):
        """Should answer 503 when services are not running."""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/health")

        assert response.status_code == 503
        assert response.json()["error"] == "Service not initialized"


class TestRootAndNotFound:
    """Test the index and unknown paths."""

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        body = response.json()
        assert body["success"] is True
        assert body["message"] == "FK Designers API Server"
        assert body["endpoints"]["products"] == "/api/products"

    @pytest.mark.asyncio
    async def test_unknown_path(self, client):
        """Should list available endpoint groups."""
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "API endpoint not found"
        assert body["path"] == "/api/nothing-here"
        assert body["method"] == "GET"
        assert "/api/auth" in body["available_endpoints"]

    @pytest.mark.asyncio
    async def test_wrong_method(self, client):
        response = await client.delete("/api/auth/login")

        assert response.status_code == 405
        assert response.json()["success"] is False

    def test_create_app(self):
        assert create_app() is app


class TestMiddleware:
    """Test request tracking and CORS."""

    @pytest.mark.asyncio
    async def test_request_id_generated(self, client):
        response = await client.get("/")

        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/", headers={"X-Request-ID": "trace-42"})

        assert response.headers["X-Request-ID"] == "trace-42"

    @pytest.mark.asyncio
    async def test_cors_preflight(self, client):
        response = await client.options(
            "/api/products",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert response.headers["access-control-max-age"] == "86400"

    @pytest.mark.asyncio
    async def test_cors_unknown_origin(self, client):
        response = await client.get("/", headers={"Origin": "https://evil.example.com"})

        assert "access-control-allow-origin" not in response.headers


class TestRateLimits:
    """Test per-client rate limiting."""

    @pytest.mark.asyncio
    async def test_auth_limit(self, client, monkeypatch):
        """Should answer 429 with a retry hint once the auth budget is spent."""
        monkeypatch.setattr(settings, "auth_rate_limit", "2/minute")
        limiter.reset()
        credentials = {"email": "nobody@example.com", "password": "x"}

        statuses = [
            (await client.post("/api/auth/login", json=credentials)).status_code for _ in range(3)
        ]
        response = await client.post("/api/auth/login", json=credentials)

        assert statuses == [401, 401, 429]
        assert response.status_code == 429
        body = response.json()
        assert body["message"] == "Too many authentication attempts. Please try again later."
        assert body["retry_after"] == 60
        assert response.headers["Retry-After"] == "60"

    @pytest.mark.asyncio
    async def test_product_limit_is_separate(self, client, monkeypatch):
        """Exhausting the auth budget leaves product reads untouched."""
        monkeypatch.setattr(settings, "auth_rate_limit", "1/minute")
        monkeypatch.setattr(settings, "product_rate_limit", "2/minute")
        limiter.reset()

        await client.post("/api/auth/login", json={"email": "a@example.com", "password": "x"})
        blocked = await client.post(
            "/api/auth/login", json={"email": "a@example.com", "password": "x"}
        )
        first = await client.get("/api/products")
        second = await client.get("/api/products")
        third = await client.get("/api/products")

        assert blocked.status_code == 429
        assert (first.status_code, second.status_code) == (200, 200)
        assert third.status_code == 429
        assert third.json()["message"] == "Too many product requests. Please slow down."

    @pytest.mark.asyncio
    async def test_limit_keyed_by_user_agent(self, client, monkeypatch):
        monkeypatch.setattr(settings, "product_rate_limit", "1/minute")
        limiter.reset()

        first = await client.get("/api/products", headers={"User-Agent": "browser-a"})
        second = await client.get("/api/products", headers={"User-Agent": "browser-b"})

        assert (first.status_code, second.status_code) == (200, 200)


class TestUnhandledErrors:
    """Test the catch-all 500 handler."""

    @pytest.fixture
    def failing_listing(self, client, monkeypatch):
        monkeypatch.setattr(
            get_services().products,
            "list_products",
            AsyncMock(side_effect=RuntimeError("catalogue exploded")),
        )

    async def get_products(self):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            return await ac.get("/api/products")

    @pytest.mark.asyncio
    async def test_details_hidden_in_production(self, failing_listing, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")

        response = await self.get_products()

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}

    @pytest.mark.asyncio
    async def test_details_shown_in_development(self, failing_listing):
        """Should echo the exception text while developing."""
        response = await self.get_products()

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "catalogue exploded"}
