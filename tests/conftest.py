"""Shared test fixtures."""

import os
from collections.abc import AsyncGenerator
from typing import Any

# Set test environment before the package reads its settings
os.environ["STOREFRONT_ENVIRONMENT"] = "development"
os.environ["STOREFRONT_JWT_SECRET"] = "test-secret"
os.environ["STOREFRONT_AUTH_RATE_LIMIT"] = "1000/minute"
os.environ["STOREFRONT_PRODUCT_RATE_LIMIT"] = "1000/minute"
os.environ["STOREFRONT_LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ["STOREFRONT_INSTALL_CRASH_HANDLER"] = "false"
os.environ["STOREFRONT_DB_QUERY_RETRIES"] = "1"
os.environ["STOREFRONT_DB_CONNECT_RETRIES"] = "0"
os.environ["STOREFRONT_SHUTDOWN_DRAIN_SECONDS"] = "1"
os.environ["STOREFRONT_ADMIN_EMAIL"] = "admin@example.com"
os.environ["STOREFRONT_ADMIN_PASSWORD"] = "admin-pass-123"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from storefront_api import app  # noqa: E402
from storefront_api.api import lifespan  # noqa: E402
from storefront_api.config import settings  # noqa: E402
from storefront_api.dependencies import get_services  # noqa: E402
from storefront_api.ratelimit import limiter  # noqa: E402
from storefront_api.storage.schema import users  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture
def database_url(tmp_path, monkeypatch) -> str:
    """Point the application at a fresh SQLite file."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}"
    monkeypatch.setattr(settings, "database_url", url)
    return url


@pytest_asyncio.fixture
async def client(database_url: str) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the full lifespan running against a temporary database."""
    limiter.reset()
    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registration() -> dict[str, Any]:
    """Valid registration payload."""
    return {
        "first_name": "Asha",
        "last_name": "Verma",
        "email": "Asha.Verma@Example.com",
        "phone": "+91 98765 43210",
        "password": "secret123",
        "date_of_birth": "1990-04-12",
        "address_1": "12 Market Road",
    }


@pytest.fixture
def product_payload() -> dict[str, Any]:
    """Valid product payload."""
    return {
        "name": "Linen Kurta",
        "price": 1499.0,
        "category": "men",
        "subcategory": "kurta",
        "description": "Breathable linen kurta for summer",
        "composition": "100% Linen",
        "fabric_pattern": "solid",
        "images": ["https://cdn.example.com/kurta.jpg"],
        "colors": ["White", "Sky Blue"],
        "featured": True,
    }


@pytest_asyncio.fixture
async def admin_token(client: AsyncClient) -> str:
    response = await client.post(
        "/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return response.json()["data"]["token"]


@pytest_asyncio.fixture
async def customer(client: AsyncClient, registration: dict[str, Any]) -> dict[str, Any]:
    """Registered customer: ``{"user": ..., "token": ...}``."""
    response = await client.post("/api/auth/register", json=registration)
    assert response.status_code == 201
    return response.json()["data"]


@pytest_asyncio.fixture
async def staff_token(client: AsyncClient) -> str:
    """Token for a registered user promoted to staff."""
    payload = {
        "first_name": "Ravi",
        "last_name": "Kumar",
        "email": "ravi@example.com",
        "phone": "9876543210",
        "password": "staffpass",
    }
    response = await client.post("/api/auth/register", json=payload)
    user_id = response.json()["data"]["user"]["user_id"]

    database = get_services().database
    await database.execute(users.update().where(users.c.user_id == user_id).values(role="staff"))

    response = await client.post(
        "/api/auth/login", json={"email": payload["email"], "password": payload["password"]}
    )
    return response.json()["data"]["token"]
