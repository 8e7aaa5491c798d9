"""Integration tests for the product catalogue endpoints."""

import asyncio

import pytest

from conftest import bearer
from storefront_api.config import Settings, settings
from storefront_api.dependencies import get_services


async def create(client, token, payload, **overrides):
    response = await client.post(
        "/api/products", json={**payload, **overrides}, headers=bearer(token)
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


class TestCreateProduct:
    """Test POST /api/products."""

    @pytest.mark.asyncio
    async def test_generates_sequential_ids(self, client, admin_token, product_payload):
        """Should assign FK001, FK002 ... when no id is given."""
        first = await create(client, admin_token, product_payload)
        second = await create(client, admin_token, product_payload, name="Cotton Kurta")

        assert (first, second) == ("FK001", "FK002")

    @pytest.mark.asyncio
    async def test_explicit_id(self, client, admin_token, product_payload):
        product_id = await create(client, admin_token, product_payload, id="SPECIAL1")

        assert product_id == "SPECIAL1"

    @pytest.mark.asyncio
    async def test_duplicate_id_conflicts(self, client, admin_token, product_payload):
        await create(client, admin_token, product_payload, id="FK010")

        response = await client.post(
            "/api/products", json={**product_payload, "id": "FK010"}, headers=bearer(admin_token)
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Product ID already exists"

    @pytest.mark.asyncio
    async def test_staff_can_create(self, client, staff_token, product_payload):
        assert await create(client, staff_token, product_payload)

    @pytest.mark.asyncio
    async def test_customer_forbidden(self, client, customer, product_payload):
        response = await client.post(
            "/api/products", json=product_payload, headers=bearer(customer["token"])
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Insufficient permissions"

    @pytest.mark.asyncio
    async def test_anonymous_rejected(self, client, product_payload):
        response = await client.post("/api/products", json=product_payload)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_category(self, client, admin_token, product_payload):
        response = await client.post(
            "/api/products",
            json={**product_payload, "category": "women"},
            headers=bearer(admin_token),
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "category"


class TestReadProducts:
    """Test GET /api/products and GET /api/products/{id}."""

    @pytest.mark.asyncio
    async def test_get_product(self, client, admin_token, product_payload):
        """Should decode arrays and report cache status."""
        product_id = await create(
            client, admin_token, product_payload, price_min=1299, price_max=1799
        )

        first = await client.get(f"/api/products/{product_id}")
        second = await client.get(f"/api/products/{product_id}")

        assert first.status_code == 200
        body = first.json()
        assert body["cached"] is False
        assert body["response_time"].endswith("ms")
        product = body["data"]
        assert product["colors"] == ["White", "Sky Blue"]
        assert product["price"] == 1499.0
        assert product["price_range"] == {"min": 1299.0, "max": 1799.0}
        assert product["featured"] is True
        assert second.json()["cached"] is True

    @pytest.mark.asyncio
    async def test_missing_product(self, client):
        response = await client.get("/api/products/FK999")

        assert response.status_code == 404
        assert response.json()["message"] == "Product not found"

    @pytest.mark.asyncio
    async def test_listing_filters(self, client, admin_token, product_payload):
        """Should filter by category, colour, flag and search text."""
        await create(client, admin_token, product_payload)
        await create(
            client,
            admin_token,
            product_payload,
            name="Kids Cotton Shirt",
            category="kids",
            subcategory="shirt",
            colors=["Red"],
            featured=False,
        )
        await create(
            client,
            admin_token,
            product_payload,
            name="Checked Fabric",
            category="fabric",
            subcategory="cotton",
            fabric_pattern="checked",
            featured=False,
            new_arrival=True,
        )

        async def names(**params):
            response = await client.get("/api/products", params=params)
            assert response.status_code == 200
            return [p["name"] for p in response.json()["data"]["products"]]

        assert sorted(await names()) == ["Checked Fabric", "Kids Cotton Shirt", "Linen Kurta"]
        assert await names(category="kids") == ["Kids Cotton Shirt"]
        assert await names(colors="red") == ["Kids Cotton Shirt"]
        assert await names(featured="true") == ["Linen Kurta"]
        assert await names(new_arrival="true") == ["Checked Fabric"]
        assert await names(fabric_patterns="checked,striped") == ["Checked Fabric"]
        assert await names(search="COTTON") == ["Kids Cotton Shirt"]
        assert await names(sort_by="name", sort_order="asc") == [
            "Checked Fabric",
            "Kids Cotton Shirt",
            "Linen Kurta",
        ]

    @pytest.mark.asyncio
    async def test_listing_pagination(self, client, admin_token, product_payload):
        for index in range(3):
            await create(client, admin_token, product_payload, name=f"Kurta {index}")

        response = await client.get("/api/products", params={"limit": 2, "page": 2})

        data = response.json()["data"]
        assert len(data["products"]) == 1
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}

    @pytest.mark.asyncio
    async def test_listing_cache_invalidated_on_write(self, client, admin_token, product_payload):
        """A mutation must never leave a stale listing behind."""
        await create(client, admin_token, product_payload)
        await client.get("/api/products")
        cached = await client.get("/api/products")
        assert cached.json()["cached"] is True

        await create(client, admin_token, product_payload, name="Second Kurta")
        fresh = await client.get("/api/products")

        assert fresh.json()["cached"] is False
        assert fresh.json()["data"]["pagination"]["total"] == 2


class TestUpdateAndDelete:
    """Test PUT and DELETE /api/products/{id}."""

    @pytest.mark.asyncio
    async def test_update(self, client, admin_token, product_payload):
        product_id = await create(client, admin_token, product_payload)
        await client.get(f"/api/products/{product_id}")

        response = await client.put(
            f"/api/products/{product_id}",
            json={**product_payload, "name": "Linen Kurta Deluxe", "price": 1999},
            headers=bearer(admin_token),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Product updated successfully"
        product = (await client.get(f"/api/products/{product_id}")).json()
        assert product["cached"] is False
        assert product["data"]["name"] == "Linen Kurta Deluxe"
        assert product["data"]["price"] == 1999.0

    @pytest.mark.asyncio
    async def test_update_missing(self, client, admin_token, product_payload):
        response = await client.put(
            "/api/products/FK404", json=product_payload, headers=bearer(admin_token)
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_requires_admin(self, client, admin_token, staff_token, product_payload):
        """Staff may edit but only admins may delete."""
        product_id = await create(client, admin_token, product_payload)

        denied = await client.delete(f"/api/products/{product_id}", headers=bearer(staff_token))
        allowed = await client.delete(f"/api/products/{product_id}", headers=bearer(admin_token))

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["message"] == "Product deleted successfully"
        assert (await client.get(f"/api/products/{product_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_mutations_are_audited(self, client, admin_token, product_payload):
        product_id = await create(client, admin_token, product_payload)
        await client.delete(f"/api/products/{product_id}", headers=bearer(admin_token))

        response = await client.get("/api/users/audit-logs", headers=bearer(admin_token))

        actions = [entry["action"] for entry in response.json()["data"]["logs"]]
        assert actions[:2] == ["delete_product", "create_product"]
        assert response.json()["data"]["logs"][0]["details"] == {
            "product_id": product_id,
            "name": "Linen Kurta",
        }


async def stalled(*args, **kwargs):
    await asyncio.sleep(5)


class TestReadTimeouts:
    """Test slow catalogue reads at the default timeout ratio."""

    @pytest.fixture
    def slow_database(self, client, monkeypatch):
        """Scale the timeouts down and stall every read."""
        defaults = Settings.model_fields
        ratio = (
            defaults["product_read_timeout_seconds"].default
            / defaults["request_timeout_seconds"].default
        )
        services = get_services()
        monkeypatch.setattr(settings, "request_timeout_seconds", 0.3)
        monkeypatch.setattr(services.products, "read_timeout", 0.3 * ratio)
        for method in ("fetch_val", "fetch_all", "fetch_one"):
            monkeypatch.setattr(services.database, method, stalled)

    @pytest.mark.asyncio
    async def test_listing_times_out(self, client, slow_database):
        """Should answer 504 before the request timeout fires."""
        response = await client.get("/api/products", params={"category": "men"})

        assert response.status_code == 504
        assert response.json() == {
            "success": False,
            "message": "Request timeout. Please try again with fewer filters.",
        }

    @pytest.mark.asyncio
    async def test_single_product_times_out(self, client, slow_database):
        response = await client.get("/api/products/FK001")

        assert response.status_code == 504
        assert response.json()["message"] == "Request timeout. Please try again."
