"""Tests for /v1/recommendations endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from product_search.main import app
from product_search.services.catalog import set_catalog


@pytest.fixture
async def client(products):
    set_catalog(products)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.mark.asyncio
async def test_similar_via_post(client: AsyncClient):
    response = await client.post("/v1/recommendations", json={"type": "similar", "productId": 1, "limit": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["type"] == "similar"
    assert data["total"] == 2
    top = data["recommendations"][0]
    assert top["productId"] == 4
    assert top["name"] == "Manuka Honey"
    assert top["reasons"]


@pytest.mark.asyncio
async def test_similar_accepts_context_current_product(client: AsyncClient):
    response = await client.post(
        "/v1/recommendations",
        json={"type": "similar", "context": {"currentProduct": 1}},
    )
    assert response.status_code == 200
    assert response.json()["recommendations"][0]["productId"] == 4


@pytest.mark.asyncio
async def test_similar_requires_product_id(client: AsyncClient):
    response = await client.post("/v1/recommendations", json={"type": "similar"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_type_is_rejected(client: AsyncClient):
    response = await client.post("/v1/recommendations", json={"type": "seasonal"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_personalized(client: AsyncClient):
    response = await client.post(
        "/v1/recommendations",
        json={
            "type": "personalized",
            "userProfile": {"purchaseHistory": [1], "preferredCategories": ["Spices"]},
            "inStockOnly": True,
            "limit": 3,
        },
    )
    assert response.status_code == 200
    ids = [r["productId"] for r in response.json()["recommendations"]]
    assert 1 not in ids
    assert 3 not in ids
    assert ids[0] == 2


@pytest.mark.asyncio
async def test_similar_get(client: AsyncClient):
    response = await client.get("/v1/recommendations/similar/2", params={"limit": 1, "inStockOnly": "true"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["recommendations"][0]["productId"] != 2


@pytest.mark.asyncio
async def test_similar_get_unknown_product(client: AsyncClient):
    response = await client.get("/v1/recommendations/similar/999")
    assert response.status_code == 404
