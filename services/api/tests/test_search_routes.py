"""Tests for /v1/search endpoints (catalog installed in-process, no network)."""

import pytest
from httpx import ASGITransport, AsyncClient

from product_search.main import app
from product_search.routes import search as search_routes
from product_search.services.catalog import set_catalog
from product_search.services.vector_store import QdrantError, VectorHit
from product_search.services.woocommerce_client import CatalogError


class FakeQdrant:
    def __init__(self, healthy: bool):
        self.healthy = healthy

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
async def client(products):
    """Create test client with the sample catalog installed."""
    set_catalog(products)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def vector_down(monkeypatch: pytest.MonkeyPatch):
    async def failing_search(query: str, **kwargs):
        raise QdrantError("Qdrant unreachable")

    monkeypatch.setattr(search_routes, "search_products", failing_search)
    monkeypatch.setattr(search_routes, "get_qdrant_client", lambda: FakeQdrant(healthy=False))


@pytest.mark.asyncio
async def test_keyword_get(client: AsyncClient):
    response = await client.get("/v1/search/keyword", params={"q": "honey", "limit": 1})
    assert response.status_code == 200
    data = response.json()

    assert data["query"] == "honey"
    assert len(data["results"]) == 1
    top = data["results"][0]
    assert top["productId"] == 1
    assert top["inStock"] is True
    assert "relevanceScore" in top
    assert top["matchedFields"][0] == "title"
    assert data["stats"]["total"] == 2
    assert data["stats"]["topScore"] == top["relevanceScore"]


@pytest.mark.asyncio
async def test_keyword_get_with_suggestions(client: AsyncClient):
    response = await client.get("/v1/search/keyword", params={"q": "hon", "suggestions": "true"})
    assert response.status_code == 200
    assert "honey" in response.json()["suggestions"]


@pytest.mark.asyncio
async def test_keyword_requires_query(client: AsyncClient):
    response = await client.get("/v1/search/keyword", params={"q": "   "})
    assert response.status_code == 400

    response = await client.get("/v1/search/keyword")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_keyword_post_applies_filters(client: AsyncClient):
    response = await client.post(
        "/v1/search/keyword",
        json={"query": "honey", "filters": {"priceRange": {"max": 20}}, "options": {"fuzzyMatch": False}},
    )
    assert response.status_code == 200
    assert [r["productId"] for r in response.json()["results"]] == [1]


@pytest.mark.asyncio
async def test_keyword_post_category_and_stock_filters(client: AsyncClient):
    response = await client.post(
        "/v1/search/keyword",
        json={"query": "rice", "filters": {"category": "rice", "inStock": True}},
    )
    assert response.status_code == 200
    assert response.json()["results"] == []
    assert response.json()["stats"] == {"total": 0, "averageScore": 0.0, "topScore": 0.0}


@pytest.mark.asyncio
async def test_catalog_failure_returns_502(client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
    async def failing_get_catalog(force_refresh: bool = False):
        raise CatalogError("WooCommerce API error: 500")

    monkeypatch.setattr(search_routes, "get_catalog", failing_get_catalog)
    response = await client.get("/v1/search/keyword", params={"q": "honey"})
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_semantic_falls_back_to_keyword_and_caches(client: AsyncClient, vector_down):
    response = await client.get("/v1/search/semantic", params={"q": "honey"})
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "keyword"
    assert data["cached"] is False
    assert {r["productId"] for r in data["results"]} == {1, 4}
    assert all(r["matchType"] == "keyword" for r in data["results"])

    again = await client.get("/v1/search/semantic", params={"q": "honey"})
    assert again.json()["cached"] is True


@pytest.mark.asyncio
async def test_semantic_uses_vector_store_when_healthy(client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
    async def fake_search(query: str, **kwargs):
        return [
            VectorHit(id=4, score=0.8, payload={"name": "Manuka Honey", "price": 39.0, "in_stock": True}),
            VectorHit(id=3, score=0.4, payload={"name": "Basmati Rice", "price": 9.0}),
        ]

    monkeypatch.setattr(search_routes, "get_qdrant_client", lambda: FakeQdrant(healthy=True))
    monkeypatch.setattr(search_routes, "search_products", fake_search)

    response = await client.get("/v1/search/semantic", params={"q": "honey", "limit": 5})
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "vector"
    assert [r["productId"] for r in data["results"]] == [4, 3]
    assert data["results"][0]["matchType"] == "hybrid"
    assert data["results"][1]["matchType"] == "semantic"


@pytest.mark.asyncio
async def test_semantic_limit_is_capped(client: AsyncClient, vector_down):
    response = await client.get("/v1/search/semantic", params={"q": "honey", "limit": 51})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_hybrid_keyword_only_when_vector_store_down(client: AsyncClient, vector_down):
    response = await client.get("/v1/search/hybrid", params={"q": "honey", "inStockOnly": "true"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["results"][0]["productId"] == 1
    assert data["results"][0]["source"] == "keyword"
    assert 0 <= data["results"][0]["score"] <= 100


@pytest.mark.asyncio
async def test_hybrid_merges_semantic_hits(client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
    async def fake_search(query: str, **kwargs):
        return [VectorHit(id=4, score=0.9, payload={})]

    monkeypatch.setattr(search_routes, "search_products", fake_search)

    response = await client.get("/v1/search/hybrid", params={"q": "honey"})
    results = response.json()["results"]
    manuka = next(r for r in results if r["productId"] == 4)
    assert manuka["source"] == "hybrid"
    assert manuka["semanticScore"] == 0.9


@pytest.mark.asyncio
async def test_autocomplete(client: AsyncClient):
    response = await client.get("/v1/search/autocomplete", params={"q": "hon", "limit": 3})
    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "hon"
    assert len(data["suggestions"]) == 3
    product = next(s for s in data["suggestions"] if s["type"] == "product")
    assert "productId" in product


@pytest.mark.asyncio
async def test_autocomplete_empty_query_returns_trending(client: AsyncClient):
    response = await client.get("/v1/search/autocomplete")
    assert response.status_code == 200
    assert response.json()["suggestions"][0]["text"] == "Honey"


@pytest.mark.asyncio
async def test_click_tracking_without_database(client: AsyncClient):
    response = await client.post("/v1/search/clicks", json={"query": "honey", "productId": 1, "position": 0})
    assert response.status_code == 200
    assert response.json() == {"recorded": False}


@pytest.mark.asyncio
async def test_analytics_unavailable_without_database(client: AsyncClient):
    response = await client.get("/v1/search/analytics")
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_cache_stats(client: AsyncClient):
    await client.get("/v1/search/keyword", params={"q": "honey"})
    await client.get("/v1/search/keyword", params={"q": "honey"})

    response = await client.get("/v1/search/cache/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["searchResults"]["hits"] >= 1
    assert "recommendations" in data
    assert "total" in data


@pytest.mark.asyncio
async def test_cached_responses_are_still_recorded(client: AsyncClient, vector_down, monkeypatch: pytest.MonkeyPatch):
    recorded: list[tuple[str, str, int]] = []

    async def fake_record_search(query: str, search_type: str, result_count: int, session_id=None) -> bool:
        recorded.append((query, search_type, result_count))
        return True

    monkeypatch.setattr(search_routes, "record_search", fake_record_search)

    for _ in range(2):
        await client.get("/v1/search/keyword", params={"q": "honey"})
    for _ in range(2):
        await client.get("/v1/search/semantic", params={"q": "honey"})

    assert recorded == [
        ("honey", "keyword", 2),
        ("honey", "keyword", 2),
        ("honey", "semantic", 2),
        ("honey", "semantic", 2),
    ]

