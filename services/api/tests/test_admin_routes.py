"""Tests for /v1/admin endpoints (Redis, Qdrant and WooCommerce patched out)."""

import pytest
from httpx import ASGITransport, AsyncClient

from product_search.main import app
from product_search.routes import admin as admin_routes
from product_search.services.catalog import CatalogSnapshot, set_catalog
from product_search.services.recommendation_cache import RecommendationContext, UserProfile, recommendation_cache
from product_search.services.search_cache import search_results_cache
from product_search.services.vector_store import QdrantError
from product_search.services.woocommerce_client import CatalogError


class FakeQdrant:
    def __init__(self):
        self.deleted: list[int] = []

    async def delete_points(self, ids: list[int]) -> None:
        self.deleted.extend(ids)


@pytest.fixture
async def client(products):
    set_catalog(products)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def reindex_deps(products, monkeypatch: pytest.MonkeyPatch) -> dict:
    state: dict = {"indexed": [], "released": 0}

    async def fake_get_catalog(force_refresh: bool = False) -> CatalogSnapshot:
        state["force_refresh"] = force_refresh
        return CatalogSnapshot.from_products(products)

    async def fake_index_products(batch) -> int:
        state["indexed"] = [p.id for p in batch]
        return len(batch)

    async def fake_acquire_lock(key: str, ttl: int = 600) -> bool:
        return True

    async def fake_release_lock(key: str) -> None:
        state["released"] += 1

    monkeypatch.setattr(admin_routes, "get_catalog", fake_get_catalog)
    monkeypatch.setattr(admin_routes, "index_products", fake_index_products)
    monkeypatch.setattr(admin_routes, "acquire_lock", fake_acquire_lock)
    monkeypatch.setattr(admin_routes, "release_lock", fake_release_lock)
    return state


@pytest.mark.asyncio
async def test_reindex_all(client: AsyncClient, reindex_deps: dict):
    search_results_cache.set("search:x", {"results": []})

    response = await client.post("/v1/admin/reindex")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["indexed"] == 5
    assert "runId" in data
    assert reindex_deps["force_refresh"] is True
    assert reindex_deps["released"] == 1
    assert search_results_cache.size() == 0


@pytest.mark.asyncio
async def test_reindex_subset(client: AsyncClient, reindex_deps: dict):
    response = await client.post("/v1/admin/reindex", json={"productIds": [2, 4]})
    assert response.json()["indexed"] == 2
    assert reindex_deps["indexed"] == [2, 4]


@pytest.mark.asyncio
async def test_reindex_rejected_while_locked(client: AsyncClient, reindex_deps: dict, monkeypatch: pytest.MonkeyPatch):
    async def locked(key: str, ttl: int = 600) -> bool:
        return False

    monkeypatch.setattr(admin_routes, "acquire_lock", locked)
    response = await client.post("/v1/admin/reindex")
    assert response.status_code == 409
    assert reindex_deps["indexed"] == []


@pytest.mark.asyncio
async def test_reindex_runs_without_redis(client: AsyncClient, reindex_deps: dict, monkeypatch: pytest.MonkeyPatch):
    async def no_redis(key: str, ttl: int = 600) -> bool:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")

    monkeypatch.setattr(admin_routes, "acquire_lock", no_redis)
    response = await client.post("/v1/admin/reindex")
    assert response.status_code == 200
    assert reindex_deps["released"] == 0


@pytest.mark.asyncio
async def test_reindex_upstream_failures_return_502(client: AsyncClient, reindex_deps: dict, monkeypatch: pytest.MonkeyPatch):
    async def qdrant_down(batch) -> int:
        raise QdrantError("Qdrant unreachable")

    monkeypatch.setattr(admin_routes, "index_products", qdrant_down)
    response = await client.post("/v1/admin/reindex")
    assert response.status_code == 502
    assert reindex_deps["released"] == 1

    async def catalog_down(force_refresh: bool = False):
        raise CatalogError("WooCommerce API error: 401")

    monkeypatch.setattr(admin_routes, "get_catalog", catalog_down)
    response = await client.post("/v1/admin/reindex")
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_invalidate_requires_a_target(client: AsyncClient):
    response = await client.post("/v1/admin/cache/invalidate", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_invalidate_selective(client: AsyncClient):
    recommendation_cache.set("similar", [4], None, RecommendationContext(current_product=1))
    recommendation_cache.set("similar", [1], None, RecommendationContext(current_product=12))
    recommendation_cache.set("personalized", [2], UserProfile(preferred_categories=["honey"]))

    response = await client.post(
        "/v1/admin/cache/invalidate",
        json={"productIds": [1], "categories": ["honey"]},
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "invalidated": 2, "scope": "selective", "deletedPoints": 0}
    assert recommendation_cache.get_stats()["entries"] == 1


@pytest.mark.asyncio
async def test_invalidate_all(client: AsyncClient):
    recommendation_cache.set("similar", [4], None, RecommendationContext(current_product=1))
    response = await client.post("/v1/admin/cache/invalidate", json={"all": True})
    assert response.json()["scope"] == "all"
    assert response.json()["invalidated"] == 1


@pytest.mark.asyncio
async def test_invalidate_deleted_products_removes_points(client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
    qdrant = FakeQdrant()
    monkeypatch.setattr(admin_routes, "get_qdrant_client", lambda: qdrant)
    recommendation_cache.set("similar", [4], None, RecommendationContext(current_product=3))

    response = await client.post("/v1/admin/cache/invalidate", json={"deletedProductIds": [3]})
    assert response.status_code == 200
    assert response.json()["deletedPoints"] == 1
    assert response.json()["invalidated"] == 1
    assert qdrant.deleted == [3]
