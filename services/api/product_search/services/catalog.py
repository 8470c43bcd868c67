"""Product catalog snapshot and keyword index lifecycle.

Read path:
1. In-process snapshot younger than SEARCH_INDEX_TTL_SECONDS -> reuse
2. Redis raw product list (shared between workers) -> rebuild index locally
3. WooCommerce (paged) -> store raw list in Redis, rebuild index

If Redis is unavailable (e.g. tests / local minimal env), the catalog still
works but every worker fetches from WooCommerce itself.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import time
from typing import Any

from redis.exceptions import RedisError

from product_search.services.keyword_search import SearchIndexEntry, build_search_index
from product_search.services.woocommerce_client import Product, WooCommerceClient
from product_search.settings import get_settings
from product_search.stores.redis import (
    delete_catalog_snapshot,
    get_catalog_snapshot,
    set_catalog_snapshot,
)

logger = logging.getLogger("uvicorn.error")


@dataclass
class CatalogSnapshot:
    products: list[Product]
    index: list[SearchIndexEntry]
    built_at: float = field(default_factory=time.monotonic)
    by_id: dict[int, Product] = field(init=False)

    def __post_init__(self) -> None:
        self.by_id = {p.id: p for p in self.products}

    @classmethod
    def from_products(cls, products: list[Product]) -> "CatalogSnapshot":
        return cls(products=products, index=build_search_index(products))

    def get(self, product_id: int) -> Product | None:
        return self.by_id.get(product_id)

    def age(self) -> float:
        return time.monotonic() - self.built_at

    def categories(self) -> list[str]:
        """Distinct category names in first-seen order."""
        seen: dict[str, None] = {}
        for product in self.products:
            for name in product.categories:
                if name:
                    seen.setdefault(name, None)
        return list(seen)


_snapshot: CatalogSnapshot | None = None
_rebuild_lock = asyncio.Lock()


async def get_catalog(force_refresh: bool = False) -> CatalogSnapshot:
    """Get the current catalog snapshot, rebuilding it when stale."""
    global _snapshot
    ttl = get_settings().search_index_ttl_seconds

    current = _snapshot
    if not force_refresh and current is not None and current.age() < ttl:
        return current

    async with _rebuild_lock:
        # Another request may have rebuilt while we waited
        current = _snapshot
        if not force_refresh and current is not None and current.age() < ttl:
            return current

        logger.info("Rebuilding keyword search index...")
        raw = None if force_refresh else await _try_get_cached_products()
        if raw is None:
            raw = await _fetch_products()
            await _try_set_cached_products(raw)

        products = [Product.from_woocommerce(item) for item in raw]
        _snapshot = CatalogSnapshot.from_products(products)
        logger.info(f"Built search index with {len(_snapshot.index)} products")
        return _snapshot


def set_catalog(products: list[Product]) -> CatalogSnapshot:
    """Install a snapshot built from already-loaded products."""
    global _snapshot
    _snapshot = CatalogSnapshot.from_products(products)
    return _snapshot


async def invalidate_catalog() -> None:
    """Drop the in-process snapshot and the shared Redis copy."""
    global _snapshot
    _snapshot = None
    try:
        await delete_catalog_snapshot()
    except (RuntimeError, RedisError):
        # Redis may be unavailable in tests/local minimal env.
        return


async def _fetch_products() -> list[dict[str, Any]]:
    settings = get_settings()
    client = WooCommerceClient()
    try:
        return await client.get_all_raw_products(
            per_page=settings.catalog_page_size,
            max_pages=settings.catalog_max_pages,
        )
    finally:
        await client.close()


async def _try_get_cached_products() -> list[dict[str, Any]] | None:
    try:
        cached = await get_catalog_snapshot()
    except (RuntimeError, RedisError):
        return None
    if cached:
        logger.info(f"Catalog loaded from Redis: {len(cached)} products")
    return cached or None


async def _try_set_cached_products(products: list[dict[str, Any]]) -> None:
    if not products:
        return
    ttl = get_settings().search_index_ttl_seconds
    try:
        await set_catalog_snapshot(products, ttl=max(ttl, 1))
    except (RuntimeError, RedisError):
        # Redis may be unavailable in tests/local minimal env.
        return
