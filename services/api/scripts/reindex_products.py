#!/usr/bin/env python3
"""Catalog reindex job for cron.

Schedule:
- Run after bulk catalog edits, or nightly.

Behavior:
- Fetch the full WooCommerce catalog (paged, bypassing the Redis snapshot)
- Embed and upsert every product into the Qdrant collection
- Refresh the shared Redis catalog snapshot with the fetched products
- Holds the same Redis lock as POST /v1/admin/reindex, so the two never overlap

Run (local / cron):
  cd services/api
  python -m scripts.reindex_products

Optional env vars:
  REINDEX_PRODUCT_IDS="101,102"   (only reindex these products)
"""

import asyncio
import os
import sys
import time


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv  # noqa: E402
from redis.exceptions import RedisError  # noqa: E402

from product_search.routes.admin import REINDEX_LOCK  # noqa: E402
from product_search.services.catalog import get_catalog  # noqa: E402
from product_search.services.vector_store import close_qdrant_client, index_products  # noqa: E402
from product_search.stores.redis import acquire_lock, close_redis, init_redis, release_lock  # noqa: E402

load_dotenv()


def _parse_ids_env(name: str) -> set[int] | None:
    raw = os.getenv(name, "")
    if not raw.strip():
        return None
    return {int(p.strip()) for p in raw.split(",") if p.strip()}


async def main() -> None:
    # Cron can still run without Redis (no lock, no shared snapshot).
    redis_ready = True
    try:
        await init_redis()
    except (RedisError, OSError) as e:
        print({"warning": f"Redis unavailable, running without lock: {e}"})
        redis_ready = False

    locked = False
    try:
        if redis_ready:
            locked = await acquire_lock(REINDEX_LOCK)
            if not locked:
                print({"ok": False, "reason": "reindex already in progress"})
                return

        product_ids = _parse_ids_env("REINDEX_PRODUCT_IDS")
        started = time.monotonic()

        catalog = await get_catalog(force_refresh=True)
        products = [p for p in catalog.products if product_ids is None or p.id in product_ids]
        indexed = await index_products(products)

        # Final output for cron logs (single JSON-ish blob)
        print(
            {
                "ok": True,
                "catalog_products": len(catalog.products),
                "indexed": indexed,
                "categories": len(catalog.categories()),
                "out_of_stock": sum(1 for p in products if not p.in_stock),
                "duration_s": round(time.monotonic() - started, 2),
                "locked": locked,
            }
        )
    finally:
        if locked:
            await release_lock(REINDEX_LOCK)
        await close_qdrant_client()
        await close_redis()


if __name__ == "__main__":
    asyncio.run(main())
