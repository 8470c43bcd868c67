"""Redis store for shared caching and distributed locks.

Handles:
- Raw product catalog snapshot shared between workers
- Distributed locks (one reindex at a time)

TTL policies:
- Catalog snapshot: 5 minutes (matches the keyword index TTL)
- Reindex lock: 10 minutes
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from product_search.settings import get_settings

# TTL constants (in seconds)
TTL_CATALOG_SNAPSHOT = 300  # 5 minutes
TTL_REINDEX_LOCK = 600  # 10 minutes

# Key prefixes
PREFIX_CATALOG = "catalog:"
PREFIX_LOCK = "lock:"

CATALOG_PRODUCTS_KEY = f"{PREFIX_CATALOG}products"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    try:
        await _redis.ping()
    except redis.RedisError:
        await _redis.aclose()
        _redis = None
        raise
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_delete(key: str) -> None:
    """Delete value from cache."""
    await _get_redis().delete(key)


async def cache_get_json(key: str) -> Any:
    """Get JSON value from cache.

    Returns:
        Parsed JSON value or None if not found.
    """
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: Any, ttl: int) -> None:
    """Set JSON value in cache."""
    await cache_set(key, json.dumps(value), ttl)


# ============================================================
# Catalog snapshot
# ============================================================


async def get_catalog_snapshot() -> list[dict[str, Any]] | None:
    """Get the cached raw WooCommerce product list."""
    payload = await cache_get_json(CATALOG_PRODUCTS_KEY)
    if isinstance(payload, list):
        return payload
    return None


async def set_catalog_snapshot(products: list[dict[str, Any]], ttl: int = TTL_CATALOG_SNAPSHOT) -> None:
    """Cache the raw WooCommerce product list."""
    await cache_set_json(CATALOG_PRODUCTS_KEY, products, ttl)


async def delete_catalog_snapshot() -> None:
    """Drop the cached product list so the next read hits WooCommerce."""
    await cache_delete(CATALOG_PRODUCTS_KEY)


# ============================================================
# Distributed locks
# ============================================================


async def acquire_lock(key: str, ttl: int = TTL_REINDEX_LOCK) -> bool:
    """Acquire a distributed lock.

    Args:
        key: Lock key (e.g., "reindex").
        ttl: Lock timeout in seconds.

    Returns:
        True if lock acquired, False if already locked.
    """
    lock_key = f"{PREFIX_LOCK}{key}"
    # SET NX (only if not exists) with TTL
    result = await _get_redis().set(lock_key, "1", nx=True, ex=ttl)
    return result is not None


async def release_lock(key: str) -> None:
    """Release a distributed lock."""
    await cache_delete(f"{PREFIX_LOCK}{key}")
