"""Process-wide cache instances and cache key helpers for search endpoints.

TTL policies:
- Search results: 5 minutes (semantic GET responses use 10 seconds)
- Autocomplete: 10 minutes (trending/empty query: 5 minutes)
- Query embeddings: 1 hour
"""

import base64
import hashlib
import json
import logging
from typing import Any

from product_search.stores.memory import SearchCache

logger = logging.getLogger("uvicorn.error")

TTL_SEARCH_RESULTS = 300
TTL_SEMANTIC_GET = 10
TTL_AUTOCOMPLETE = 600
TTL_AUTOCOMPLETE_TRENDING = 300
TTL_EMBEDDINGS = 3600

SWEEP_INTERVAL = 300  # expired-entry sweep, every 5 minutes

search_results_cache: SearchCache[Any] = SearchCache(max_size=500, default_ttl=TTL_SEARCH_RESULTS)
autocomplete_cache: SearchCache[Any] = SearchCache(max_size=1000, default_ttl=TTL_AUTOCOMPLETE)
embedding_cache: SearchCache[list[float]] = SearchCache(max_size=2000, default_ttl=TTL_EMBEDDINGS)


def _digest(payload: str) -> str:
    raw = hashlib.sha256(payload.encode("utf-8")).digest()[:18]
    return base64.urlsafe_b64encode(raw).decode("ascii")


def generate_search_cache_key(query: str, filters: dict[str, Any] | None, search_type: str) -> str:
    """Stable key for a search request (filter dict order does not matter)."""
    filter_key = json.dumps(filters or {}, sort_keys=True, default=str)
    return f"search:{_digest(f'{query}:{filter_key}:{search_type}')}"


def generate_autocomplete_cache_key(query: str, options: dict[str, Any] | None) -> str:
    options_key = json.dumps(options or {}, sort_keys=True, default=str)
    return f"autocomplete:{_digest(f'{query}:{options_key}')}"


def cleanup_search_caches() -> dict[str, int]:
    """Drop expired entries from every search cache."""
    removed = {
        "searchResults": search_results_cache.cleanup(),
        "autocomplete": autocomplete_cache.cleanup(),
        "embeddings": embedding_cache.cleanup(),
    }
    logger.info(
        "Search cache cleanup: "
        f"results={search_results_cache.size()} autocomplete={autocomplete_cache.size()} "
        f"embeddings={embedding_cache.size()}"
    )
    return removed


def clear_search_caches() -> None:
    """Clear result caches after the catalog changes (embeddings stay valid)."""
    search_results_cache.clear()
    autocomplete_cache.clear()


def get_search_cache_stats() -> dict[str, Any]:
    """Aggregate metrics across all search caches."""
    caches = {
        "searchResults": search_results_cache,
        "autocomplete": autocomplete_cache,
        "embeddings": embedding_cache,
    }
    metrics = {name: cache.get_metrics() for name, cache in caches.items()}
    total_hits = sum(m.hits for m in metrics.values())
    total_misses = sum(m.misses for m in metrics.values())
    total_requests = total_hits + total_misses
    total_size = sum(cache.size() for cache in caches.values())

    return {
        **{name: m.to_dict() for name, m in metrics.items()},
        "total": {
            "size": total_size,
            "hitRate": total_hits / total_requests if total_requests else 0.0,
            "memoryUsage": f"~{round(total_size * 0.1)}KB",
        },
    }
