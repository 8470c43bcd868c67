"""Recommendation result cache with selective invalidation.

Cache keys are `|`-joined segments built from the recommendation type, the
user profile, the request context and any extra params, e.g.:

    similar|cp:42|l:5
    personalized|ph:3,7|pc:honey,spices|l:10

Invalidation parses these segments, so a product/category change only drops
the entries that mention it:
- product ids: cp (current product), ph (purchases), vh (views)
- categories: cc (current category), pc (preferred categories)
- health benefits: hg (health goals), hc (health condition)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
import functools
import json
import logging
from typing import Any, Awaitable, Callable, Iterable, TypeVar
from urllib.parse import quote, unquote

from product_search.stores.memory import SearchCache

logger = logging.getLogger("uvicorn.error")

DEFAULT_TTL = 3600  # 1 hour
MAX_ENTRIES = 1000
SWEEP_INTERVAL = 600  # expired-entry sweep, every 10 minutes

PRODUCT_SEGMENTS = ("cp", "ph", "vh")
CATEGORY_SEGMENTS = ("cc", "pc")
HEALTH_SEGMENTS = ("hg", "hc")


@dataclass
class UserProfile:
    user_id: str | None = None
    purchase_history: list[int] = field(default_factory=list)
    view_history: list[int] = field(default_factory=list)
    search_history: list[str] = field(default_factory=list)
    health_goals: list[str] = field(default_factory=list)
    preferred_categories: list[str] = field(default_factory=list)
    location: str | None = None


@dataclass
class RecommendationContext:
    current_product: int | None = None
    current_category: str | None = None
    current_season: str | None = None
    health_condition: str | None = None
    target_nutrient: str | None = None
    in_stock_only: bool = False
    limit: int | None = None


def _encode(value: Any) -> str:
    # Values may contain the "|" and "," separators (e.g. "Nuts, Seeds")
    return quote(str(value), safe="")


def _sorted_csv(values: Iterable[Any]) -> str:
    return ",".join(_encode(v) for v in sorted(str(v) for v in values))


def generate_cache_key(
    rec_type: str,
    profile: UserProfile | None = None,
    context: RecommendationContext | None = None,
    extra: dict[str, Any] | None = None,
) -> str:
    parts = [rec_type]

    if profile:
        if profile.purchase_history:
            parts.append(f"ph:{_sorted_csv(profile.purchase_history)}")
        if profile.view_history:
            parts.append(f"vh:{_sorted_csv(profile.view_history)}")
        if profile.preferred_categories:
            parts.append(f"pc:{_sorted_csv(profile.preferred_categories)}")
        if profile.health_goals:
            parts.append(f"hg:{_sorted_csv(profile.health_goals)}")
        if profile.location:
            parts.append(f"loc:{_encode(profile.location)}")

    if context:
        if context.current_product is not None:
            parts.append(f"cp:{context.current_product}")
        if context.current_category:
            parts.append(f"cc:{_encode(context.current_category)}")
        if context.current_season:
            parts.append(f"cs:{_encode(context.current_season)}")
        if context.health_condition:
            parts.append(f"hc:{_encode(context.health_condition)}")
        if context.target_nutrient:
            parts.append(f"tn:{_encode(context.target_nutrient)}")
        if context.in_stock_only:
            parts.append("is:1")
        if context.limit:
            parts.append(f"l:{context.limit}")

    for name in sorted(extra or {}):
        value = (extra or {})[name]
        rendered = value if isinstance(value, str) else json.dumps(value, sort_keys=True, default=str)
        parts.append(f"{name}:{_encode(rendered)}")

    return "|".join(parts)


def parse_cache_key(key: str) -> dict[str, list[str]]:
    """Map segment prefix -> values (the leading type segment is skipped)."""
    segments: dict[str, list[str]] = {}
    for part in key.split("|")[1:]:
        prefix, sep, value = part.partition(":")
        if sep:
            segments[prefix] = [unquote(v) for v in value.split(",")]
    return segments


class RecommendationCache:
    """Per-process cache of recommendation lists."""

    def __init__(self, max_entries: int = MAX_ENTRIES, default_ttl: float = DEFAULT_TTL, **cache_kwargs: Any):
        self._cache: SearchCache[list[Any]] = SearchCache(
            max_size=max_entries, default_ttl=default_ttl, **cache_kwargs
        )
        self.hits = 0
        self.misses = 0

    def get(
        self,
        rec_type: str,
        profile: UserProfile | None = None,
        context: RecommendationContext | None = None,
        extra: dict[str, Any] | None = None,
    ) -> list[Any] | None:
        key = generate_cache_key(rec_type, profile, context, extra)
        data = self._cache.get(key)
        if data is None:
            self.misses += 1
            return None

        self.hits += 1
        logger.info(f"Recommendation cache hit: {rec_type}")
        return copy.deepcopy(data)

    def set(
        self,
        rec_type: str,
        data: list[Any],
        profile: UserProfile | None = None,
        context: RecommendationContext | None = None,
        extra: dict[str, Any] | None = None,
        ttl: float | None = None,
    ) -> None:
        key = generate_cache_key(rec_type, profile, context, extra)
        self._cache.set(key, copy.deepcopy(data), ttl)
        logger.info(f"Cached recommendations: {rec_type} ({len(data)} items)")

    def invalidate(
        self,
        product_ids: Iterable[int] | None = None,
        categories: Iterable[str] | None = None,
        health_benefits: Iterable[str] | None = None,
    ) -> int:
        """Drop entries that mention any of the given products/categories/benefits.

        Returns:
            Number of entries dropped.
        """
        targets: list[tuple[tuple[str, ...], set[str]]] = [
            (PRODUCT_SEGMENTS, {str(p) for p in product_ids or []}),
            (CATEGORY_SEGMENTS, {str(c) for c in categories or []}),
            (HEALTH_SEGMENTS, {str(h) for h in health_benefits or []}),
        ]
        targets = [(prefixes, values) for prefixes, values in targets if values]
        if not targets:
            return 0

        def _mentions(key: str) -> bool:
            segments = parse_cache_key(key)
            return any(
                values.intersection(segments.get(prefix, ()))
                for prefixes, values in targets
                for prefix in prefixes
            )

        dropped = self._cache.invalidate_where(_mentions)
        if dropped:
            logger.info(f"Invalidated {dropped} recommendation cache entries")
        return dropped

    def invalidate_all(self) -> int:
        count = self._cache.size()
        self._cache.clear()
        logger.info(f"Invalidated all {count} recommendation cache entries")
        return count

    def cleanup(self) -> int:
        return self._cache.cleanup()

    def get_stats(self) -> dict[str, Any]:
        entries = self._cache.size()
        total = self.hits + self.misses
        hit_rate = self.hits / total if total else 0.0
        approx_bytes = sum(len(json.dumps(v, default=str)) for _, v in self._cache.items())
        return {
            "hits": self.hits,
            "misses": self.misses,
            "entries": entries,
            "hitRate": round(hit_rate, 2),
            "memoryUsage": round(approx_bytes / 1024),
        }

    def get_popular_entries(self, limit: int = 10) -> list[dict[str, Any]]:
        """Live entries in insertion order, capped at `limit`."""
        return [{"key": key, "data": data} for key, data in list(self._cache.items())[:limit]]


recommendation_cache = RecommendationCache()

F = TypeVar("F", bound=Callable[..., Awaitable[list[Any]]])


def cached_recommendations(cache: RecommendationCache, rec_type: str, ttl: float | None = None) -> Callable[[F], F]:
    """Cache an async `(profile, context, *extra)` recommendation function.

    Positional extras are part of the key; keyword arguments are not.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(
            profile: UserProfile | None = None,
            context: RecommendationContext | None = None,
            *args: Any,
            **kwargs: Any,
        ) -> list[Any]:
            extra = {"args": list(args)} if args else None
            cached = cache.get(rec_type, profile, context, extra)
            if cached is not None:
                return cached

            result = await func(profile, context, *args, **kwargs)
            cache.set(rec_type, result, profile, context, extra, ttl)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
