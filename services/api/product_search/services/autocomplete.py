"""Search-as-you-type suggestions.

Sources (each can be toggled):
- products: titles containing the query
- categories: category names starting with / containing the query
- queries: keyword-index word completions + optimizer rewrites

Empty query -> trending: popular queries from analytics, falling back to the
catalog's categories when analytics are unavailable.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
from typing import Any, Literal

from sqlalchemy.exc import SQLAlchemyError

from product_search.services.catalog import CatalogSnapshot
from product_search.services.keyword_search import get_search_suggestions
from product_search.services.query_optimizer import optimize_query
from product_search.services.search_analytics import get_popular_queries
from product_search.services.search_cache import (
    TTL_AUTOCOMPLETE_TRENDING,
    autocomplete_cache,
    generate_autocomplete_cache_key,
)
from product_search.stores.postgres import is_db_initialized

logger = logging.getLogger("uvicorn.error")

SuggestionType = Literal["product", "category", "query", "trending"]


@dataclass
class Suggestion:
    id: str
    type: SuggestionType
    text: str
    score: float
    product_id: int | None = None
    count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _text_score(text: str, query: str) -> float:
    """1.0 prefix, 0.8 word prefix, 0.5 contains, 0 otherwise."""
    lower = text.lower()
    if lower.startswith(query):
        return 1.0
    if any(word.startswith(query) for word in lower.split()):
        return 0.8
    if query in lower:
        return 0.5
    return 0.0


def _product_suggestions(query: str, catalog: CatalogSnapshot) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    for product in catalog.products:
        score = _text_score(product.name, query)
        if score > 0:
            # Small boost so best-sellers win ties
            bonus = 0.05 if product.featured else 0.0
            suggestions.append(
                Suggestion(
                    id=f"product-{product.id}",
                    type="product",
                    text=product.name,
                    score=score + bonus,
                    product_id=product.id,
                )
            )
    return suggestions


def _category_suggestions(query: str, catalog: CatalogSnapshot) -> list[Suggestion]:
    counts: dict[str, int] = {}
    for product in catalog.products:
        for name in product.categories:
            if name:
                counts[name] = counts.get(name, 0) + 1

    suggestions: list[Suggestion] = []
    for name, count in counts.items():
        score = _text_score(name, query)
        if score > 0:
            suggestions.append(
                Suggestion(id=f"category-{name.lower()}", type="category", text=name, score=score * 0.9, count=count)
            )
    return suggestions


def _query_suggestions(query: str, rewrites: list[str], catalog: CatalogSnapshot) -> list[Suggestion]:
    suggestions: list[Suggestion] = []
    # Complete the last word being typed
    head, _, last = query.rpartition(" ")
    if last:
        for word in get_search_suggestions(last, catalog.index, max_suggestions=5):
            text = f"{head} {word}".strip() if head else word
            suggestions.append(Suggestion(id=f"query-{text.lower()}", type="query", text=text, score=0.7))

    for rewrite in rewrites:
        suggestions.append(Suggestion(id=f"query-{rewrite}", type="query", text=rewrite, score=0.4))
    return suggestions


async def _trending(catalog: CatalogSnapshot, limit: int) -> list[Suggestion]:
    if is_db_initialized():
        try:
            popular = await get_popular_queries(limit=limit)
        except (RuntimeError, SQLAlchemyError, OSError) as e:
            logger.warning(f"Popular queries unavailable: {e}")
            popular = []
        if popular:
            top = popular[0].count or 1
            return [
                Suggestion(id=f"trending-{p.query}", type="trending", text=p.query, score=p.count / top, count=p.count)
                for p in popular
            ]

    return [
        Suggestion(id=f"category-{name.lower()}", type="category", text=name, score=0.5)
        for name in catalog.categories()[:limit]
    ]


async def get_autocomplete(
    query: str,
    catalog: CatalogSnapshot,
    *,
    limit: int = 8,
    include_products: bool = True,
    include_categories: bool = True,
    include_queries: bool = True,
) -> dict[str, Any]:
    """Build (or fetch from cache) the autocomplete payload for a query."""
    query = query.strip().lower()
    options = {
        "limit": limit,
        "products": include_products,
        "categories": include_categories,
        "queries": include_queries,
    }
    cache_key = generate_autocomplete_cache_key(query, options)
    cached = autocomplete_cache.get(cache_key)
    if cached is not None:
        return cached

    if not query:
        trending = await _trending(catalog, limit)
        result = {"query": "", "suggestions": [s.to_dict() for s in trending[:limit]], "corrections": []}
        autocomplete_cache.set(cache_key, result, TTL_AUTOCOMPLETE_TRENDING)
        return result

    optimized = optimize_query(query)
    search_query = optimized.optimized or query
    if search_query != query:
        logger.info(f'Autocomplete query optimized: "{query}" -> "{search_query}"')

    candidates: list[Suggestion] = []
    if include_products:
        candidates.extend(_product_suggestions(search_query, catalog))
    if include_categories:
        candidates.extend(_category_suggestions(search_query, catalog))
    if include_queries:
        candidates.extend(_query_suggestions(search_query, optimized.suggestions, catalog))

    # Keep the best-scoring suggestion per text; sorted() is stable so ties keep source order
    unique: dict[str, Suggestion] = {}
    for suggestion in sorted(candidates, key=lambda s: s.score, reverse=True):
        unique.setdefault(suggestion.text.lower(), suggestion)

    result = {
        "query": search_query,
        "suggestions": [s.to_dict() for s in list(unique.values())[:limit]],
        "corrections": optimized.corrections,
    }
    autocomplete_cache.set(cache_key, result)
    return result
