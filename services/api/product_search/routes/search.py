"""Search endpoints.

GET  /v1/search/keyword       - Stemmed + fuzzy keyword search (query params)
POST /v1/search/keyword       - Keyword search with options and filters
GET  /v1/search/semantic      - Vector search blended with keyword scores
GET  /v1/search/hybrid        - Semantic + keyword candidates, 0-100 relevance
GET  /v1/search/autocomplete  - Search-as-you-type suggestions
POST /v1/search/clicks        - Result click tracking
GET  /v1/search/analytics     - Search activity summary
GET  /v1/search/cache/stats   - In-process cache metrics

Routers are thin: call services for business logic.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from product_search.schemas import (
    AutocompleteResponse,
    ClickRequest,
    ClickResponse,
    HybridResultItem,
    HybridSearchResponse,
    KeywordFilters,
    KeywordResultItem,
    KeywordSearchRequest,
    KeywordSearchResponse,
    QueryCountItem,
    SearchAnalyticsResponse,
    SearchStats,
    SemanticResultItem,
    SemanticSearchResponse,
)
from product_search.services.autocomplete import get_autocomplete
from product_search.services.catalog import CatalogSnapshot, get_catalog
from product_search.services.embeddings import EmbeddingError
from product_search.services.hybrid_search import (
    HybridSearchOptions,
    hybrid_vector_search,
    perform_hybrid_search,
    product_from_payload,
)
from product_search.services.keyword_search import (
    KeywordSearchOptions,
    KeywordSearchResult,
    get_search_suggestions,
    keyword_search,
)
from product_search.services.recommendation_cache import recommendation_cache
from product_search.services.search_analytics import get_search_summary, record_click, record_search
from product_search.services.search_cache import (
    TTL_SEARCH_RESULTS,
    TTL_SEMANTIC_GET,
    generate_search_cache_key,
    get_search_cache_stats,
    search_results_cache,
)
from product_search.services.vector_store import QdrantError, get_qdrant_client, search_products
from product_search.services.woocommerce_client import CatalogError
from product_search.settings import get_settings
from product_search.stores.postgres import is_db_initialized

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

MAX_SEMANTIC_LIMIT = 50


def _require_query(q: str | None) -> str:
    query = (q or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query parameter is required")
    return query


async def _load_catalog() -> CatalogSnapshot:
    try:
        return await get_catalog()
    except CatalogError as e:
        logger.error(f"Catalog unavailable: {e}")
        raise HTTPException(status_code=502, detail="Product catalog unavailable")


def _apply_filters(results: list[KeywordSearchResult], catalog: CatalogSnapshot, filters: KeywordFilters) -> list[KeywordSearchResult]:
    filtered: list[KeywordSearchResult] = []
    for result in results:
        if filters.in_stock is not None and result.in_stock != filters.in_stock:
            continue
        if filters.featured is not None and result.featured != filters.featured:
            continue
        if filters.price_range is not None:
            if filters.price_range.min is not None and result.price < filters.price_range.min:
                continue
            if filters.price_range.max is not None and result.price > filters.price_range.max:
                continue
        if filters.category:
            product = catalog.get(result.product_id)
            if product is None or not product.matches_category(filters.category):
                continue
        filtered.append(result)
    return filtered


def _keyword_response(
    query: str,
    results: list[KeywordSearchResult],
    limit: int,
    suggestions: list[str] | None = None,
) -> KeywordSearchResponse:
    page = results[:limit]
    scores = [r.score for r in results]
    return KeywordSearchResponse(
        query=query,
        results=[
            KeywordResultItem(
                product_id=r.product_id,
                slug=r.slug,
                title=r.title,
                price=r.price,
                categories=r.categories,
                in_stock=r.in_stock,
                featured=r.featured,
                relevance_score=round(r.score, 4),
                matched_fields=r.matched_fields,
                matched_terms=r.matched_terms,
            )
            for r in page
        ],
        stats=SearchStats(
            total=len(results),
            average_score=round(sum(scores) / len(scores), 4) if scores else 0.0,
            top_score=round(max(scores), 4) if scores else 0.0,
        ),
        suggestions=suggestions or [],
    )


@router.get("/keyword", response_model=KeywordSearchResponse)
async def keyword_search_get(
    q: str | None = Query(default=None, description="Search query", examples=["organic honey"]),
    limit: int = Query(default=20, ge=1, le=100),
    fuzzy: bool = Query(default=True, description="Enable typo-tolerant matching"),
    stemming: bool = Query(default=True),
    min_score: float = Query(default=0.1, alias="minScore", ge=0),
    suggestions: bool = Query(default=False, description="Include completions for the last word"),
) -> KeywordSearchResponse:
    """Keyword search over the catalog index."""
    query = _require_query(q)

    cache_key = generate_search_cache_key(
        query,
        {"limit": limit, "fuzzy": fuzzy, "stemming": stemming, "minScore": min_score, "suggestions": suggestions},
        "keyword",
    )
    cached = search_results_cache.get(cache_key)
    if cached is not None:
        await record_search(query, "keyword", cached.stats.total)
        return cached

    catalog = await _load_catalog()
    results = keyword_search(
        query,
        catalog.index,
        KeywordSearchOptions(fuzzy_match=fuzzy, stemming=stemming, min_score=min_score),
    )
    words = get_search_suggestions(query.split()[-1], catalog.index) if suggestions else None

    response = _keyword_response(query, results, limit, words)
    search_results_cache.set(cache_key, response, TTL_SEARCH_RESULTS)
    await record_search(query, "keyword", len(results))
    return response


@router.post("/keyword", response_model=KeywordSearchResponse)
async def keyword_search_post(request: KeywordSearchRequest) -> KeywordSearchResponse:
    """Keyword search with scorer options and post-scoring filters."""
    query = _require_query(request.query)
    catalog = await _load_catalog()

    options = KeywordSearchOptions(
        fuzzy_match=request.options.fuzzy_match,
        stemming=request.options.stemming,
        min_score=request.options.min_score,
    )
    if request.options.boost:
        options.boost.update(request.options.boost)

    results = _apply_filters(keyword_search(query, catalog.index, options), catalog, request.filters)
    await record_search(query, "keyword", len(results))
    return _keyword_response(query, results, request.limit)


def _keyword_fallback(query: str, catalog: CatalogSnapshot, limit: int, category: str | None, in_stock: bool | None) -> list[SemanticResultItem]:
    filters = KeywordFilters(category=category, in_stock=in_stock)
    results = _apply_filters(keyword_search(query, catalog.index), catalog, filters)[:limit]
    items: list[SemanticResultItem] = []
    for r in results:
        product = catalog.get(r.product_id)
        items.append(
            SemanticResultItem(
                product_id=r.product_id,
                name=r.title,
                slug=r.slug,
                price=r.price,
                categories=r.categories,
                in_stock=r.in_stock,
                image=product.image if product else "",
                score=r.score,
                keyword_score=r.score,
                match_type="keyword",
            )
        )
    return items


@router.get("/semantic", response_model=SemanticSearchResponse)
async def semantic_search(
    q: str | None = Query(default=None, description="Search query"),
    limit: int = Query(default=20, ge=1, le=MAX_SEMANTIC_LIMIT),
    category: str | None = Query(default=None, description="Category slug or name"),
    in_stock: bool | None = Query(default=None, alias="inStock"),
) -> SemanticSearchResponse:
    """Vector search blended with payload keyword scores.

    Falls back to keyword search over the catalog when the vector store is
    unhealthy or the query cannot be embedded.
    """
    query = _require_query(q)

    cache_key = generate_search_cache_key(query, {"limit": limit, "category": category, "inStock": in_stock}, "semantic")
    cached = search_results_cache.get(cache_key)
    if cached is not None:
        await record_search(query, "semantic", len(cached.results))
        return cached.model_copy(update={"cached": True})

    response: SemanticSearchResponse | None = None
    if await get_qdrant_client().health_check():
        try:
            blended = await hybrid_vector_search(
                query,
                limit=limit,
                category=category,
                in_stock=in_stock,
                semantic_weight=get_settings().semantic_weight,
                vector_search=search_products,
            )
            results: list[SemanticResultItem] = []
            for hit in blended:
                product = product_from_payload(hit.id, hit.payload)
                results.append(
                    SemanticResultItem(
                        product_id=hit.id,
                        name=product.name,
                        slug=product.slug,
                        price=product.price,
                        categories=product.categories,
                        in_stock=product.in_stock,
                        image=product.image,
                        score=round(hit.score, 4),
                        semantic_score=round(hit.semantic_score, 4),
                        keyword_score=round(hit.keyword_score, 4),
                        match_type=hit.match_type,
                    )
                )
            response = SemanticSearchResponse(query=query, results=results, source="vector")
        except (QdrantError, EmbeddingError) as e:
            logger.warning(f"Semantic search failed, falling back to keyword search: {e}")
    else:
        logger.warning("Vector store unhealthy, falling back to keyword search")

    if response is None:
        catalog = await _load_catalog()
        response = SemanticSearchResponse(
            query=query,
            results=_keyword_fallback(query, catalog, limit, category, in_stock),
            source="keyword",
        )

    search_results_cache.set(cache_key, response, TTL_SEMANTIC_GET)
    await record_search(query, "semantic", len(response.results))
    return response


@router.get("/hybrid", response_model=HybridSearchResponse)
async def hybrid_search(
    q: str | None = Query(default=None, description="Search query"),
    limit: int = Query(default=20, ge=1, le=100),
    category: str | None = Query(default=None),
    in_stock_only: bool = Query(default=False, alias="inStockOnly"),
    expand: bool = Query(default=True, description="Expand the query with synonyms"),
) -> HybridSearchResponse:
    """Semantic and keyword candidates merged into one 0-100 ranking."""
    query = _require_query(q)
    catalog = await _load_catalog()

    ranked = await perform_hybrid_search(
        query,
        catalog,
        HybridSearchOptions(limit=limit, expand_query=expand, category=category, in_stock_only=in_stock_only),
        vector_search=search_products,
    )
    await record_search(query, "hybrid", len(ranked))

    return HybridSearchResponse(
        query=query,
        results=[
            HybridResultItem(
                product_id=r.product.id,
                name=r.product.name,
                slug=r.product.slug,
                price=r.product.price,
                categories=r.product.categories,
                in_stock=r.product.in_stock,
                image=r.product.image,
                score=round(r.score, 2),
                source=r.source,
                explanation=r.explanation,
                semantic_score=r.semantic_score,
            )
            for r in ranked
        ],
        total=len(ranked),
    )


@router.get("/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(
    q: str = Query(default="", description="Partial query; empty returns trending"),
    limit: int = Query(default=8, ge=1, le=20),
    products: bool = Query(default=True),
    categories: bool = Query(default=True),
    queries: bool = Query(default=True),
) -> AutocompleteResponse:
    catalog = await _load_catalog()
    payload = await get_autocomplete(
        q,
        catalog,
        limit=limit,
        include_products=products,
        include_categories=categories,
        include_queries=queries,
    )
    return AutocompleteResponse.model_validate(payload)


@router.post("/clicks", response_model=ClickResponse)
async def track_click(request: ClickRequest) -> ClickResponse:
    recorded = await record_click(
        request.query,
        product_id=request.product_id,
        position=request.position,
        session_id=request.session_id,
    )
    return ClickResponse(recorded=recorded)


@router.get("/analytics", response_model=SearchAnalyticsResponse)
async def search_analytics(
    days: int = Query(default=7, ge=1, le=365),
    limit: int = Query(default=10, ge=1, le=100),
) -> SearchAnalyticsResponse:
    """Search volume, click-through and top / zero-result queries."""
    if not is_db_initialized():
        raise HTTPException(status_code=503, detail="Search analytics unavailable")
    try:
        summary = await get_search_summary(days=days, limit=limit)
    except (RuntimeError, SQLAlchemyError) as e:
        logger.warning(f"Search analytics query failed: {e}")
        raise HTTPException(status_code=503, detail="Search analytics unavailable")

    return SearchAnalyticsResponse(
        days=summary.days,
        total_searches=summary.total_searches,
        total_clicks=summary.total_clicks,
        click_through_rate=summary.click_through_rate,
        top_queries=[QueryCountItem(query=q.query, count=q.count) for q in summary.top_queries],
        zero_result_queries=[QueryCountItem(query=q.query, count=q.count) for q in summary.zero_result_queries],
    )


@router.get("/cache/stats")
async def cache_stats() -> dict[str, Any]:
    return {
        **get_search_cache_stats(),
        "recommendations": recommendation_cache.get_stats(),
    }
