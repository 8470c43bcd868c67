"""Hybrid search: vector (semantic) candidates blended with keyword candidates.

Relevance score (0-100):
- Name contains full query: 40, else matched words share of 25
- Description contains query: 20 (short description: 15)
- Semantic similarity: up to 30
- Average rating > 4: 10
- Found by both semantic and keyword retrieval: +15

Vector-only blend (used by /v1/search/semantic):
- combined = semantic * w + keyword * (1 - w), w = Settings.semantic_weight
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, Literal

from product_search.services.catalog import CatalogSnapshot
from product_search.services.embeddings import EmbeddingError
from product_search.services.keyword_search import KeywordSearchOptions, keyword_search
from product_search.services.vector_store import QdrantError, VectorHit, search_products
from product_search.services.woocommerce_client import Product

logger = logging.getLogger("uvicorn.error")

Source = Literal["semantic", "keyword", "hybrid"]

MAX_SCORE = 100.0
BOTH_SOURCES_BOOST = 15.0
KEYWORD_CANDIDATES_PER_QUERY = 10
# Category filtering happens locally (name substring or slug), so fetch extra vector hits
CATEGORY_OVERFETCH = 3
MAX_EXPANDED_QUERIES = 3

SYNONYM_MAP: dict[str, list[str]] = {
    "organic": ["natural", "pure", "chemical-free"],
    "fresh": ["farm-fresh", "crisp", "newly harvested"],
    "vegetable": ["veggie", "produce", "greens"],
    "fruit": ["produce", "fresh fruit"],
    "tomato": ["tomatoes", "cherry tomato"],
    "potato": ["potatoes", "spud"],
    "carrot": ["carrots"],
    "apple": ["apples"],
    "banana": ["bananas"],
}

VectorSearch = Callable[..., Awaitable[list[VectorHit]]]


@dataclass
class HybridSearchOptions:
    limit: int = 20
    expand_query: bool = True
    category: str | None = None
    in_stock_only: bool = False


@dataclass
class HybridSearchResult:
    product: Product
    score: float
    source: Source
    explanation: str = ""
    semantic_score: float | None = None


@dataclass
class BlendedHit:
    id: int
    score: float
    semantic_score: float
    keyword_score: float
    payload: dict
    match_type: Source


def expand_query(query: str) -> list[str]:
    """Original query plus synonym variants (max 3 total)."""
    expanded: dict[str, None] = {query: None}
    for word in query.lower().split(" "):
        for synonym in SYNONYM_MAP.get(word, []):
            # Case-insensitive replace of the first occurrence
            pos = query.lower().find(word)
            variant = query[:pos] + synonym + query[pos + len(word) :]
            expanded.setdefault(variant, None)
    return list(expanded)[:MAX_EXPANDED_QUERIES]


def calculate_score(product: Product, query: str, semantic_score: float | None = None) -> float:
    """0-100 relevance of a product for a query."""
    score = 0.0
    query_lower = query.lower()
    name = product.name.lower()

    if query_lower in name:
        score += 40
    else:
        words = query_lower.split(" ")
        matches = sum(1 for w in words if w in name)
        score += matches / len(words) * 25

    if query_lower in product.description.lower():
        score += 20
    elif query_lower in product.short_description.lower():
        score += 15

    if semantic_score:
        score += semantic_score * 30

    if product.average_rating > 4:
        score += 10

    return min(MAX_SCORE, score)


def _passes_filters(product: Product, options: HybridSearchOptions) -> bool:
    if options.in_stock_only and not product.in_stock:
        return False
    if options.category and not product.matches_category(options.category):
        return False
    return True


def product_from_payload(product_id: int, payload: dict) -> Product:
    """Rebuild a Product from a vector payload (for hits missing from the catalog)."""
    return Product(
        id=product_id,
        name=str(payload.get("name") or ""),
        slug=str(payload.get("slug") or ""),
        short_description=str(payload.get("short_description") or ""),
        price=float(payload.get("price") or 0.0),
        sale_price=payload.get("sale_price"),
        categories=list(payload.get("category_names") or payload.get("categories") or []),
        category_slugs=list(payload.get("categories") or []),
        tags=list(payload.get("tags") or []),
        tag_slugs=list(payload.get("tags") or []),
        stock_status="instock" if payload.get("in_stock") else "outofstock",
        featured=bool(payload.get("featured") or False),
        average_rating=float(payload.get("average_rating") or 0.0),
        total_sales=int(payload.get("total_sales") or 0),
        image=str(payload.get("image") or ""),
    )


async def perform_hybrid_search(
    query: str,
    catalog: CatalogSnapshot,
    options: HybridSearchOptions | None = None,
    *,
    vector_search: VectorSearch = search_products,
) -> list[HybridSearchResult]:
    """Merge semantic and keyword candidates into one ranked list."""
    opts = options or HybridSearchOptions()
    results: dict[int, HybridSearchResult] = {}

    # 1. Semantic candidates (optional: degrade to keyword-only)
    fetch_limit = opts.limit * CATEGORY_OVERFETCH if opts.category else opts.limit
    try:
        hits = await vector_search(
            query,
            limit=fetch_limit,
            in_stock=True if opts.in_stock_only else None,
        )
    except (QdrantError, EmbeddingError) as e:
        logger.warning(f"Semantic search failed, continuing with keyword search: {e}")
        hits = []

    for hit in hits:
        product = catalog.get(hit.id) or product_from_payload(hit.id, hit.payload)
        if not _passes_filters(product, opts):
            continue
        results[product.id] = HybridSearchResult(
            product=product,
            score=calculate_score(product, query, hit.score),
            source="semantic",
            explanation=f"Semantic match: {hit.score * 100:.1f}%",
            semantic_score=hit.score,
        )
    if hits:
        logger.info(f"Semantic search found {len(hits)} results")

    # 2. Keyword candidates over the expanded queries
    queries = expand_query(query) if opts.expand_query else [query]
    for expanded in queries:
        for kw in keyword_search(expanded, catalog.index, KeywordSearchOptions())[:KEYWORD_CANDIDATES_PER_QUERY]:
            product = catalog.get(kw.product_id)
            if product is None or not _passes_filters(product, opts):
                continue

            existing = results.get(product.id)
            if existing is None:
                results[product.id] = HybridSearchResult(
                    product=product,
                    score=calculate_score(product, query),
                    source="keyword",
                    explanation=f'Keyword match: "{expanded}"',
                )
            elif existing.source == "semantic":
                existing.score = min(MAX_SCORE, existing.score + BOTH_SOURCES_BOOST)
                existing.source = "hybrid"
                existing.explanation = "Found in both semantic and keyword search"

    ranked = sorted(results.values(), key=lambda r: r.score, reverse=True)[: opts.limit]
    logger.info(f"Hybrid search completed: {len(ranked)} results returned")
    return ranked


def blend_vector_results(
    query: str,
    hits: list[VectorHit],
    semantic_weight: float = 0.7,
    limit: int = 20,
) -> list[BlendedHit]:
    """Re-rank vector hits with a payload keyword score."""
    words = query.lower().split()
    blended: list[BlendedHit] = []

    for hit in hits:
        name = str(hit.payload.get("name") or "").lower()
        description = str(hit.payload.get("short_description") or "").lower()

        raw_keyword = 0
        for word in words:
            if word in name:
                raw_keyword += 2
            if word in description:
                raw_keyword += 1
        keyword_score = raw_keyword / (len(words) * 3) if words and raw_keyword else 0.0

        semantic_score = hit.score
        if keyword_score > 0 and semantic_score > 0:
            match_type: Source = "hybrid"
        elif keyword_score > 0:
            match_type = "keyword"
        else:
            match_type = "semantic"

        blended.append(
            BlendedHit(
                id=hit.id,
                score=semantic_score * semantic_weight + keyword_score * (1 - semantic_weight),
                semantic_score=semantic_score,
                keyword_score=keyword_score,
                payload=hit.payload,
                match_type=match_type,
            )
        )

    blended.sort(key=lambda b: b.score, reverse=True)
    return blended[:limit]


async def hybrid_vector_search(
    query: str,
    *,
    limit: int = 20,
    category: str | None = None,
    in_stock: bool | None = None,
    semantic_weight: float = 0.7,
    vector_search: VectorSearch = search_products,
) -> list[BlendedHit]:
    """Over-fetch vector hits (2x) and blend them with payload keyword scores."""
    hits = await vector_search(query, limit=limit * 2, category=category, in_stock=in_stock)
    return blend_vector_results(query, hits, semantic_weight=semantic_weight, limit=limit)
