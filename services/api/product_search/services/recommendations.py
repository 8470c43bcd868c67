"""Content-based product recommendations over the catalog snapshot.

Factors (0-1 each, weighted into total_score):
- content_based: Jaccard overlap of categories (x0.6) and tags (x0.4)
- vector: cosine similarity of hashed product embeddings
- popularity: total_sales relative to the catalog max, plus rating
- preference: share of the user's preferred categories the product is in

Results are cached in the recommendation cache; see recommendation_cache.py
for the key layout and invalidation rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from product_search.services.catalog import CatalogSnapshot
from product_search.services.embeddings import cosine_similarity, create_simple_embedding, prepare_product_text
from product_search.services.recommendation_cache import (
    RecommendationContext,
    UserProfile,
    cached_recommendations,
    recommendation_cache,
)
from product_search.services.woocommerce_client import Product

logger = logging.getLogger("uvicorn.error")

# Small vectors: only used for pairwise similarity within one process
SIMILARITY_DIMENSIONS = 256

SIMILAR_WEIGHTS = {"content_based": 0.5, "vector": 0.35, "popularity": 0.15}
PERSONALIZED_WEIGHTS = {"preference": 0.4, "content_based": 0.25, "vector": 0.2, "popularity": 0.15}


@dataclass
class RecommendationScore:
    product_id: int
    total_score: float
    factors: dict[str, float] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)
    confidence: float = 0.0


def _jaccard(a: list[str], b: list[str]) -> float:
    set_a = {x.lower() for x in a if x}
    set_b = {x.lower() for x in b if x}
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def _content_similarity(a: Product, b: Product) -> float:
    return 0.6 * _jaccard(a.categories, b.categories) + 0.4 * _jaccard(a.tags, b.tags)


def _popularity(product: Product, max_sales: int) -> float:
    sales = product.total_sales / max_sales if max_sales > 0 else 0.0
    rating = min(product.average_rating, 5.0) / 5.0
    return 0.7 * sales + 0.3 * rating


class _VectorCache:
    """Lazily embedded products for one scoring pass."""

    def __init__(self) -> None:
        self._vectors: dict[int, list[float]] = {}

    def get(self, product: Product) -> list[float]:
        vector = self._vectors.get(product.id)
        if vector is None:
            vector = create_simple_embedding(prepare_product_text(product), SIMILARITY_DIMENSIONS)
            self._vectors[product.id] = vector
        return vector

    def similarity(self, a: Product, b: Product) -> float:
        return max(0.0, cosine_similarity(self.get(a), self.get(b)))


def _weighted(factors: dict[str, float], weights: dict[str, float]) -> float:
    return sum(factors.get(name, 0.0) * weight for name, weight in weights.items())


def _confidence(factors: dict[str, float]) -> float:
    """Share of factors that contributed anything."""
    if not factors:
        return 0.0
    return round(sum(1 for v in factors.values() if v > 0) / len(factors), 2)


def score_similar_products(
    product: Product,
    catalog: CatalogSnapshot,
    limit: int = 5,
    in_stock_only: bool = False,
) -> list[RecommendationScore]:
    """Rank catalog products by similarity to `product` (itself excluded)."""
    max_sales = max((p.total_sales for p in catalog.products), default=0)
    vectors = _VectorCache()
    scores: list[RecommendationScore] = []

    for candidate in catalog.products:
        if candidate.id == product.id:
            continue
        if in_stock_only and not candidate.in_stock:
            continue

        factors = {
            "content_based": _content_similarity(product, candidate),
            "vector": vectors.similarity(product, candidate),
            "popularity": _popularity(candidate, max_sales),
        }
        total = _weighted(factors, SIMILAR_WEIGHTS)
        if total <= 0:
            continue

        reasons: list[str] = []
        shared = sorted({c for c in candidate.categories if c in product.categories})
        if shared:
            reasons.append(f"Same category: {', '.join(shared)}")
        if factors["vector"] >= 0.5:
            reasons.append("Similar description")
        if factors["popularity"] >= 0.5:
            reasons.append("Popular with other shoppers")

        scores.append(
            RecommendationScore(
                product_id=candidate.id,
                total_score=round(total, 4),
                factors={k: round(v, 4) for k, v in factors.items()},
                reasons=reasons,
                confidence=_confidence(factors),
            )
        )

    scores.sort(key=lambda s: (-s.total_score, s.product_id))
    return scores[:limit]


def get_similar_products(
    product_id: int,
    catalog: CatalogSnapshot,
    limit: int = 5,
    in_stock_only: bool = False,
) -> list[RecommendationScore]:
    """Similar products for a product page (cached under type 'similar')."""
    context = RecommendationContext(current_product=product_id, in_stock_only=in_stock_only, limit=limit)
    cached = recommendation_cache.get("similar", None, context)
    if cached is not None:
        return cached

    product = catalog.get(product_id)
    if product is None:
        logger.info(f"Similar products requested for unknown product {product_id}")
        return []

    scores = score_similar_products(product, catalog, limit=limit, in_stock_only=in_stock_only)
    recommendation_cache.set("similar", scores, None, context)
    return scores


@cached_recommendations(recommendation_cache, "personalized")
async def get_personalized_recommendations(
    profile: UserProfile | None,
    context: RecommendationContext | None,
    *,
    catalog: CatalogSnapshot,
) -> list[RecommendationScore]:
    """Rank products for a shopper from their history and category preferences."""
    profile = profile or UserProfile()
    context = context or RecommendationContext()
    limit = context.limit or 10

    purchased = set(profile.purchase_history)
    history = [catalog.get(pid) for pid in [*profile.view_history, *profile.purchase_history]]
    anchors = [p for p in history if p is not None]
    preferred = {c.lower() for c in profile.preferred_categories if c}
    if context.current_category:
        preferred.add(context.current_category.lower())

    max_sales = max((p.total_sales for p in catalog.products), default=0)
    vectors = _VectorCache()
    scores: list[RecommendationScore] = []

    for candidate in catalog.products:
        if candidate.id in purchased or candidate.id == context.current_product:
            continue
        if context.in_stock_only and not candidate.in_stock:
            continue

        candidate_categories = {c.lower() for c in candidate.categories}
        factors = {
            "preference": len(preferred & candidate_categories) / len(preferred) if preferred else 0.0,
            "content_based": max((_content_similarity(a, candidate) for a in anchors), default=0.0),
            "vector": max((vectors.similarity(a, candidate) for a in anchors), default=0.0),
            "popularity": _popularity(candidate, max_sales),
        }
        total = _weighted(factors, PERSONALIZED_WEIGHTS)
        if total <= 0:
            continue

        reasons: list[str] = []
        if factors["preference"] > 0:
            reasons.append("Matches your favourite categories")
        if factors["content_based"] > 0 or factors["vector"] >= 0.5:
            reasons.append("Similar to products you viewed")
        if factors["popularity"] >= 0.5:
            reasons.append("Popular with other shoppers")

        scores.append(
            RecommendationScore(
                product_id=candidate.id,
                total_score=round(total, 4),
                factors={k: round(v, 4) for k, v in factors.items()},
                reasons=reasons,
                confidence=_confidence(factors),
            )
        )

    scores.sort(key=lambda s: (-s.total_score, s.product_id))
    return scores[:limit]
