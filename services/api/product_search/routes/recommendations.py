"""Recommendation endpoints.

POST /v1/recommendations                     - similar | personalized
GET  /v1/recommendations/similar/{product_id} - similar products for a product page
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from product_search.schemas import RecommendationItem, RecommendationRequest, RecommendationResponse
from product_search.services.catalog import CatalogSnapshot, get_catalog
from product_search.services.recommendation_cache import RecommendationContext, UserProfile
from product_search.services.recommendations import (
    RecommendationScore,
    get_personalized_recommendations,
    get_similar_products,
)
from product_search.services.woocommerce_client import CatalogError

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


async def _load_catalog() -> CatalogSnapshot:
    try:
        return await get_catalog()
    except CatalogError as e:
        logger.error(f"Catalog unavailable: {e}")
        raise HTTPException(status_code=502, detail="Product catalog unavailable")


def _to_items(scores: list[RecommendationScore], catalog: CatalogSnapshot) -> list[RecommendationItem]:
    items: list[RecommendationItem] = []
    for score in scores:
        product = catalog.get(score.product_id)
        if product is None:
            # Catalog changed since the result was cached
            continue
        items.append(
            RecommendationItem(
                product_id=product.id,
                name=product.name,
                slug=product.slug,
                price=product.price,
                image=product.image,
                in_stock=product.in_stock,
                score=score.total_score,
                confidence=score.confidence,
                reasons=score.reasons,
                factors=score.factors,
            )
        )
    return items


@router.post("", response_model=RecommendationResponse)
async def recommend(request: RecommendationRequest) -> RecommendationResponse:
    """Get similar or personalized recommendations."""
    catalog = await _load_catalog()

    if request.type == "similar":
        product_id = request.product_id
        if product_id is None and request.context is not None:
            product_id = request.context.current_product
        if product_id is None:
            raise HTTPException(status_code=400, detail="productId is required for similar recommendations")
        scores = get_similar_products(product_id, catalog, limit=request.limit, in_stock_only=request.in_stock_only)
    else:
        profile = UserProfile(**request.user_profile.model_dump()) if request.user_profile else None
        ctx = request.context.model_dump() if request.context else {}
        context = RecommendationContext(**ctx, in_stock_only=request.in_stock_only, limit=request.limit)
        scores = await get_personalized_recommendations(profile, context, catalog=catalog)

    items = _to_items(scores, catalog)
    return RecommendationResponse(type=request.type, recommendations=items, total=len(items))


@router.get("/similar/{product_id}", response_model=RecommendationResponse)
async def similar_products(
    product_id: int,
    limit: int = Query(default=5, ge=1, le=50),
    in_stock_only: bool = Query(default=False, alias="inStockOnly"),
) -> RecommendationResponse:
    catalog = await _load_catalog()
    if catalog.get(product_id) is None:
        raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")

    scores = get_similar_products(product_id, catalog, limit=limit, in_stock_only=in_stock_only)
    items = _to_items(scores, catalog)
    return RecommendationResponse(type="similar", recommendations=items, total=len(items))
