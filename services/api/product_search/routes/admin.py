"""Admin endpoints for indexing and cache management.

These endpoints are intended for cron jobs and manual operations.
In production, consider adding authentication (API key or admin token).
"""

import logging
import time
from uuid import uuid4

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from redis.exceptions import RedisError

from product_search.services.catalog import get_catalog, invalidate_catalog
from product_search.services.embeddings import EmbeddingError
from product_search.services.recommendation_cache import recommendation_cache
from product_search.services.search_cache import clear_search_caches
from product_search.services.vector_store import QdrantError, get_qdrant_client, index_products
from product_search.services.woocommerce_client import CatalogError
from product_search.stores.redis import acquire_lock, release_lock

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

REINDEX_LOCK = "reindex"


class ReindexRequest(BaseModel):
    """Request body for reindex endpoint."""

    product_ids: list[int] | None = Field(alias="productIds", default=None)

    model_config = {"populate_by_name": True}


class ReindexResponse(BaseModel):
    """Response from reindex endpoint."""

    success: bool
    run_id: str = Field(alias="runId")
    indexed: int
    duration_ms: int = Field(alias="durationMs")

    model_config = {"populate_by_name": True}


class CacheInvalidateRequest(BaseModel):
    """Request body for cache invalidation.

    Pass `all=true` to drop everything, otherwise only entries that mention
    the given products / categories / health benefits are dropped.
    """

    product_ids: list[int] = Field(alias="productIds", default_factory=list)
    categories: list[str] = Field(default_factory=list)
    health_benefits: list[str] = Field(alias="healthBenefits", default_factory=list)
    deleted_product_ids: list[int] = Field(alias="deletedProductIds", default_factory=list)
    all: bool = False

    model_config = {"populate_by_name": True}


class CacheInvalidateResponse(BaseModel):
    success: bool
    invalidated: int
    scope: str
    deleted_points: int = Field(alias="deletedPoints", default=0)

    model_config = {"populate_by_name": True}


@router.post("/reindex", response_model=ReindexResponse)
async def trigger_reindex(request: ReindexRequest | None = None) -> ReindexResponse:
    """Refresh the catalog and upsert it into the vector store.

    Only one reindex runs at a time (Redis lock). Without Redis the lock is
    skipped with a warning.
    """
    run_id = str(uuid4())
    product_ids = set(request.product_ids) if request and request.product_ids else None

    try:
        locked = await acquire_lock(REINDEX_LOCK)
    except (RuntimeError, RedisError) as e:
        logger.warning(f"[reindex] Redis unavailable, running without lock: {e}")
        locked = None
    if locked is False:
        raise HTTPException(status_code=409, detail="Reindex already in progress")

    started = time.monotonic()
    logger.info(f"[reindex] start run_id={run_id} products={len(product_ids) if product_ids else 'all'}")
    try:
        catalog = await get_catalog(force_refresh=True)
        products = [p for p in catalog.products if product_ids is None or p.id in product_ids]
        indexed = await index_products(products)
    except CatalogError as e:
        logger.error(f"[reindex] catalog fetch failed run_id={run_id}: {e}")
        raise HTTPException(status_code=502, detail=f"Catalog fetch failed: {e}")
    except (QdrantError, EmbeddingError) as e:
        logger.error(f"[reindex] indexing failed run_id={run_id}: {e}")
        raise HTTPException(status_code=502, detail=f"Indexing failed: {e}")
    finally:
        if locked:
            await release_lock(REINDEX_LOCK)

    clear_search_caches()
    recommendation_cache.invalidate_all()

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(f"[reindex] done run_id={run_id} indexed={indexed} duration_ms={duration_ms}")
    return ReindexResponse(success=True, run_id=run_id, indexed=indexed, duration_ms=duration_ms)


@router.post("/cache/invalidate", response_model=CacheInvalidateResponse)
async def invalidate_cache(request: CacheInvalidateRequest) -> CacheInvalidateResponse:
    """Drop cached search results and recommendations after a catalog change."""
    deleted_points = 0
    if request.deleted_product_ids:
        try:
            await get_qdrant_client().delete_points(request.deleted_product_ids)
            deleted_points = len(request.deleted_product_ids)
        except QdrantError as e:
            logger.warning(f"Failed to delete points from vector store: {e}")

    if request.all:
        invalidated = recommendation_cache.invalidate_all()
        scope = "all"
    else:
        changed = [*request.product_ids, *request.deleted_product_ids]
        if not (changed or request.categories or request.health_benefits):
            raise HTTPException(
                status_code=400,
                detail="Provide productIds, categories, healthBenefits or all=true",
            )
        invalidated = recommendation_cache.invalidate(
            product_ids=changed,
            categories=request.categories,
            health_benefits=request.health_benefits,
        )
        scope = "selective"

    # Result caches are keyed by query, not product, so they are always cleared
    clear_search_caches()
    await invalidate_catalog()

    return CacheInvalidateResponse(
        success=True,
        invalidated=invalidated,
        scope=scope,
        deleted_points=deleted_points,
    )
