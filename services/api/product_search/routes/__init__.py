"""API routes."""

from fastapi import APIRouter

from product_search.routes import admin, recommendations, search

api_router = APIRouter()

# Search endpoints (keyword, semantic, hybrid, autocomplete, analytics)
api_router.include_router(search.router, prefix="/v1/search", tags=["search"])

# Recommendation endpoints
api_router.include_router(recommendations.router, prefix="/v1/recommendations", tags=["recommendations"])

# Admin endpoints (reindex, cache management)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
