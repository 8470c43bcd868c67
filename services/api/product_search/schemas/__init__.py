"""Pydantic schemas for API request/response validation."""

from product_search.schemas.common import ErrorDetail, ErrorResponse
from product_search.schemas.recommendations import (
    RecommendationContextIn,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResponse,
    UserProfileIn,
)
from product_search.schemas.search import (
    AutocompleteResponse,
    AutocompleteSuggestion,
    ClickRequest,
    ClickResponse,
    HybridResultItem,
    HybridSearchResponse,
    KeywordFilters,
    KeywordOptions,
    KeywordResultItem,
    KeywordSearchRequest,
    KeywordSearchResponse,
    PriceRange,
    QueryCountItem,
    SearchAnalyticsResponse,
    SearchStats,
    SemanticResultItem,
    SemanticSearchResponse,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "RecommendationContextIn",
    "RecommendationItem",
    "RecommendationRequest",
    "RecommendationResponse",
    "UserProfileIn",
    "AutocompleteResponse",
    "AutocompleteSuggestion",
    "ClickRequest",
    "ClickResponse",
    "HybridResultItem",
    "HybridSearchResponse",
    "KeywordFilters",
    "KeywordOptions",
    "KeywordResultItem",
    "KeywordSearchRequest",
    "KeywordSearchResponse",
    "PriceRange",
    "QueryCountItem",
    "SearchAnalyticsResponse",
    "SearchStats",
    "SemanticResultItem",
    "SemanticSearchResponse",
]
