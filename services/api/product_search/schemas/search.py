"""Schemas for the search endpoints (/v1/search/*)."""

from typing import Literal

from pydantic import BaseModel, Field


class PriceRange(BaseModel):
    """Inclusive price bounds."""

    min: float | None = Field(default=None, ge=0)
    max: float | None = Field(default=None, ge=0)


class KeywordFilters(BaseModel):
    """Post-scoring filters for keyword search."""

    category: str | None = None
    in_stock: bool | None = Field(alias="inStock", default=None)
    featured: bool | None = None
    price_range: PriceRange | None = Field(alias="priceRange", default=None)

    model_config = {"populate_by_name": True}


class KeywordOptions(BaseModel):
    """Scorer options (field boosts default to title 3, categories 2, tags 1.5, description 1)."""

    fuzzy_match: bool = Field(alias="fuzzyMatch", default=True)
    stemming: bool = True
    min_score: float = Field(alias="minScore", default=0.1, ge=0)
    boost: dict[str, float] | None = None

    model_config = {"populate_by_name": True}


class KeywordSearchRequest(BaseModel):
    """Body for POST /v1/search/keyword."""

    query: str
    options: KeywordOptions = Field(default_factory=KeywordOptions)
    filters: KeywordFilters = Field(default_factory=KeywordFilters)
    limit: int = Field(default=20, ge=1, le=100)


class KeywordResultItem(BaseModel):
    product_id: int = Field(alias="productId")
    slug: str
    title: str
    price: float
    categories: list[str]
    in_stock: bool = Field(alias="inStock")
    featured: bool
    relevance_score: float = Field(alias="relevanceScore")
    matched_fields: list[str] = Field(alias="matchedFields", default_factory=list)
    matched_terms: list[str] = Field(alias="matchedTerms", default_factory=list)

    model_config = {"populate_by_name": True}


class SearchStats(BaseModel):
    total: int = Field(ge=0)
    average_score: float = Field(alias="averageScore", default=0.0)
    top_score: float = Field(alias="topScore", default=0.0)

    model_config = {"populate_by_name": True}


class KeywordSearchResponse(BaseModel):
    query: str
    results: list[KeywordResultItem]
    stats: SearchStats
    suggestions: list[str] = Field(default_factory=list)


class SemanticResultItem(BaseModel):
    product_id: int = Field(alias="productId")
    name: str
    slug: str = ""
    price: float = 0.0
    categories: list[str] = Field(default_factory=list)
    in_stock: bool = Field(alias="inStock", default=False)
    image: str = ""
    score: float
    semantic_score: float = Field(alias="semanticScore", default=0.0)
    keyword_score: float = Field(alias="keywordScore", default=0.0)
    match_type: Literal["semantic", "keyword", "hybrid"] = Field(alias="matchType")

    model_config = {"populate_by_name": True}


class SemanticSearchResponse(BaseModel):
    query: str
    results: list[SemanticResultItem]
    source: Literal["vector", "keyword"]
    cached: bool = False


class HybridResultItem(BaseModel):
    product_id: int = Field(alias="productId")
    name: str
    slug: str = ""
    price: float = 0.0
    categories: list[str] = Field(default_factory=list)
    in_stock: bool = Field(alias="inStock", default=False)
    image: str = ""
    score: float = Field(ge=0, le=100)
    source: Literal["semantic", "keyword", "hybrid"]
    explanation: str = ""
    semantic_score: float | None = Field(alias="semanticScore", default=None)

    model_config = {"populate_by_name": True}


class HybridSearchResponse(BaseModel):
    query: str
    results: list[HybridResultItem]
    total: int = Field(ge=0)


class AutocompleteSuggestion(BaseModel):
    id: str
    type: Literal["product", "category", "query", "trending"]
    text: str
    score: float
    product_id: int | None = Field(alias="productId", default=None)
    count: int | None = None

    model_config = {"populate_by_name": True}


class AutocompleteResponse(BaseModel):
    query: str
    suggestions: list[AutocompleteSuggestion]
    corrections: list[str] = Field(default_factory=list)


class ClickRequest(BaseModel):
    """A result click reported by the storefront."""

    query: str = Field(min_length=1)
    product_id: int = Field(alias="productId")
    position: int = Field(ge=0)
    session_id: str | None = Field(alias="sessionId", default=None, max_length=100)

    model_config = {"populate_by_name": True}


class ClickResponse(BaseModel):
    recorded: bool


class QueryCountItem(BaseModel):
    query: str
    count: int


class SearchAnalyticsResponse(BaseModel):
    days: int
    total_searches: int = Field(alias="totalSearches")
    total_clicks: int = Field(alias="totalClicks")
    click_through_rate: float = Field(alias="clickThroughRate")
    top_queries: list[QueryCountItem] = Field(alias="topQueries", default_factory=list)
    zero_result_queries: list[QueryCountItem] = Field(alias="zeroResultQueries", default_factory=list)

    model_config = {"populate_by_name": True}
