"""Schemas for the recommendation endpoints (/v1/recommendations)."""

from typing import Literal

from pydantic import BaseModel, Field


class UserProfileIn(BaseModel):
    """Shopper signals sent by the storefront."""

    user_id: str | None = Field(alias="userId", default=None)
    purchase_history: list[int] = Field(alias="purchaseHistory", default_factory=list)
    view_history: list[int] = Field(alias="viewHistory", default_factory=list)
    search_history: list[str] = Field(alias="searchHistory", default_factory=list)
    health_goals: list[str] = Field(alias="healthGoals", default_factory=list)
    preferred_categories: list[str] = Field(alias="preferredCategories", default_factory=list)
    location: str | None = None

    model_config = {"populate_by_name": True}


class RecommendationContextIn(BaseModel):
    current_product: int | None = Field(alias="currentProduct", default=None)
    current_category: str | None = Field(alias="currentCategory", default=None)
    current_season: str | None = Field(alias="currentSeason", default=None)
    health_condition: str | None = Field(alias="healthCondition", default=None)
    target_nutrient: str | None = Field(alias="targetNutrient", default=None)

    model_config = {"populate_by_name": True}


class RecommendationRequest(BaseModel):
    """Body for POST /v1/recommendations."""

    type: Literal["similar", "personalized"]
    product_id: int | None = Field(alias="productId", default=None)
    user_profile: UserProfileIn | None = Field(alias="userProfile", default=None)
    context: RecommendationContextIn | None = None
    limit: int = Field(default=10, ge=1, le=50)
    in_stock_only: bool = Field(alias="inStockOnly", default=False)

    model_config = {"populate_by_name": True}


class RecommendationItem(BaseModel):
    product_id: int = Field(alias="productId")
    name: str
    slug: str = ""
    price: float = 0.0
    image: str = ""
    in_stock: bool = Field(alias="inStock", default=False)
    score: float
    confidence: float = Field(ge=0, le=1)
    reasons: list[str] = Field(default_factory=list)
    factors: dict[str, float] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class RecommendationResponse(BaseModel):
    type: Literal["similar", "personalized"]
    recommendations: list[RecommendationItem]
    total: int = Field(ge=0)
