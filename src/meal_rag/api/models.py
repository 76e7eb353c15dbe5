from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from meal_rag.api import config
from meal_rag.retrieval.recommend import RecommendationPreferences


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="userId", min_length=1, max_length=200)
    limit: int = Field(default=config.DEFAULT_SEARCH_LIMIT, ge=1, le=config.MAX_SEARCH_LIMIT)

    @field_validator("user_id")
    @classmethod
    def _strip_user_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("userId must not be blank")
        return v


class SearchRequest(_Request):
    query: str = Field(min_length=1, max_length=5000)
    search_type: Literal["semantic", "text", "hybrid"] = Field(default="hybrid", alias="searchType")

    @field_validator("query")
    @classmethod
    def _strip_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query must not be blank")
        return v


class IngredientSearchRequest(_Request):
    ingredients: List[str] = Field(min_length=1, max_length=50)

    @field_validator("ingredients")
    @classmethod
    def _clean(cls, v: List[str]) -> List[str]:
        cleaned = [i.strip() for i in v if isinstance(i, str) and i.strip()]
        if not cleaned:
            raise ValueError("ingredients must contain at least one non-blank name")
        return cleaned


class SimilarRecipesQuery(_Request):
    limit: int = Field(default=5, ge=1, le=config.MAX_SEARCH_LIMIT)


class RecommendationRequest(_Request):
    preferences: Optional[RecommendationPreferences] = None
