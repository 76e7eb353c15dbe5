"""Preference-based recipe recommendations (filter and sort, no scoring)."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from meal_rag.ingest.schemas import Recipe


class RecommendationPreferences(BaseModel):
    cuisine: Optional[str] = Field(default=None, max_length=100)
    difficulty: Optional[str] = Field(default=None, max_length=20)
    dietary_tags: List[str] = Field(default_factory=list)
    max_prep_time: Optional[int] = Field(default=None, ge=0)


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def matches(recipe: Recipe, prefs: RecommendationPreferences) -> bool:
    if prefs.cuisine and _norm(recipe.cuisine) != _norm(prefs.cuisine):
        return False
    if prefs.difficulty and _norm(recipe.difficulty) != _norm(prefs.difficulty):
        return False
    wanted = {_norm(t) for t in prefs.dietary_tags if _norm(t)}
    if wanted and not wanted & {_norm(t) for t in recipe.dietary_tags}:
        return False
    # unknown prep time is not excluded
    if prefs.max_prep_time is not None and recipe.prep_time is not None and recipe.prep_time > prefs.max_prep_time:
        return False
    return True


def _timestamp(dt: Optional[datetime]) -> float:
    if dt is None:
        return float("-inf")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _sort_key(recipe: Recipe):
    rated = recipe.rating is not None
    return (
        0 if rated else 1,
        -(recipe.rating or 0.0),
        -_timestamp(recipe.created_at),
        recipe.id,
    )


def recommend(
    user_id: str,
    store,
    preferences: Optional[RecommendationPreferences] = None,
    limit: int = 10,
) -> List[Recipe]:
    """User's recipes matching every supplied preference.

    Ordered by rating (unrated last), then newest first.
    """
    prefs = preferences or RecommendationPreferences()
    hits = [r for r in store.get_recipes_by_user(user_id) if matches(r, prefs)]
    hits.sort(key=_sort_key)
    return hits[:max(limit, 0)]


__all__ = ["RecommendationPreferences", "recommend", "matches"]
