"""Canonical recipe schemas.

These pydantic models define the stored representation of a user's recipes and
the derived embedding records used by semantic search.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, model_validator

DEFAULT_EMBEDDING_TYPE = "full_recipe"

# Fields whose change invalidates a recipe's embeddings
EMBEDDED_FIELDS = ("title", "description", "ingredients", "instructions", "dietary_tags")


class Ingredient(BaseModel):
    name: str = Field(validation_alias=AliasChoices("name", "item"))
    quantity: Optional[Union[float, str]] = None
    unit: Optional[str] = None
    notes: Optional[str] = None


class Recipe(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    prep_time: Optional[int] = None  # minutes
    cook_time: Optional[int] = None
    servings: Optional[int] = None
    difficulty: Optional[str] = None
    cuisine: Optional[str] = None
    dietary_tags: List[str] = Field(default_factory=list)
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    is_favorite: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    searchable_text: str = ""

    @model_validator(mode="after")
    def _derive_searchable_text(self) -> "Recipe":
        self.searchable_text = build_searchable_text(self)
        return self

    def content_key(self) -> tuple:
        """Tuple of the fields that were fed to the embedder."""
        data = self.model_dump(include=set(EMBEDDED_FIELDS))
        return tuple(repr(data[f]) for f in EMBEDDED_FIELDS)

    def display_fields(self) -> dict:
        return self.model_dump(
            mode="json",
            exclude={"user_id", "searchable_text", "updated_at", "is_favorite"},
        )


class EmbeddingRecord(BaseModel):
    recipe_id: str
    vector: List[float] = Field(min_length=1)
    text: str = ""
    embedding_type: str = DEFAULT_EMBEDDING_TYPE


def build_searchable_text(recipe: Recipe) -> str:
    """Flatten a recipe into the document used by lexical search.

    Order: title, description, cuisine, difficulty, dietary tags, ingredient
    names and notes, instruction steps. Empty parts are skipped.
    """
    parts: List[str] = [recipe.title, recipe.description or "", recipe.cuisine or "", recipe.difficulty or ""]
    parts.extend(recipe.dietary_tags)
    for ing in recipe.ingredients:
        parts.append(ing.name)
        if ing.notes:
            parts.append(ing.notes)
    parts.extend(recipe.instructions)
    return " ".join(p.strip() for p in parts if p and p.strip())


def embedding_text(recipe: Recipe) -> str:
    """Text handed to the embedding provider for a full-recipe embedding."""
    return recipe.searchable_text


__all__ = [
    "Ingredient",
    "Recipe",
    "EmbeddingRecord",
    "build_searchable_text",
    "embedding_text",
    "DEFAULT_EMBEDDING_TYPE",
    "EMBEDDED_FIELDS",
]
