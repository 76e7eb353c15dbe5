"""In-memory recipe storage with JSON persistence.

The retrieval core only reads from storage through two calls:
``get_recipes_by_user`` and ``get_embeddings_by_recipe``. Writes exist for
loading data and for the embedding build script.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from meal_rag.errors import RecipeNotFoundError, StorageError
from meal_rag.ingest.schemas import EmbeddingRecord, Recipe

logger = logging.getLogger(__name__)


class RecipeStore:
    def __init__(self, recipes: Iterable[Recipe] = (), embeddings: Iterable[EmbeddingRecord] = ()):
        self._lock = threading.RLock()
        self._recipes: Dict[str, Recipe] = {}
        self._by_user: Dict[str, List[str]] = {}
        self._embeddings: Dict[str, List[EmbeddingRecord]] = {}
        for r in recipes:
            self.upsert_recipe(r)
        for e in embeddings:
            self.add_embedding(e)

    # Read API used by the retrieval core

    def get_recipes_by_user(self, user_id: str) -> List[Recipe]:
        with self._lock:
            return [self._recipes[rid] for rid in self._by_user.get(user_id, [])]

    def get_embeddings_by_recipe(self, recipe_id: str) -> List[EmbeddingRecord]:
        with self._lock:
            return list(self._embeddings.get(recipe_id, []))

    def get_recipe(self, user_id: str, recipe_id: str) -> Recipe:
        with self._lock:
            recipe = self._recipes.get(recipe_id)
        if recipe is None or recipe.user_id != user_id:
            raise RecipeNotFoundError(f"Recipe {recipe_id} not found")
        return recipe

    # Write API

    def upsert_recipe(self, recipe: Recipe) -> Recipe:
        with self._lock:
            previous = self._recipes.get(recipe.id)
            if previous is not None and previous.user_id != recipe.user_id:
                raise StorageError(f"Recipe {recipe.id} belongs to another user")
            if previous is not None and previous.content_key() != recipe.content_key():
                # content changed, stored embeddings no longer describe it
                self._embeddings.pop(recipe.id, None)
            self._recipes[recipe.id] = recipe
            ids = self._by_user.setdefault(recipe.user_id, [])
            if recipe.id not in ids:
                ids.append(recipe.id)
        return recipe

    def delete_recipe(self, user_id: str, recipe_id: str) -> None:
        with self._lock:
            self.get_recipe(user_id, recipe_id)
            del self._recipes[recipe_id]
            self._by_user[user_id].remove(recipe_id)
            self._embeddings.pop(recipe_id, None)

    def dimension(self) -> Optional[int]:
        """Vector length shared by every stored embedding, None while there are none."""
        with self._lock:
            for recs in self._embeddings.values():
                if recs:
                    return len(recs[0].vector)
        return None

    def add_embedding(self, record: EmbeddingRecord) -> None:
        with self._lock:
            if record.recipe_id not in self._recipes:
                raise RecipeNotFoundError(f"Embedding references unknown recipe {record.recipe_id}")
            dim = self.dimension()
            if dim is not None and len(record.vector) != dim:
                raise StorageError(
                    f"Embedding for recipe {record.recipe_id} has dimension {len(record.vector)}, store uses {dim}"
                )
            self._embeddings.setdefault(record.recipe_id, []).append(record)

    def recipes_missing_embeddings(self, user_id: Optional[str] = None) -> List[Recipe]:
        with self._lock:
            pool = self.get_recipes_by_user(user_id) if user_id else list(self._recipes.values())
            return [r for r in pool if not self._embeddings.get(r.id)]

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "users": len([u for u, ids in self._by_user.items() if ids]),
                "recipes": len(self._recipes),
                "embeddings": sum(len(v) for v in self._embeddings.values()),
            }

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "recipes": [r.model_dump(mode="json", exclude={"searchable_text"}) for r in self._recipes.values()],
                "embeddings": [e.model_dump(mode="json") for recs in self._embeddings.values() for e in recs],
            }

    def save(self, path: str) -> str:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False)
        os.replace(tmp_path, path)
        return path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecipeStore":
        try:
            recipes = [Recipe.model_validate(r) for r in data.get("recipes", [])]
            embeddings = [EmbeddingRecord.model_validate(e) for e in data.get("embeddings", [])]
        except ValidationError as e:
            raise StorageError(f"Invalid recipe data: {e}") from e
        try:
            return cls(recipes, embeddings)
        except RecipeNotFoundError as e:
            raise StorageError(f"Invalid recipe data: {e}") from e

    @classmethod
    def load(cls, path: str) -> "RecipeStore":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read recipe data from {path}: {e}") from e
        store = cls.from_dict(data)
        logger.info("Loaded recipe store from %s: %s", path, store.stats())
        return store
