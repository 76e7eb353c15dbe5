"""Retrieval facade: one entry point for text, semantic and hybrid search.

Contract:
- search(query, user_id, search_type, limit) -> SearchOutcome
- by_ingredients(ingredients, user_id, limit) -> SearchOutcome
- similar(recipe_id, user_id, limit) -> SearchOutcome
- recommend(user_id, preferences, limit) -> list of recipe dicts (no scores)

Embedding failures never fail a request: semantic and hybrid searches degrade
to a lexical-only result and report ``search_type == "text"``. Lexical and
storage failures propagate.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from meal_rag.errors import (
    EmbeddingError,
    InvalidRequestError,
    RetrievalError,
    SearchTimeoutError,
    StorageError,
)
from meal_rag.ingest.schemas import Recipe
from meal_rag.retrieval.embeddings import Embedder, embed_with_retry
from meal_rag.retrieval.hybrid import FUSION_STRATEGIES, FusedCandidate, SearchCandidate
from meal_rag.retrieval.lexical import ingredients_query, search_text
from meal_rag.retrieval.recommend import RecommendationPreferences, recommend
from meal_rag.retrieval.vector_index import find_similar_recipes, search_similar

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("semantic", "text", "hybrid")


@dataclass
class SearchOutcome:
    results: List[Dict[str, Any]]
    search_type: str
    query: str
    fallback: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "results": self.results,
            "total": self.total,
            "searchType": self.search_type,
            "query": self.query,
        }
        if self.fallback:
            out["fallback"] = True
        out.update(self.extra)
        return out


class _GuardedStore:
    """Wraps a storage backend so unexpected read failures surface as StorageError."""

    def __init__(self, store):
        self._store = store

    def _call(self, name: str, *args):
        try:
            return getattr(self._store, name)(*args)
        except RetrievalError:
            raise
        except Exception as e:
            raise StorageError(f"Recipe storage failed during {name}: {e}") from e

    def get_recipes_by_user(self, user_id: str) -> List[Recipe]:
        return self._call("get_recipes_by_user", user_id)

    def get_embeddings_by_recipe(self, recipe_id: str):
        return self._call("get_embeddings_by_recipe", recipe_id)

    def get_recipe(self, user_id: str, recipe_id: str) -> Recipe:
        return self._call("get_recipe", user_id, recipe_id)


class RetrievalService:
    def __init__(
        self,
        store,
        embedder: Optional[Embedder] = None,
        *,
        similarity_threshold: float = 0.5,
        similar_threshold: float = 0.6,
        fusion_strategy: str = "weighted",
        embed_retries: int = 1,
        timeout: Optional[float] = 10.0,
        max_workers: int = 4,
        use_faiss: bool = False,
    ):
        if fusion_strategy not in FUSION_STRATEGIES:
            raise ValueError(f"Unknown fusion strategy: {fusion_strategy}")
        self.store = _GuardedStore(store)
        self.embedder = embedder
        self.similarity_threshold = similarity_threshold
        self.similar_threshold = similar_threshold
        self.fusion_strategy = fusion_strategy
        self.embed_retries = embed_retries
        self.timeout = timeout
        self.use_faiss = use_faiss
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="meal-rag-search")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def search(self, query: str, user_id: str, search_type: str = "hybrid", limit: int = 10) -> SearchOutcome:
        query = (query or "").strip()
        self._validate(user_id, limit)
        if not query:
            raise InvalidRequestError("query is required")
        if search_type not in SEARCH_TYPES:
            raise InvalidRequestError(
                f"Invalid search type: {search_type}. Must be 'semantic', 'text', or 'hybrid'"
            )

        logger.info("RAG search: user=%s type=%s limit=%d", user_id, search_type, limit)
        if search_type == "text":
            return self._text_outcome(query, user_id, limit)

        query_vec = self._embed(query)
        if query_vec is None:
            return self._text_outcome(query, user_id, limit, fallback=True)

        if search_type == "semantic":
            try:
                vector = search_similar(query_vec, user_id, self.store, self.similarity_threshold, limit, self.use_faiss)
            except EmbeddingError as e:
                logger.warning(f"Vector search rejected query embedding, using text search: {e}")
                return self._text_outcome(query, user_id, limit, fallback=True)
            return self._outcome(query, user_id, "semantic", vector, score_field="similarity_score")

        return self._hybrid(query, query_vec, user_id, limit)

    def by_ingredients(self, ingredients: Iterable[str], user_id: str, limit: int = 10) -> SearchOutcome:
        self._validate(user_id, limit)
        names = [i.strip() for i in ingredients if i and i.strip()]
        if not names:
            raise InvalidRequestError("at least one ingredient is required")
        query = ingredients_query(names)
        outcome = self._text_outcome(query, user_id, limit)
        outcome.extra["ingredients"] = names
        return outcome

    def similar(self, recipe_id: str, user_id: str, limit: int = 5) -> SearchOutcome:
        self._validate(user_id, limit)
        hits = find_similar_recipes(recipe_id, user_id, self.store, self.similar_threshold, limit, self.use_faiss)
        outcome = self._outcome("", user_id, "semantic", hits, score_field="similarity_score")
        outcome.extra["recipeId"] = recipe_id
        return outcome

    def recommend(
        self,
        user_id: str,
        preferences: Optional[RecommendationPreferences] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        self._validate(user_id, limit)
        return [r.display_fields() for r in recommend(user_id, self.store, preferences, limit)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(user_id: str, limit: int) -> None:
        if not user_id or not str(user_id).strip():
            raise InvalidRequestError("userId is required")
        if limit < 1:
            raise InvalidRequestError("limit must be a positive integer")

    def _embed(self, query: str) -> Optional[List[float]]:
        if self.embedder is None:
            logger.warning("No embedding provider configured; falling back to text search")
            return None
        try:
            return embed_with_retry(self.embedder, query, retries=self.embed_retries)
        except EmbeddingError as e:
            logger.warning(f"Embedding failed, falling back to text search: {e}")
            return None

    def _text_outcome(self, query: str, user_id: str, limit: int, fallback: bool = False) -> SearchOutcome:
        lexical = search_text(query, user_id, self.store, limit)
        return self._outcome(query, user_id, "text", lexical, score_field="rank_score", fallback=fallback)

    def _hybrid(self, query: str, query_vec: Sequence[float], user_id: str, limit: int) -> SearchOutcome:
        vec_future = self._executor.submit(
            search_similar, query_vec, user_id, self.store, self.similarity_threshold, limit, self.use_faiss
        )
        lex_future = self._executor.submit(search_text, query, user_id, self.store, limit)
        _, pending = wait([vec_future, lex_future], timeout=self.timeout)
        # running branches cannot be interrupted; their results are discarded
        for f in pending:
            f.cancel()
        if lex_future in pending:
            raise SearchTimeoutError(f"Search did not complete within {self.timeout}s")

        lexical = lex_future.result()
        if vec_future in pending:
            logger.warning(f"Vector branch exceeded {self.timeout}s, returning text results")
            return self._outcome(query, user_id, "text", lexical, score_field="rank_score", fallback=True)
        try:
            vector = vec_future.result()
        except EmbeddingError as e:
            logger.warning(f"Vector branch failed, returning text results: {e}")
            return self._outcome(query, user_id, "text", lexical, score_field="rank_score", fallback=True)

        fused = FUSION_STRATEGIES[self.fusion_strategy](vector, lexical, limit)
        return self._fused_outcome(query, user_id, fused)

    def _recipes_by_id(self, user_id: str) -> Dict[str, Recipe]:
        return {r.id: r for r in self.store.get_recipes_by_user(user_id)}

    def _outcome(
        self,
        query: str,
        user_id: str,
        search_type: str,
        candidates: List[SearchCandidate],
        score_field: str,
        fallback: bool = False,
    ) -> SearchOutcome:
        recipes = self._recipes_by_id(user_id)
        results = []
        for c in candidates:
            recipe = recipes.get(c.recipe_id)
            if recipe is None:
                continue
            score = getattr(c, score_field) or 0.0
            item = recipe.display_fields()
            item[score_field] = score
            item["score"] = score
            results.append(item)
        return SearchOutcome(results=results, search_type=search_type, query=query, fallback=fallback)

    def _fused_outcome(self, query: str, user_id: str, fused: List[FusedCandidate]) -> SearchOutcome:
        recipes = self._recipes_by_id(user_id)
        results = []
        for c in fused:
            recipe = recipes.get(c.recipe_id)
            if recipe is None:
                continue
            item = recipe.display_fields()
            item["similarity_score"] = c.similarity_score or 0.0
            item["rank_score"] = c.rank_score or 0.0
            item["score"] = c.combined_score
            results.append(item)
        return SearchOutcome(results=results, search_type="hybrid", query=query)


__all__ = ["RetrievalService", "SearchOutcome", "SEARCH_TYPES"]
