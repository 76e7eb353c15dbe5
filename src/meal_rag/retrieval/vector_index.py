"""Exact cosine-similarity search over a user's recipe embeddings.

Brute force with numpy by default; ``use_faiss=True`` switches to a FAISS
``IndexFlatIP`` (still exact) over the same normalized matrix.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from meal_rag.errors import EmbeddingError, RecipeNotFoundError
from meal_rag.retrieval.hybrid import SearchCandidate

_EPS = 1e-12


@dataclass
class VectorIndex:
    embeddings: np.ndarray
    meta: List[str]  # recipe id per row
    use_faiss: bool = False
    index: Any = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.embeddings = np.asarray(self.embeddings, dtype=np.float64)
        if self.embeddings.ndim != 2:
            raise ValueError("embeddings must be a 2-D array")
        norms = np.linalg.norm(self.embeddings, axis=1, keepdims=True)
        self.embeddings = self.embeddings / np.maximum(norms, _EPS)
        if self.use_faiss and len(self.meta):
            import faiss  # type: ignore
            self.index = faiss.IndexFlatIP(self.dim)
            self.index.add(np.ascontiguousarray(self.embeddings, dtype=np.float32))

    @property
    def dim(self) -> int:
        return int(self.embeddings.shape[1])

    @classmethod
    def from_store(cls, store, user_id: str, use_faiss: bool = False) -> "VectorIndex":
        """Build an index over every embedding record of the user's recipes."""
        rows: List[Sequence[float]] = []
        meta: List[str] = []
        for recipe in store.get_recipes_by_user(user_id):
            for rec in store.get_embeddings_by_recipe(recipe.id):
                if rows and len(rec.vector) != len(rows[0]):
                    raise EmbeddingError(f"Inconsistent embedding dimension for recipe {recipe.id}")
                rows.append(rec.vector)
                meta.append(recipe.id)
        if not rows:
            return cls(embeddings=np.zeros((0, 1)), meta=[], use_faiss=use_faiss)
        return cls(embeddings=np.array(rows, dtype=np.float64), meta=meta, use_faiss=use_faiss)

    def search(self, query_vec: Sequence[float], k: int = -1) -> List[Tuple[int, float]]:
        """Return (row, cosine) pairs, best first. ``k < 0`` returns every row."""
        n = len(self.meta)
        if n == 0:
            return []
        q = np.asarray(query_vec, dtype=np.float64).reshape(-1)
        if q.shape[0] != self.dim:
            raise EmbeddingError(f"Query dimension {q.shape[0]} != index dimension {self.dim}")
        q = q / max(float(np.linalg.norm(q)), _EPS)
        k = n if k < 0 else min(k, n)
        if self.index is not None:
            sims, idxs = self.index.search(q.astype(np.float32).reshape(1, -1), k)
            return [(int(idxs[0, j]), float(sims[0, j])) for j in range(k) if idxs[0, j] != -1]
        sims = self.embeddings @ q
        order = np.argsort(-sims, kind="stable")[:k]
        return [(int(j), float(sims[j])) for j in order]


def best_per_recipe(index: VectorIndex, query_vec: Sequence[float]) -> Dict[str, float]:
    """Collapse per-record similarities to each recipe's best match."""
    best: Dict[str, float] = {}
    for row, sim in index.search(query_vec):
        rid = index.meta[row]
        if rid not in best or sim > best[rid]:
            best[rid] = sim
    return best


def search_similar(
    query_vec: Sequence[float],
    user_id: str,
    store,
    threshold: float = 0.5,
    limit: int = 10,
    use_faiss: bool = False,
) -> List[SearchCandidate]:
    """Recipes of ``user_id`` whose best embedding has cosine >= threshold."""
    index = VectorIndex.from_store(store, user_id, use_faiss=use_faiss)
    best = best_per_recipe(index, query_vec)
    hits = [(rid, s) for rid, s in best.items() if s >= threshold]
    hits.sort(key=lambda x: (-x[1], x[0]))
    return [SearchCandidate(recipe_id=rid, similarity_score=s) for rid, s in hits[:limit]]


def find_similar_recipes(
    recipe_id: str,
    user_id: str,
    store,
    threshold: float = 0.6,
    limit: int = 5,
    use_faiss: bool = False,
) -> List[SearchCandidate]:
    """Recipes similar to an existing one, excluding the recipe itself."""
    store.get_recipe(user_id, recipe_id)
    records = store.get_embeddings_by_recipe(recipe_id)
    if not records:
        raise RecipeNotFoundError(f"Recipe {recipe_id} has no embedding")
    hits = search_similar(records[0].vector, user_id, store, threshold, limit + 1, use_faiss)
    return [c for c in hits if c.recipe_id != recipe_id][:limit]


__all__ = ["VectorIndex", "search_similar", "find_similar_recipes", "best_per_recipe"]
