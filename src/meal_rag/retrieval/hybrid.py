"""Hybrid retrieval: vector + lexical candidate fusion.

``fuse`` is the weighted union used by the search endpoint: vector hits
contribute 70% of their cosine similarity, lexical hits 30% of their rank score,
and a recipe found by both gets the sum. ``reciprocal_rank_fusion`` is the
rank-based alternative selectable through ``FUSION_STRATEGY=rrf``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

VECTOR_WEIGHT = 0.7
LEXICAL_WEIGHT = 0.3
RRF_K = 60


@dataclass
class SearchCandidate:
    recipe_id: str
    similarity_score: Optional[float] = None
    rank_score: Optional[float] = None


@dataclass
class FusedCandidate:
    recipe_id: str
    combined_score: float
    similarity_score: Optional[float] = None
    rank_score: Optional[float] = None


def _ranked(entries: Dict[str, FusedCandidate], k: int) -> List[FusedCandidate]:
    ordered = sorted(entries.values(), key=lambda c: (-c.combined_score, c.recipe_id))
    return ordered[:max(k, 0)]


def fuse(
    vector: Sequence[SearchCandidate],
    lexical: Sequence[SearchCandidate],
    k: int = 10,
) -> List[FusedCandidate]:
    merged: Dict[str, FusedCandidate] = {}
    for c in vector:
        if c.recipe_id in merged:
            continue
        sim = c.similarity_score or 0.0
        merged[c.recipe_id] = FusedCandidate(c.recipe_id, sim * VECTOR_WEIGHT, similarity_score=sim)
    seen_lexical = set()
    for c in lexical:
        if c.recipe_id in seen_lexical:
            continue
        seen_lexical.add(c.recipe_id)
        rank = c.rank_score or 0.0
        existing = merged.get(c.recipe_id)
        if existing is not None:
            existing.combined_score += rank * LEXICAL_WEIGHT
            existing.rank_score = rank
        else:
            merged[c.recipe_id] = FusedCandidate(c.recipe_id, rank * LEXICAL_WEIGHT, rank_score=rank)
    return _ranked(merged, k)


def reciprocal_rank_fusion(
    vector: Sequence[SearchCandidate],
    lexical: Sequence[SearchCandidate],
    k: int = 10,
    K: int = RRF_K,
) -> List[FusedCandidate]:
    merged: Dict[str, FusedCandidate] = {}
    for rank, c in enumerate(vector):
        if c.recipe_id not in merged:
            merged[c.recipe_id] = FusedCandidate(c.recipe_id, 1.0 / (K + rank), similarity_score=c.similarity_score)
    lex_seen = set()
    for rank, c in enumerate(lexical):
        if c.recipe_id in lex_seen:
            continue
        lex_seen.add(c.recipe_id)
        existing = merged.get(c.recipe_id)
        if existing is not None:
            existing.combined_score += 1.0 / (K + rank)
            existing.rank_score = c.rank_score
        else:
            merged[c.recipe_id] = FusedCandidate(c.recipe_id, 1.0 / (K + rank), rank_score=c.rank_score)
    return _ranked(merged, k)


FUSION_STRATEGIES = {
    "weighted": fuse,
    "rrf": reciprocal_rank_fusion,
}


__all__ = [
    "SearchCandidate",
    "FusedCandidate",
    "fuse",
    "reciprocal_rank_fusion",
    "FUSION_STRATEGIES",
    "VECTOR_WEIGHT",
    "LEXICAL_WEIGHT",
]
