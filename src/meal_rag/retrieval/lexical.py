"""Full-text recipe search over each recipe's searchable text.

Scoring is TF-IDF (sublinear tf, smoothed idf, L2 norm) fitted on the
requesting user's collection only, so document rarity is relative to that
user's recipes. A recipe's rank score is the dot product of its tf-idf row with
the query vector; recipes sharing no term with the query are dropped.
"""
from __future__ import annotations

import functools
import logging
import re
from typing import Iterable, List

import numpy as np
from nltk.stem import PorterStemmer
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS, TfidfVectorizer

from meal_rag.errors import LexicalSearchError
from meal_rag.retrieval.hybrid import SearchCandidate

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_stemmer = PorterStemmer()


@functools.lru_cache(maxsize=8192)
def _stem(token: str) -> str:
    return _stemmer.stem(token)


def tokenize(text: str) -> List[str]:
    """Lowercase, split on non-alphanumerics, drop stop words, stem."""
    return [_stem(t) for t in _TOKEN_RE.findall((text or "").lower()) if t not in ENGLISH_STOP_WORDS]


def _passthrough(tokens: List[str]) -> List[str]:
    return tokens


def rank_documents(query: str, documents: List[str]) -> np.ndarray:
    """Rank score of every document against ``query`` (0 where nothing matches)."""
    q_tokens = tokenize(query)
    doc_tokens = [tokenize(d) for d in documents]
    if not q_tokens or not any(doc_tokens):
        return np.zeros(len(documents))
    vectorizer = TfidfVectorizer(analyzer=_passthrough, sublinear_tf=True)
    matrix = vectorizer.fit_transform(doc_tokens)
    qv = vectorizer.transform([q_tokens])
    return (matrix @ qv.T).toarray().ravel()


def search_text(query: str, user_id: str, store, limit: int = 10) -> List[SearchCandidate]:
    recipes = store.get_recipes_by_user(user_id)
    if not recipes:
        return []
    try:
        scores = rank_documents(query, [r.searchable_text for r in recipes])
    except Exception as e:
        logger.error(f"Lexical scoring failed: {e}")
        raise LexicalSearchError(f"Lexical scoring failed: {e}") from e
    hits = [(r.id, float(s)) for r, s in zip(recipes, scores) if s > 0]
    hits.sort(key=lambda x: (-x[1], x[0]))
    return [SearchCandidate(recipe_id=rid, rank_score=s) for rid, s in hits[:limit]]


def ingredients_query(ingredients: Iterable[str]) -> str:
    return " ".join(i.strip() for i in ingredients if i and i.strip())


def search_by_ingredients(ingredients: Iterable[str], user_id: str, store, limit: int = 10) -> List[SearchCandidate]:
    """Lexical search for the space-joined ingredient names."""
    return search_text(ingredients_query(ingredients), user_id, store, limit)


__all__ = ["tokenize", "rank_documents", "search_text", "search_by_ingredients", "ingredients_query"]
