"""Exception types raised by the retrieval core.

The HTTP layer maps each of these to a JSON error body; the retrieval service
itself only recovers from ``EmbeddingError`` (by degrading to lexical search).
"""
from __future__ import annotations


class RetrievalError(Exception):
    """Base class for retrieval failures."""

    code = "retrieval_error"
    status = 500


class InvalidRequestError(RetrievalError):
    """Request rejected before reaching any searcher."""

    code = "invalid_request"
    status = 400


class EmbeddingError(RetrievalError):
    """Embedding provider unreachable or returned a malformed vector."""

    code = "embedding_failed"
    status = 502


class LexicalSearchError(RetrievalError):
    code = "lexical_search_failed"
    status = 500


class StorageError(RetrievalError):
    """Recipe or embedding storage could not be read."""

    code = "storage_unavailable"
    status = 503


class RecipeNotFoundError(RetrievalError):
    code = "recipe_not_found"
    status = 404


class SearchTimeoutError(RetrievalError):
    code = "search_timeout"
    status = 504


__all__ = [
    "RetrievalError",
    "InvalidRequestError",
    "EmbeddingError",
    "LexicalSearchError",
    "StorageError",
    "RecipeNotFoundError",
    "SearchTimeoutError",
]
