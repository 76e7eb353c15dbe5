"""Embedding providers: text in, fixed-length float vector out.

The retrieval core accepts any callable ``embed(text) -> list[float]``. Two
concrete providers are shipped:

- ``HttpEmbeddingProvider``: OpenAI-compatible ``/embeddings`` endpoint.
- ``SentenceTransformerProvider``: local model, loaded lazily on first use.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Callable, List, Optional, Sequence

import requests  # type: ignore[import-untyped]

from meal_rag.errors import EmbeddingError

logger = logging.getLogger(__name__)

Embedder = Callable[[str], List[float]]


def validate_vector(raw: Any, dim: Optional[int] = None) -> List[float]:
    """Coerce provider output to a list of finite floats or raise EmbeddingError."""
    if raw is None or isinstance(raw, (str, bytes, dict)):
        raise EmbeddingError("Embedding provider returned a non-vector value")
    try:
        vec = [float(x) for x in raw]
    except (TypeError, ValueError) as e:
        raise EmbeddingError(f"Embedding contains non-numeric values: {e}") from e
    if not vec:
        raise EmbeddingError("Embedding provider returned an empty vector")
    if not all(math.isfinite(x) for x in vec):
        raise EmbeddingError("Embedding contains NaN or infinite values")
    if dim is not None and len(vec) != dim:
        raise EmbeddingError(f"Embedding dimension {len(vec)} != expected {dim}")
    return vec


def embed_with_retry(embed: Embedder, text: str, retries: int = 1, backoff: float = 0.2) -> List[float]:
    """Call ``embed`` with a bounded number of retries.

    Any exception from the provider counts as a failed attempt. The last
    failure is re-raised as EmbeddingError.
    """
    last_exc: Optional[BaseException] = None
    for attempt in range(retries + 1):
        try:
            return validate_vector(embed(text))
        except Exception as e:
            last_exc = e
            logger.warning(f"Embedding attempt {attempt + 1} failed: {e}")
            if attempt < retries:
                time.sleep(backoff)
    if isinstance(last_exc, EmbeddingError):
        raise last_exc
    raise EmbeddingError(f"Embedding provider failed: {last_exc}") from last_exc


class HttpEmbeddingProvider:
    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        model: str = "text-embedding-3-small",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            resp = self._session.post(
                f"{self.api_url}/embeddings",
                json={"model": self.model, "input": list(texts)},
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError("Embedding response was not JSON") from e
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != len(texts):
            raise EmbeddingError("Embedding response missing 'data' entries")
        # entries may arrive out of order; 'index' is authoritative when present
        ordered = sorted(data, key=lambda d: d.get("index", 0) if isinstance(d, dict) else 0)
        return [validate_vector(d.get("embedding") if isinstance(d, dict) else None) for d in ordered]

    def __call__(self, text: str) -> List[float]:
        return self.embed_many([text])[0]


class SentenceTransformerProvider:
    def __init__(self, model_name: str = "all-MiniLM-L6-v2", device: Optional[str] = None):
        self.model_name = model_name
        self.device = device
        self._model: Any = None
        self._lock = threading.Lock()

    def _load(self):
        if self._model is None:
            with self._lock:
                if self._model is None:
                    from sentence_transformers import SentenceTransformer
                    self._model = SentenceTransformer(self.model_name, device=self.device)
                    logger.info(f"Loaded sentence-transformers model {self.model_name}")
        return self._model

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        try:
            model = self._load()
            vecs = model.encode(list(texts), convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingError(f"Local embedding failed: {e}") from e
        return [validate_vector(v) for v in vecs]

    def __call__(self, text: str) -> List[float]:
        return self.embed_many([text])[0]


def build_provider(kind: str, **kwargs: Any) -> Optional[Embedder]:
    """Construct the configured provider; ``none`` disables semantic search."""
    kind = (kind or "none").lower()
    if kind == "http":
        if not kwargs.get("api_url"):
            logger.warning("EMBEDDING_API_URL not set; semantic search disabled")
            return None
        return HttpEmbeddingProvider(
            api_url=kwargs["api_url"],
            api_key=kwargs.get("api_key", ""),
            model=kwargs.get("model") or "text-embedding-3-small",
            timeout=kwargs.get("timeout", 10.0),
        )
    if kind == "local":
        return SentenceTransformerProvider(kwargs.get("model") or "all-MiniLM-L6-v2")
    if kind != "none":
        logger.warning(f"Unknown embedding provider '{kind}'; semantic search disabled")
    return None


__all__ = [
    "Embedder",
    "HttpEmbeddingProvider",
    "SentenceTransformerProvider",
    "build_provider",
    "embed_with_retry",
    "validate_vector",
]
