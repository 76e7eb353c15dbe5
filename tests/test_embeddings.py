import math

import pytest
import requests

from meal_rag.errors import EmbeddingError
from meal_rag.retrieval.embeddings import (
    HttpEmbeddingProvider,
    SentenceTransformerProvider,
    build_provider,
    embed_with_retry,
    validate_vector,
)


class _Response:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _Session:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def test_validate_vector_coerces_numbers():
    assert validate_vector([1, "2.5", 0]) == [1.0, 2.5, 0.0]


@pytest.mark.parametrize("raw", [None, "abc", [], ["x"], [1.0, math.nan], [math.inf]])
def test_validate_vector_rejects_malformed(raw):
    with pytest.raises(EmbeddingError):
        validate_vector(raw)


def test_validate_vector_dimension_check():
    with pytest.raises(EmbeddingError):
        validate_vector([1.0, 2.0], dim=3)


def test_retry_then_succeeds():
    calls = []

    def flaky(text):
        calls.append(text)
        if len(calls) == 1:
            raise ConnectionError("reset")
        return [0.5, 0.5]

    assert embed_with_retry(flaky, "soup", retries=1, backoff=0) == [0.5, 0.5]
    assert calls == ["soup", "soup"]


def test_retries_exhausted():
    calls = []

    def broken(text):
        calls.append(text)
        raise TimeoutError("slow")

    with pytest.raises(EmbeddingError):
        embed_with_retry(broken, "soup", retries=2, backoff=0)
    assert len(calls) == 3


def test_http_provider_orders_by_index():
    session = _Session(_Response({"data": [
        {"index": 1, "embedding": [0.0, 1.0]},
        {"index": 0, "embedding": [1.0, 0.0]},
    ]}))
    provider = HttpEmbeddingProvider("https://emb.example/v1/", api_key="k", model="m", session=session)
    assert provider.embed_many(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]
    req = session.requests[0]
    assert req["url"] == "https://emb.example/v1/embeddings"
    assert req["json"] == {"model": "m", "input": ["a", "b"]}
    assert req["headers"]["Authorization"] == "Bearer k"


def test_http_provider_single_text():
    session = _Session(_Response({"data": [{"index": 0, "embedding": [0.3, 0.4]}]}))
    provider = HttpEmbeddingProvider("https://emb.example/v1", session=session)
    assert provider("soup") == [0.3, 0.4]
    assert "Authorization" not in session.requests[0]["headers"]


@pytest.mark.parametrize("session", [
    _Session(exc=requests.ConnectionError("down")),
    _Session(_Response({"error": "quota"}, status=429)),
    _Session(_Response(ValueError("not json"))),
    _Session(_Response({"data": []})),
    _Session(_Response({"data": [{"index": 0, "embedding": None}]})),
])
def test_http_provider_failures_raise_embedding_error(session):
    provider = HttpEmbeddingProvider("https://emb.example/v1", session=session)
    with pytest.raises(EmbeddingError):
        provider("soup")


def test_build_provider():
    assert build_provider("none") is None
    assert build_provider("") is None
    assert build_provider("http", api_url="") is None
    assert build_provider("carrier-pigeon") is None
    http = build_provider("http", api_url="https://emb.example/v1", api_key="k")
    assert isinstance(http, HttpEmbeddingProvider)
    assert http.model == "text-embedding-3-small"
    local = build_provider("local", model="all-MiniLM-L6-v2")
    assert isinstance(local, SentenceTransformerProvider)
    assert local._model is None
