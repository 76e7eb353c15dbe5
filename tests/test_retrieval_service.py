"""Tests for the retrieval facade: dispatch, fallback and response shape."""

import time

import pytest

from conftest import USER_A, USER_B, FakeEmbedder
from meal_rag.errors import InvalidRequestError, LexicalSearchError, SearchTimeoutError, StorageError
from meal_rag.ingest.schemas import EmbeddingRecord
from meal_rag.retrieval import lexical, service as service_module
from meal_rag.retrieval.service import RetrievalService


def test_text_mode_promotes_rank_score(service):
    outcome = service.search("chicken", USER_A, "text")
    assert outcome.search_type == "text"
    assert not outcome.fallback
    item = outcome.results[0]
    assert item["id"] == "soup"
    assert item["score"] == item["rank_score"]
    assert "similarity_score" not in item


def test_semantic_mode_promotes_similarity(service):
    outcome = service.search("warm broth", USER_A, "semantic")
    assert outcome.search_type == "semantic"
    item = outcome.results[0]
    assert item["id"] == "soup"
    assert item["similarity_score"] == pytest.approx(0.82)
    assert item["score"] == item["similarity_score"]
    assert "rank_score" not in item


def test_hybrid_semantic_only_hit(service):
    # no literal overlap: combined score comes from the vector signal alone
    outcome = service.search("warm broth", USER_A, "hybrid")
    assert outcome.search_type == "hybrid"
    assert [r["id"] for r in outcome.results] == ["soup"]
    assert outcome.results[0]["score"] == pytest.approx(0.82 * 0.7)
    assert outcome.results[0]["rank_score"] == 0.0


def test_hybrid_weighting_is_exact(service):
    sim = service.search("chicken", USER_A, "semantic").results[0]["similarity_score"]
    rank = service.search("chicken", USER_A, "text").results[0]["rank_score"]
    hybrid = service.search("chicken", USER_A, "hybrid").results[0]
    assert hybrid["id"] == "soup"
    assert sim == pytest.approx(0.6)
    assert hybrid["score"] == sim * 0.7 + rank * 0.3
    assert hybrid["similarity_score"] == sim
    assert hybrid["rank_score"] == rank


def test_default_mode_is_hybrid(service):
    assert service.search("pasta", USER_A).search_type == "hybrid"


def test_display_fields_are_denormalized(service):
    item = service.search("pancakes egg", USER_A, "text").results[0]
    assert item["title"] == "Pancakes"
    assert item["ingredients"][0]["name"] == "egg"
    assert item["instructions"] == ["Whisk everything.", "Fry in a hot pan."]
    assert "user_id" not in item
    assert "searchable_text" not in item


@pytest.mark.parametrize("mode", ["text", "semantic", "hybrid"])
def test_no_cross_user_leakage(service, mode):
    outcome = service.search("pasta", USER_A, mode)
    assert [r["id"] for r in outcome.results] == ["pasta-a"]
    outcome = service.search("pasta", USER_B, mode)
    assert [r["id"] for r in outcome.results] == ["pasta-b"]


def test_hybrid_ids_unique_and_sorted(service):
    outcome = service.search("pasta", USER_A, "hybrid", limit=10)
    ids = [r["id"] for r in outcome.results]
    assert len(ids) == len(set(ids))
    scores = [r["score"] for r in outcome.results]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.parametrize("limit", [1, 2, 5])
def test_truncation(service, limit):
    outcome = service.search("vegetarian easy", USER_A, "text", limit=limit)
    assert outcome.total == len(outcome.results) <= limit


def test_semantic_threshold(service):
    outcome = service.search("noodles", USER_A, "semantic")
    assert all(r["similarity_score"] >= 0.5 for r in outcome.results)
    assert [r["id"] for r in outcome.results] == ["pasta-a"]


def test_deterministic(service):
    first = service.search("pasta", USER_A, "hybrid").to_dict()
    second = service.search("pasta", USER_A, "hybrid").to_dict()
    assert first == second


def test_empty_text_result_is_not_error(service):
    outcome = service.search("zucchini", USER_A, "text")
    assert outcome.to_dict() == {"results": [], "total": 0, "searchType": "text", "query": "zucchini"}


@pytest.mark.parametrize("mode", ["semantic", "hybrid"])
def test_embedding_failure_falls_back_to_text(store, mode):
    svc = RetrievalService(store, FakeEmbedder(fail=True), embed_retries=0)
    try:
        outcome = svc.search("chicken", USER_A, mode)
    finally:
        svc.close()
    assert outcome.search_type == "text"
    assert outcome.fallback
    assert [r["id"] for r in outcome.results] == ["soup"]
    assert outcome.results[0]["score"] == outcome.results[0]["rank_score"]


def test_malformed_embedding_falls_back(store):
    svc = RetrievalService(store, FakeEmbedder(vectors={"chicken": ["not", "numbers"]}), embed_retries=0)
    outcome = svc.search("chicken", USER_A, "semantic")
    svc.close()
    assert outcome.search_type == "text"


def test_wrong_dimension_falls_back(store):
    svc = RetrievalService(store, FakeEmbedder(vectors={"chicken": [1.0, 0.0]}), embed_retries=0)
    outcome = svc.search("chicken", USER_A, "hybrid")
    svc.close()
    assert outcome.search_type == "text"
    assert outcome.fallback


def test_rejected_stored_embedding_keeps_semantic_search(service, store):
    with pytest.raises(StorageError):
        store.add_embedding(EmbeddingRecord(recipe_id="salad", vector=[0.5, 0.5]))
    outcome = service.search("warm broth", USER_A, "semantic")
    assert outcome.search_type == "semantic"
    assert not outcome.fallback
    assert [r["id"] for r in outcome.results] == ["soup"]


def test_no_embedder_configured(store):
    svc = RetrievalService(store, None)
    outcome = svc.search("chicken", USER_A, "hybrid")
    svc.close()
    assert outcome.search_type == "text"


def test_embedding_retried_once(store):
    class Flaky(FakeEmbedder):
        def __call__(self, text):
            self.calls += 1
            if self.calls == 1:
                raise TimeoutError("slow provider")
            return self.vectors[text]

    flaky = Flaky()
    svc = RetrievalService(store, flaky, embed_retries=1)
    outcome = svc.search("warm broth", USER_A, "semantic")
    svc.close()
    assert flaky.calls == 2
    assert outcome.search_type == "semantic"


def test_lexical_failure_is_fatal_in_hybrid(service, monkeypatch):
    def boom(query, documents):
        raise RuntimeError("index corrupted")

    monkeypatch.setattr(lexical, "rank_documents", boom)
    with pytest.raises(LexicalSearchError):
        service.search("chicken", USER_A, "hybrid")


def test_storage_failure_propagates(embedder):
    class BrokenStore:
        def get_recipes_by_user(self, user_id):
            raise ConnectionError("database unreachable")

        def get_embeddings_by_recipe(self, recipe_id):
            raise ConnectionError("database unreachable")

    svc = RetrievalService(BrokenStore(), embedder)
    with pytest.raises(StorageError):
        svc.search("chicken", USER_A, "text")
    with pytest.raises(StorageError):
        svc.search("chicken", USER_A, "hybrid")
    svc.close()


def test_hybrid_timeout_on_lexical_branch(store, embedder, monkeypatch):
    def slow(query, documents):
        time.sleep(0.5)
        return [0.0] * len(documents)

    monkeypatch.setattr(lexical, "rank_documents", slow)
    svc = RetrievalService(store, embedder, timeout=0.05)
    with pytest.raises(SearchTimeoutError):
        svc.search("chicken", USER_A, "hybrid")
    svc.close()


def test_hybrid_slow_vector_branch_returns_text_results(store, embedder, monkeypatch):
    search_similar = service_module.search_similar

    def slow(*args, **kwargs):
        time.sleep(0.5)
        return search_similar(*args, **kwargs)

    monkeypatch.setattr(service_module, "search_similar", slow)
    svc = RetrievalService(store, embedder, timeout=0.2)
    outcome = svc.search("chicken", USER_A, "hybrid")
    svc.close()
    assert outcome.search_type == "text"
    assert outcome.fallback
    assert [r["id"] for r in outcome.results] == ["soup"]
    assert outcome.results[0]["score"] == outcome.results[0]["rank_score"]


@pytest.mark.parametrize("query,user_id,mode,limit", [
    ("", USER_A, "hybrid", 10),
    ("   ", USER_A, "text", 10),
    ("chicken", "", "text", 10),
    ("chicken", USER_A, "fuzzy", 10),
    ("chicken", USER_A, "text", 0),
])
def test_validation(service, embedder, query, user_id, mode, limit):
    with pytest.raises(InvalidRequestError):
        service.search(query, user_id, mode, limit)
    assert embedder.calls == 0


def test_by_ingredients(service):
    outcome = service.by_ingredients(["egg", "flour", "milk"], USER_A)
    assert outcome.query == "egg flour milk"
    assert outcome.to_dict()["ingredients"] == ["egg", "flour", "milk"]
    direct = service.search("egg flour milk", USER_A, "text")
    assert outcome.results == direct.results


def test_by_ingredients_requires_names(service):
    with pytest.raises(InvalidRequestError):
        service.by_ingredients(["", " "], USER_A)


def test_similar(service, store):
    store.add_embedding(EmbeddingRecord(recipe_id="salad", vector=[0.1, 0.95, 0.0, 0.0]))
    outcome = service.similar("pasta-a", USER_A, limit=5)
    assert [r["id"] for r in outcome.results] == ["salad"]
    assert outcome.to_dict()["recipeId"] == "pasta-a"


def test_recommend_has_no_score(service):
    results = service.recommend(USER_A)
    assert [r["id"] for r in results] == ["pancakes", "soup", "salad", "pasta-a"]
    assert all("score" not in r and "combined_score" not in r for r in results)
