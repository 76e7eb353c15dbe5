import math
import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure the `src/` directory is on sys.path so we can import `meal_rag` package
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

# The app is configured at import time; keep tests offline and unthrottled
os.environ.setdefault("EMBEDDING_PROVIDER", "none")
os.environ.setdefault("RECIPE_DATA_PATH", os.path.join(PROJECT_ROOT, "tests", "_no_such_store.json"))
os.environ.setdefault("RATELIMIT_ENABLED", "0")

from meal_rag.ingest.schemas import EmbeddingRecord, Recipe  # noqa: E402
from meal_rag.ingest.store import RecipeStore  # noqa: E402
from meal_rag.retrieval.service import RetrievalService  # noqa: E402

USER_A = "user-a"
USER_B = "user-b"

# Unit vectors on separate axes; the 4th axis is only used by queries
SOUP_VEC = [1.0, 0.0, 0.0, 0.0]
PASTA_VEC = [0.0, 1.0, 0.0, 0.0]
PANCAKE_VEC = [0.0, 0.0, 1.0, 0.0]


def unit_query(first_axis: float):
    """Query vector whose cosine with SOUP_VEC is ``first_axis``."""
    return [first_axis, 0.0, 0.0, math.sqrt(1.0 - first_axis ** 2)]


QUERY_VECTORS = {
    "warm broth": unit_query(0.82),
    "chicken": unit_query(0.6),
    "pasta": [0.0, 1.0, 0.0, 0.0],
    "noodles": [0.0, 0.9, 0.0, 0.1],
    "something else": [0.0, 0.0, 0.0, 1.0],
}


class FakeEmbedder:
    """Maps known queries to fixed vectors; anything else is a provider failure."""

    def __init__(self, vectors=None, fail=False):
        self.vectors = dict(QUERY_VECTORS if vectors is None else vectors)
        self.fail = fail
        self.calls = 0

    def __call__(self, text):
        self.calls += 1
        if self.fail:
            raise ConnectionError("embedding service unreachable")
        return self.vectors[text]


def _ts(day):
    return datetime(2025, 11, day, tzinfo=timezone.utc)


def make_recipes():
    return [
        Recipe(
            id="soup", user_id=USER_A, title="Chicken Soup",
            description="Classic soup for cold evenings",
            ingredients=[{"name": "chicken", "quantity": 1, "unit": "whole"},
                         {"name": "carrot", "quantity": 2},
                         {"name": "celery"}],
            instructions=["Simmer the chicken in water for an hour.", "Add carrot and celery."],
            prep_time=15, cook_time=60, difficulty="Easy", cuisine="American",
            dietary_tags=["gluten-free", "dairy-free"], rating=4.0, created_at=_ts(1),
        ),
        Recipe(
            id="pasta-a", user_id=USER_A, title="Pasta",
            description="Weeknight tomato pasta",
            ingredients=[{"name": "spaghetti"}, {"name": "tomato"}, {"name": "garlic"}],
            instructions=["Boil the spaghetti.", "Toss with tomato and garlic."],
            prep_time=10, difficulty="Easy", cuisine="Italian",
            dietary_tags=["vegetarian"], rating=None, created_at=_ts(5),
        ),
        Recipe(
            id="pancakes", user_id=USER_A, title="Pancakes",
            ingredients=[{"name": "egg", "quantity": 2}, {"name": "flour", "quantity": 200, "unit": "g"},
                         {"name": "milk", "quantity": 300, "unit": "ml"}],
            instructions=["Whisk everything.", "Fry in a hot pan."],
            prep_time=5, cook_time=15, difficulty="Easy", cuisine="American",
            dietary_tags=["vegetarian"], rating=4.5, created_at=_ts(3),
        ),
        Recipe(
            id="salad", user_id=USER_A, title="Greek Salad",
            ingredients=[{"name": "cucumber"}, {"name": "feta", "notes": "crumbled"}, {"name": "olives"}],
            instructions=["Chop and combine."],
            prep_time=45, difficulty="Medium", cuisine="Greek",
            dietary_tags=["Vegetarian", "gluten-free"], rating=None, created_at=_ts(8),
        ),
        Recipe(
            id="pasta-b", user_id=USER_B, title="Pasta",
            description="Weeknight tomato pasta",
            ingredients=[{"name": "spaghetti"}, {"name": "tomato"}, {"name": "garlic"}],
            instructions=["Boil the spaghetti.", "Toss with tomato and garlic."],
            difficulty="Easy", cuisine="Italian", rating=5.0, created_at=_ts(2),
        ),
    ]


def make_embeddings():
    return [
        EmbeddingRecord(recipe_id="soup", vector=SOUP_VEC, text="chicken soup"),
        EmbeddingRecord(recipe_id="pasta-a", vector=PASTA_VEC, text="pasta"),
        EmbeddingRecord(recipe_id="pancakes", vector=PANCAKE_VEC, text="pancakes"),
        EmbeddingRecord(recipe_id="pasta-b", vector=PASTA_VEC, text="pasta"),
        # "salad" intentionally has no embedding
    ]


@pytest.fixture
def store():
    return RecipeStore(make_recipes(), make_embeddings())


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def service(store, embedder):
    svc = RetrievalService(store, embedder, similarity_threshold=0.5, embed_retries=0, timeout=5)
    yield svc
    svc.close()


@pytest.fixture
def client(store, embedder):
    from meal_rag.api import dependencies, state
    from meal_rag.api.server import app

    previous_store = state.store
    dependencies.load_service(store=store, embedder=embedder)
    state.service.embed_retries = 0
    with app.test_client() as c:
        yield c
    state.service.close()
    state.service = None
    state.store = previous_store
