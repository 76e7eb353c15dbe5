"""Generate embeddings for recipes that do not have one yet.

Reads the recipe store (RECIPE_DATA_PATH by default), embeds each recipe's
searchable text with the configured provider in batches, and writes the store
back in place.

CLI:
  python scripts/build_embeddings.py \
      --store data/recipes.json \
      --provider local \
      --user-id <uuid> \
      --batch-size 16
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from meal_rag.api import config  # noqa: E402
from meal_rag.errors import EmbeddingError, StorageError  # noqa: E402
from meal_rag.ingest.schemas import EmbeddingRecord, Recipe, embedding_text  # noqa: E402
from meal_rag.ingest.store import RecipeStore  # noqa: E402
from meal_rag.retrieval.embeddings import build_provider  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("build_embeddings")


def embed_batch(provider, recipes: List[Recipe]) -> List[List[float]]:
    texts = [embedding_text(r) for r in recipes]
    if hasattr(provider, "embed_many"):
        return provider.embed_many(texts)
    return [provider(t) for t in texts]


def build_embeddings(store: RecipeStore, provider, user_id: str | None = None, batch_size: int = 16) -> dict:
    pending = store.recipes_missing_embeddings(user_id)
    processed = 0
    errors = []
    for start in range(0, len(pending), batch_size):
        batch = pending[start:start + batch_size]
        try:
            vectors = embed_batch(provider, batch)
        except EmbeddingError as e:
            logger.warning(f"Batch starting at {start} failed: {e}")
            errors.extend({"recipeId": r.id, "error": str(e)} for r in batch)
            continue
        for recipe, vec in zip(batch, vectors):
            try:
                store.add_embedding(EmbeddingRecord(recipe_id=recipe.id, vector=vec, text=embedding_text(recipe)))
            except StorageError as e:
                # provider or model changed since the existing embeddings were built
                logger.warning(f"Skipping recipe {recipe.id}: {e}")
                errors.append({"recipeId": recipe.id, "error": str(e)})
                continue
            processed += 1
        logger.info(f"Embedded {processed}/{len(pending)} recipes")
    return {"pending": len(pending), "processed": processed, "errors": errors}


def main():
    parser = argparse.ArgumentParser(description="Generate missing recipe embeddings")
    parser.add_argument("--store", default=config.RECIPE_DATA_PATH, help="Recipe store JSON path")
    parser.add_argument("--provider", default=config.EMBEDDING_PROVIDER, help="http | local")
    parser.add_argument("--model", default=config.EMBEDDING_MODEL, help="Embedding model name")
    parser.add_argument("--user-id", default=None, help="Only embed this user's recipes")
    parser.add_argument("--batch-size", type=int, default=16, help="Recipes per provider call")
    args = parser.parse_args()

    provider = build_provider(
        args.provider,
        api_url=config.EMBEDDING_API_URL,
        api_key=config.EMBEDDING_API_KEY,
        model=args.model,
        timeout=config.EMBEDDING_TIMEOUT_SECONDS,
    )
    if provider is None:
        raise SystemExit(f"Embedding provider '{args.provider}' is not usable; check configuration")

    store = RecipeStore.load(args.store)
    summary = build_embeddings(store, provider, args.user_id, args.batch_size)
    store.save(args.store)
    logger.info(f"Processed {summary['processed']} of {summary['pending']} recipes ({len(summary['errors'])} errors)")
    if summary["errors"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
