import os
import logging
from flask import request, jsonify
from meal_rag.api import config, state
from meal_rag.errors import StorageError
from meal_rag.ingest.store import RecipeStore
from meal_rag.retrieval.embeddings import build_provider
from meal_rag.retrieval.service import RetrievalService

logger = logging.getLogger("api")


def load_store() -> RecipeStore:
    path = config.RECIPE_DATA_PATH
    if path and os.path.exists(path):
        state.store = RecipeStore.load(path)
        logger.info(f"[api] Loaded recipe store from {path}")
    else:
        logger.warning(f"Recipe data not found at {path}; starting with an empty store")
        state.store = RecipeStore()
    return state.store


def load_embedder():
    state.embedder_kind = config.EMBEDDING_PROVIDER
    return build_provider(
        config.EMBEDDING_PROVIDER,
        api_url=config.EMBEDDING_API_URL,
        api_key=config.EMBEDDING_API_KEY,
        model=config.EMBEDDING_MODEL,
        timeout=config.EMBEDDING_TIMEOUT_SECONDS,
    )


def load_service(store=None, embedder=None) -> RetrievalService:
    """Build the retrieval service; explicit arguments override config (tests)."""
    if store is None:
        try:
            store = load_store()
        except StorageError as e:
            # Keep serving; searches will return empty results until data is fixed
            logger.error(f"Failed to load recipe store: {e}")
            store = RecipeStore()
    state.store = store
    if embedder is None:
        embedder = load_embedder()
    if state.service is not None:
        state.service.close()
    state.service = RetrievalService(
        store,
        embedder,
        similarity_threshold=config.SIMILARITY_THRESHOLD,
        similar_threshold=config.SIMILAR_RECIPES_THRESHOLD,
        fusion_strategy=config.FUSION_STRATEGY,
        embed_retries=config.EMBEDDING_RETRIES,
        timeout=config.SEARCH_TIMEOUT_SECONDS,
        max_workers=config.SEARCH_WORKERS,
        use_faiss=config.USE_FAISS,
    )
    logger.info(f"[api] Retrieval service ready (embedder={'on' if embedder else 'off'}, fusion={config.FUSION_STRATEGY})")
    return state.service


def require_api_key():
    if config.API_KEY:
        key = request.headers.get("X-API-Key", "")
        if key != config.API_KEY:
            return jsonify({"error": "Unauthorized"}), 401
    return None


def validation_error(ve):
    return jsonify({"error": "validation_failed", "details": ve.errors(include_url=False, include_context=False)}), 400
