import os
import platform
from flask import Blueprint, jsonify, Response

from meal_rag.api import config, state

monitoring_bp = Blueprint('monitoring', __name__)

@monitoring_bp.route("/metrics", methods=["GET"])
def metrics():
    from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

@monitoring_bp.route("/version", methods=["GET"])
def version():
    return jsonify({
        "version": config.APP_VERSION,
        "env": config.APP_ENV,
        "commit": os.getenv("GIT_COMMIT"),
        "python": platform.python_version(),
        "fusion_strategy": config.FUSION_STRATEGY,
        "embedding_provider": state.embedder_kind,
    })

@monitoring_bp.route("/api/version", methods=["GET"])
def api_version():
    return version()

@monitoring_bp.route("/api/health", methods=["GET"])
def health():
    if state.store is None:
        return jsonify({"status": "error", "detail": "recipe store not loaded"}), 500
    return jsonify({"status": "ok", "store": state.store.stats()}), 200

@monitoring_bp.route("/api/health/ready", methods=["GET"])
def health_ready():
    """Readiness probe - checks if the retrieval service is ready to serve."""
    checks = {
        'store_loaded': state.store is not None,
        'service_ready': state.service is not None,
    }
    all_ready = all(checks.values())
    return jsonify({
        "ready": all_ready,
        "checks": checks,
        "semantic_search": state.service is not None and state.service.embedder is not None,
    }), 200 if all_ready else 503

@monitoring_bp.route("/api/health/live", methods=["GET"])
def health_live():
    """Liveness probe - minimal check that service is running."""
    return jsonify({"alive": True}), 200

@monitoring_bp.route("/api/stats/search", methods=["GET"])
def search_stats():
    """Return search statistics for monitoring."""
    stats = state.snapshot_search_stats()
    if state.store is not None:
        stats['store'] = state.store.stats()
    return jsonify(stats)
