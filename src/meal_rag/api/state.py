from typing import Any, Dict, Optional
import threading
import time

# Retrieval service (built by dependencies.load_service)
service: Any = None  # Instance of RetrievalService
store: Any = None  # Instance of RecipeStore
embedder_kind: Optional[str] = None

# Search Stats (for monitoring; query text is never kept)
search_stats_lock = threading.Lock()
search_stats: Dict[str, Any] = {
    'total_searches': 0,
    'by_type': {'semantic': 0, 'text': 0, 'hybrid': 0, 'ingredients': 0, 'similar': 0},
    'fallbacks': 0,
    'empty_results': 0,
    'last_search_time': None,
}

# Metrics
REQUEST_COUNT: Any = None
REQUEST_LATENCY: Any = None
SEARCHES_TOTAL: Any = None
SEARCH_FALLBACKS: Any = None


def update_search_stats(search_type: str, results_count: int, fallback: bool = False):
    """Update search statistics for monitoring."""
    with search_stats_lock:
        search_stats['total_searches'] = int(search_stats.get('total_searches') or 0) + 1
        by_type = search_stats['by_type']
        by_type[search_type] = int(by_type.get(search_type) or 0) + 1
        search_stats['last_search_time'] = time.time()
        if fallback:
            search_stats['fallbacks'] = int(search_stats.get('fallbacks') or 0) + 1
        if results_count == 0:
            search_stats['empty_results'] = int(search_stats.get('empty_results') or 0) + 1
    if SEARCHES_TOTAL is not None:
        SEARCHES_TOTAL.labels(search_type).inc()
    if fallback and SEARCH_FALLBACKS is not None:
        SEARCH_FALLBACKS.inc()


def snapshot_search_stats() -> Dict[str, Any]:
    with search_stats_lock:
        return {**search_stats, 'by_type': dict(search_stats['by_type'])}
