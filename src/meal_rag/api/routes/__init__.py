from meal_rag.api.routes.search import search_bp
from meal_rag.api.routes.monitoring import monitoring_bp

__all__ = ['search_bp', 'monitoring_bp']
