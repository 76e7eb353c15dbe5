import os
from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))

MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', '1048576'))  # 1 MB default
API_KEY = os.getenv("API_KEY", "")
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "1") == "1"
DEFAULT_RATE_LIMIT = os.getenv("DEFAULT_RATE_LIMIT", "120 per minute")
SEARCH_RATE_LIMIT = os.getenv("SEARCH_RATE_LIMIT", "60/minute")
SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0"))
SENTRY_PROFILES_SAMPLE_RATE = float(os.getenv("SENTRY_PROFILES_SAMPLE_RATE", "0.0"))
APP_ENV = os.getenv("APP_ENV", "production")
APP_VERSION = os.getenv("APP_VERSION", "0.1.0")

# Recipe storage (JSON file with "recipes" and "embeddings" arrays)
RECIPE_DATA_PATH = os.getenv("RECIPE_DATA_PATH", os.path.join(PROJECT_ROOT, "data", "recipes.json"))

# Embedding provider: http (OpenAI-compatible), local (sentence-transformers) or none
EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", "http")
EMBEDDING_API_URL = os.getenv("EMBEDDING_API_URL", "https://api.openai.com/v1")
EMBEDDING_API_KEY = os.getenv("EMBEDDING_API_KEY") or os.getenv("OPENAI_API_KEY", "")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "")
EMBEDDING_TIMEOUT_SECONDS = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "10"))
EMBEDDING_RETRIES = int(os.getenv("EMBEDDING_RETRIES", "1"))

# Retrieval
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.5"))
SIMILAR_RECIPES_THRESHOLD = float(os.getenv("SIMILAR_RECIPES_THRESHOLD", "0.6"))
DEFAULT_SEARCH_LIMIT = int(os.getenv("DEFAULT_SEARCH_LIMIT", "10"))
MAX_SEARCH_LIMIT = int(os.getenv("MAX_SEARCH_LIMIT", "50"))
FUSION_STRATEGY = os.getenv("FUSION_STRATEGY", "weighted")  # weighted, rrf
SEARCH_WORKERS = int(os.getenv("SEARCH_WORKERS", "4"))
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "10"))
USE_FAISS = os.getenv("USE_FAISS", "0") == "1"
