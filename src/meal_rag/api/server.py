import time
import uuid
import json
import logging
from datetime import datetime, timezone
from flask import Flask, request, g, jsonify
from flask_cors import CORS
from flasgger import Swagger
from prometheus_client import Counter, Histogram
from werkzeug.exceptions import HTTPException
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from meal_rag.api import config, state, dependencies
from meal_rag.api.routes import search_bp, monitoring_bp
from meal_rag.api.extensions import limiter
from meal_rag.errors import RetrievalError

# Logging
logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger("api")

# Metrics
try:
    state.REQUEST_COUNT = Counter('meal_rag_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
    state.REQUEST_LATENCY = Histogram('meal_rag_request_latency_seconds', 'Request latency in seconds', ['endpoint'])
    state.SEARCHES_TOTAL = Counter('meal_rag_searches_total', 'Total recipe searches served', ['mode'])
    state.SEARCH_FALLBACKS = Counter('meal_rag_search_fallbacks_total', 'Searches degraded to text after embedding failure')
except ValueError:
    # Metrics might be already defined if reloaded
    pass

# Sentry
if config.SENTRY_DSN:
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        integrations=[FlaskIntegration()],
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
        profiles_sample_rate=config.SENTRY_PROFILES_SAMPLE_RATE,
        environment=config.APP_ENV,
        release=config.APP_VERSION,
    )
    logger.info("Sentry initialized")

app = Flask(__name__)
CORS(app)
Swagger(app)
app.config['MAX_CONTENT_LENGTH'] = config.MAX_CONTENT_LENGTH
app.config['RATELIMIT_ENABLED'] = config.RATELIMIT_ENABLED

# Initialize extensions
limiter.init_app(app)

# Register Blueprints
app.register_blueprint(search_bp)
app.register_blueprint(monitoring_bp)

# Error handlers
@app.errorhandler(RetrievalError)
def _retrieval_error(e: RetrievalError):
    if e.status >= 500:
        logger.error(f"[api] {e.code}: {e}")
    return jsonify({"error": e.code, "message": str(e)}), e.status

@app.errorhandler(HTTPException)
def _http_error(e: HTTPException):
    return jsonify({"error": e.name, "message": e.description}), e.code

# Middleware
@app.before_request
def _before_request():
    g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    g.started_at = time.time()
    g.endpoint_for_metrics = request.endpoint or request.path

@app.after_request
def _after_request(response):
    duration = (time.time() - getattr(g, 'started_at', time.time()))
    log_obj = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "lvl": "info",
        "request_id": getattr(g, 'request_id', None),
        "method": request.method,
        "path": request.path,
        "status": response.status_code,
        "duration_ms": int(duration * 1000),
        "remote_addr": request.headers.get('X-Forwarded-For', request.remote_addr),
        "ua": request.headers.get('User-Agent')
    }
    logger.info(json.dumps(log_obj, ensure_ascii=False))
    ep = getattr(g, 'endpoint_for_metrics', request.path)
    if state.REQUEST_COUNT:
        state.REQUEST_COUNT.labels(request.method, ep, response.status_code).inc()
    if state.REQUEST_LATENCY:
        state.REQUEST_LATENCY.labels(ep).observe(duration)
    if getattr(g, 'request_id', None):
        response.headers["X-Request-ID"] = g.request_id
    return response

# Load recipe store and embedding provider on startup
dependencies.load_service()

if __name__ == "__main__":
    app.run(debug=True, port=5002, host="0.0.0.0")
