from flask import Blueprint, request, jsonify
from flasgger import swag_from
from werkzeug.exceptions import BadRequest
from pydantic import ValidationError

from meal_rag.api import config, state, dependencies, models
from meal_rag.api.extensions import limiter

search_bp = Blueprint('search', __name__)


def _json_body() -> dict:
    raw = request.get_json(silent=True)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise BadRequest("Body must be a JSON object")
    return raw


def _service():
    if state.service is None:
        dependencies.load_service()
    return state.service


@search_bp.route("/api/rag/search", methods=["POST"])
@limiter.limit(config.SEARCH_RATE_LIMIT)
@swag_from({
    'tags': ['search'],
    'consumes': ['application/json'],
    'parameters': [{
        'name': 'body', 'in': 'body', 'required': True,
        'schema': {'type': 'object', 'required': ['query', 'userId'], 'properties': {
            'query': {'type': 'string'},
            'userId': {'type': 'string'},
            'limit': {'type': 'integer', 'default': 10},
            'searchType': {'type': 'string', 'enum': ['semantic', 'text', 'hybrid'], 'default': 'hybrid'},
        }}
    }],
    'responses': {200: {'description': 'Ranked recipes'}, 400: {'description': 'Validation failed'}}
})
def search_recipes():
    auth = dependencies.require_api_key()
    if auth:
        return auth
    try:
        parsed = models.SearchRequest(**_json_body())
    except ValidationError as ve:
        return dependencies.validation_error(ve)

    outcome = _service().search(parsed.query, parsed.user_id, parsed.search_type, parsed.limit)
    state.update_search_stats(outcome.search_type, outcome.total, outcome.fallback)
    return jsonify(outcome.to_dict())


@search_bp.route("/api/rag/ingredients", methods=["POST"])
@limiter.limit(config.SEARCH_RATE_LIMIT)
@swag_from({
    'tags': ['search'],
    'consumes': ['application/json'],
    'parameters': [{
        'name': 'body', 'in': 'body', 'required': True,
        'schema': {'type': 'object', 'required': ['ingredients', 'userId'], 'properties': {
            'ingredients': {'type': 'array', 'items': {'type': 'string'}},
            'userId': {'type': 'string'},
            'limit': {'type': 'integer', 'default': 10},
        }}
    }],
    'responses': {200: {'description': 'Recipes matching the ingredients'}}
})
def search_by_ingredients():
    auth = dependencies.require_api_key()
    if auth:
        return auth
    try:
        parsed = models.IngredientSearchRequest(**_json_body())
    except ValidationError as ve:
        return dependencies.validation_error(ve)

    outcome = _service().by_ingredients(parsed.ingredients, parsed.user_id, parsed.limit)
    state.update_search_stats('ingredients', outcome.total)
    return jsonify(outcome.to_dict())


@search_bp.route("/api/rag/similar/<recipe_id>", methods=["GET"])
@limiter.limit(config.SEARCH_RATE_LIMIT)
@swag_from({
    'tags': ['search'],
    'parameters': [
        {'name': 'recipe_id', 'in': 'path', 'type': 'string', 'required': True},
        {'name': 'userId', 'in': 'query', 'type': 'string', 'required': True},
        {'name': 'limit', 'in': 'query', 'type': 'integer', 'default': 5},
    ],
    'responses': {200: {'description': 'Similar recipes'}, 404: {'description': 'Recipe or embedding missing'}}
})
def similar_recipes(recipe_id: str):
    auth = dependencies.require_api_key()
    if auth:
        return auth
    try:
        parsed = models.SimilarRecipesQuery(**request.args.to_dict())
    except ValidationError as ve:
        return dependencies.validation_error(ve)

    outcome = _service().similar(recipe_id, parsed.user_id, parsed.limit)
    state.update_search_stats('similar', outcome.total)
    return jsonify(outcome.to_dict())


@search_bp.route("/api/rag/recommendations", methods=["POST"])
@limiter.limit(config.SEARCH_RATE_LIMIT)
@swag_from({
    'tags': ['recommendations'],
    'consumes': ['application/json'],
    'parameters': [{
        'name': 'body', 'in': 'body', 'required': True,
        'schema': {'type': 'object', 'required': ['userId'], 'properties': {
            'userId': {'type': 'string'},
            'limit': {'type': 'integer', 'default': 10},
            'preferences': {'type': 'object', 'properties': {
                'cuisine': {'type': 'string'},
                'difficulty': {'type': 'string'},
                'dietary_tags': {'type': 'array', 'items': {'type': 'string'}},
                'max_prep_time': {'type': 'integer'},
            }},
        }}
    }],
    'responses': {200: {'description': 'Recipes matching the preferences'}}
})
def recommendations():
    auth = dependencies.require_api_key()
    if auth:
        return auth
    try:
        parsed = models.RecommendationRequest(**_json_body())
    except ValidationError as ve:
        return dependencies.validation_error(ve)

    results = _service().recommend(parsed.user_id, parsed.preferences, parsed.limit)
    return jsonify({"results": results, "total": len(results)})
