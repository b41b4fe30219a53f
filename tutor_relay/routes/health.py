"""Health check endpoint for application and dependency monitoring.

Exposes GET /health returning the configuration status of each external
dependency. No outbound calls are made: probing the gateway would spend
quota, and the relay reports gateway failures per request anyway.

Response format:
    {
        "status": "healthy" | "degraded",
        "version": "1.0.0",
        "dependencies": {
            "completion_gateway": "ok" | "not configured",
            "web_search": "ok" | "disabled",
            "auth": "ok" | "not configured"
        }
    }
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from tutor_relay.models.responses import HealthResponse

health_bp = Blueprint("health", __name__)

APP_VERSION = "1.0.0"


@health_bp.route("/health", methods=["GET"])
def health_check():
    """Application health check endpoint.

    Returns:
        200 if the relay can serve chat turns.
        503 if a required credential is missing (web search is optional).
    """
    settings = current_app.config["SETTINGS"]
    llm_service = current_app.config["LLM_SERVICE"]
    search_client = current_app.config["SEARCH_CLIENT"]

    checks = {
        "completion_gateway": "ok" if llm_service.configured else "not configured",
        "web_search": "ok" if search_client.configured else "disabled",
        "auth": "ok" if settings.AUTH_JWT_SECRET else "not configured",
    }
    healthy = checks["completion_gateway"] == "ok" and checks["auth"] == "ok"

    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        version=APP_VERSION,
        dependencies=checks,
    )
    return jsonify(response.model_dump()), 200 if healthy else 503
