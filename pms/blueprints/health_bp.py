"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — app name and status
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database round-trip check
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from pms.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "IPP Performance Tracker"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with database status."""
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    checks["app"] = {
        "name": "IPP Performance Tracker",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "read_plan_workers": current_app.config.get("READ_PLAN_MAX_WORKERS"),
    }
    return jsonify({"status": "ok" if overall else "degraded", "checks": checks}), 200 if overall else 503
