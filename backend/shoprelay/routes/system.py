# backend/shoprelay/routes/system.py
"""
System health and version endpoints.
"""

import os
import time
from flask import Blueprint, jsonify, current_app

from ..services import store_service
from ..time_utils import now_ms

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    """
    Check that the sync document can be read.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        store = store_service.load_store()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "document": store.row.to_dict(),
                "counts": store.counts(),
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Sync store health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Store error",
        }


@system_bp.get("/api/health")
def health():
    store = check_store_health()
    healthy = store["status"] == "healthy"
    return jsonify({
        "ok": healthy,
        "status": "healthy" if healthy else "unhealthy",
        "checks": {"store": store},
        "serverTime": now_ms(),
    }), (200 if healthy else 503)


@system_bp.get("/api/version")
def version():
    return jsonify({
        "name": "shoprelay",
        "version": os.environ.get("APP_VERSION", "0.1.0"),
        "environment": os.environ.get("FLASK_ENV", "production"),
    }), 200
