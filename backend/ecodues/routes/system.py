# backend/ecodues/routes/system.py
"""
System health and version endpoints.

Health reports database reachability plus a count of open dues per tier so
an operator can see whether the cascade is moving.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import DUE_MODELS
from ..models.dues import DUE_STATUS_PENDING, DUE_STATUS_OVERDUE
from ecodues.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and count open dues per tier.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        open_dues = {}
        for tier, model in DUE_MODELS.items():
            open_dues[tier] = db.session.query(model).filter(
                model.status.in_((DUE_STATUS_PENDING, DUE_STATUS_OVERDUE))
            ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"open_dues": open_dues},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {"database": database_health},
    }
    return response, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "0.1.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
        "due_resolution_policy": current_app.config.get("DUE_RESOLUTION_POLICY"),
    }
