# backend/fieldops/routes/system.py
"""
System health and version endpoints.

Health checks the database and the business timezone configuration, since a
bad timezone breaks every schedule read.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import RouteSchedule, SessionToken, Store, User
from fieldops.time_utils import resolve_tz, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "stores": db.session.query(Store).count(),
            "route_schedules": db.session.query(RouteSchedule).count(),
            "active_sessions": db.session.query(SessionToken).filter_by(is_revoked=False).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_calendar_health() -> dict:
    name = current_app.config.get("BUSINESS_TIMEZONE")
    try:
        resolve_tz(name)
    except ValueError:
        current_app.logger.exception("Invalid BUSINESS_TIMEZONE %r", name)
        return {"status": "unhealthy", "error": f"Invalid business timezone: {name}"}
    return {
        "status": "healthy",
        "details": {
            "business_timezone": name,
            "window_days": current_app.config.get("VISIT_WINDOW_DAYS"),
        },
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    calendar_health = check_calendar_health()

    unhealthy = any(c["status"] == "unhealthy" for c in (database_health, calendar_health))
    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "calendar": calendar_health,
        }
    }

    return response, 503 if unhealthy else 200


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": current_app.config.get("API_VERSION", "1.0.0"),
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
