# backend/almacen_pos/routes/system.py
"""
System health endpoint.

Checks the database and reports whether the hosted auth settings are present.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Store, Profile, UserRole
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        profile_count = db.session.query(Profile).count()
        role_count = db.session.query(UserRole).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stores": store_count,
                "profiles": profile_count,
                "roles": role_count,
            }
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_auth_config() -> dict:
    missing = [
        key for key in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")
        if not current_app.config.get(key)
    ]
    if missing:
        return {"status": "degraded", "warning": f"Missing settings: {', '.join(missing)}"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable (auth settings may be degraded)
    - 503: database unreachable
    """
    database_health = check_database_health()
    auth_health = check_auth_config()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif auth_health["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
            "auth": auth_health,
        }
    }

    return response, http_status
