# backend/storefront/routes/system.py
"""
System health endpoint.

Reports database reachability and basic row counts for deployment checks.
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..models import Order, Product, User
from storefront.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial query and table counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        details = {
            "users": db.session.query(User).count(),
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "success": healthy,
        "status": "OK" if healthy else "DEGRADED",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503
