# backend/storefront/routes/system.py
"""
System health endpoint.

Reports which catalog source is configured, which one answered last, whether
reads are currently degraded to the static fallback, and the admin layer's
in-memory counters.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..services.catalog_service import get_catalog
from ..state import get_admin_state
from storefront.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_catalog_health() -> dict:
    """
    Probe the remote catalog if one is configured.

    Returns dict with status and details.
    """
    catalog = get_catalog()
    details = catalog.health.to_dict()

    if catalog.remote is None:
        return {"status": "static", "details": details}

    start_time = time.time()
    try:
        product_count = catalog.remote.ping()
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.warning("Catalog database health check failed", exc_info=True)
        return {
            "status": "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Catalog database unreachable; serving static catalog",
            "details": details,
        }

    elapsed_ms = (time.time() - start_time) * 1000
    details["product_rows"] = product_count
    return {
        "status": "degraded" if details["degraded"] else "healthy",
        "latency_ms": round(elapsed_ms, 2),
        "details": details,
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Always 200 while the process can answer; a degraded catalog still serves
    static data.
    """
    start_time = time.time()
    catalog_health = check_catalog_health()
    total_elapsed_ms = (time.time() - start_time) * 1000

    overall = "degraded" if catalog_health["status"] == "degraded" else "healthy"
    return {
        "status": overall,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "catalog": catalog_health,
            "admin": get_admin_state().counters(),
        },
    }
