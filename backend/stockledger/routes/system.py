# backend/stockledger/routes/system.py
"""
System health, change feed and tenant maintenance endpoints.
"""

import time
from flask import Blueprint, current_app, g, jsonify, request

from ..extensions import db
from ..errors import EngineError
from ..models import Organization
from ..services import activity_service, maintenance_service
from ..services.unit_of_work import context_from_app
from ..decorators import require_tenant
from stockledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    """Check database connectivity with a trivial count."""
    start_time = time.time()
    try:
        org_count = db.session.query(Organization).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"organizations": org_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503


@system_bp.get("/changes")
@require_tenant
def recent_changes():
    """Most recent "table changed" notifications, newest last."""
    broadcaster = current_app.extensions["stockledger.broadcaster"]
    limit = request.args.get("limit", default=50, type=int)
    changes = list(broadcaster.recent)[-max(limit, 0):] if limit else []
    return jsonify({"changes": changes, "count": len(changes)}), 200


@system_bp.get("/activity")
@require_tenant
def activity_feed():
    try:
        entries = activity_service.list_activity(
            g.org_id,
            limit=request.args.get("limit", default=100, type=int),
            customer_id=request.args.get("customer_id", type=int),
        )
        return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
    except Exception:
        current_app.logger.exception("Failed to load activity log")
        return jsonify({"error": "Internal server error"}), 500


@system_bp.post("/clear-data")
@require_tenant
def clear_data():
    """
    Delete every transactional row of the caller's organization.

    Requires {"confirm": true} in the body.
    """
    payload = request.get_json(silent=True) or {}
    if payload.get("confirm") is not True:
        return jsonify({"error": "Confirmation required: send {\"confirm\": true}"}), 400
    try:
        counts = maintenance_service.clear_tenant_data(context_from_app(g.org_id, g.actor_id))
        return jsonify({"ok": True, "deleted": counts}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to clear tenant data")
        return jsonify({"error": "Internal server error"}), 500
