# Overview: Flask API routes for the damaged stock log.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..services import inventory_service
from ..services.unit_of_work import context_from_app
from ..validation import json_body, require_int
from ..decorators import require_tenant


damaged_stock_bp = Blueprint("damaged_stock", __name__, url_prefix="/api/damaged-stock")


@damaged_stock_bp.post("")
@require_tenant
def log_damaged_stock_route():
    """
    Take damaged units out of sellable stock.

    Request body:
    {"product_id": 4, "quantity": 1, "notes": "Cracked screen"}
    """
    try:
        payload = json_body(request)
        entry = inventory_service.log_damaged_stock(
            context_from_app(g.org_id, g.actor_id),
            product_id=require_int(payload, "product_id", minimum=1),
            quantity=require_int(payload, "quantity", minimum=1, default=1),
            notes=payload.get("notes"),
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to log damaged stock")
        return jsonify({"error": "Internal server error"}), 500


@damaged_stock_bp.get("")
@require_tenant
def list_damaged_stock_route():
    try:
        entries = inventory_service.list_damaged_stock(g.org_id, status=request.args.get("status"))
        return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
    except Exception:
        current_app.logger.exception("Failed to list damaged stock")
        return jsonify({"error": "Internal server error"}), 500
