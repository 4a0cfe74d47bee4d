# Overview: Flask API routes for repair orders; intake, parts, outcomes.

# backend/stockledger/routes/repairs.py
"""
Repair API Routes

Intake:
- POST /api/repairs                 receipt or free-form repair
- POST /api/repairs/from-damage     internal repair for a damaged-stock entry

Work:
- PUT    /api/repairs/<id>/status              only "In Progress"
- POST   /api/repairs/<id>/items               consume a spare part (FIFO)
- DELETE /api/repairs/<id>/items/<item_id>     give the part back to stock
- PUT    /api/repairs/<id>/items/<item_id>     reprice a part

Outcomes:
- complete, mark-repaired, mark-unrepairable, create-replacement,
  issue-credit, void-warranty
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..services import repair_service
from ..services.unit_of_work import context_from_app
from ..validation import json_body, require_int
from ..decorators import require_tenant


repairs_bp = Blueprint("repairs", __name__, url_prefix="/api/repairs")


def _ctx():
    return context_from_app(g.org_id, g.actor_id)


def _error_response(e: EngineError):
    return jsonify(e.to_dict()), e.status_code


# =============================================================================
# INTAKE
# =============================================================================

@repairs_bp.post("")
@require_tenant
def create_repair_route():
    """
    Request body (receipt):
    {"invoice_id": 3, "sale_item_id": 7, "component_name": "Fan", "reported_problem": "..."}

    Request body (free-form):
    {"customer_id": 2, "product_name": "Laptop", "product_serial_number": "SN1", "reported_problem": "..."}
    """
    try:
        payload = json_body(request)
        repair = repair_service.create_repair(
            _ctx(),
            customer_id=require_int(payload, "customer_id", minimum=1, required=False),
            invoice_id=require_int(payload, "invoice_id", minimum=1, required=False),
            sale_item_id=require_int(payload, "sale_item_id", minimum=1, required=False),
            product_name=payload.get("product_name"),
            component_name=payload.get("component_name"),
            product_serial_number=payload.get("product_serial_number"),
            reported_problem=payload.get("reported_problem"),
            notes=payload.get("notes"),
        )
        return jsonify({"repair": repair.to_dict()}), 201
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create repair")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/from-damage")
@require_tenant
def create_repair_from_damage_route():
    try:
        payload = json_body(request)
        repair = repair_service.create_repair_from_damage(
            _ctx(), require_int(payload, "damage_log_id", minimum=1)
        )
        return jsonify({"repair": repair.to_dict()}), 201
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create repair from damaged stock")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.get("")
@require_tenant
def list_repairs_route():
    try:
        repairs = repair_service.list_repairs(
            g.org_id,
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
        )
        return jsonify({"items": [r.to_dict() for r in repairs], "count": len(repairs)}), 200
    except Exception:
        current_app.logger.exception("Failed to list repairs")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.get("/<int:repair_id>")
@require_tenant
def get_repair_route(repair_id: int):
    try:
        return jsonify({"repair": repair_service.get_repair(g.org_id, repair_id).to_dict()}), 200
    except EngineError as e:
        return _error_response(e)


# =============================================================================
# WORK IN PROGRESS
# =============================================================================

@repairs_bp.put("/<int:repair_id>/status")
@require_tenant
def update_repair_status_route(repair_id: int):
    try:
        payload = json_body(request)
        repair = repair_service.update_repair_status(_ctx(), repair_id, payload.get("status"))
        return jsonify({"repair": repair.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update repair status")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/<int:repair_id>/items")
@require_tenant
def add_repair_item_route(repair_id: int):
    try:
        payload = json_body(request)
        item = repair_service.add_repair_item(
            _ctx(),
            repair_id,
            product_id=require_int(payload, "product_id", minimum=1),
            quantity=require_int(payload, "quantity", minimum=1, default=1),
        )
        return jsonify({"item": item.to_dict()}), 201
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add repair item")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.delete("/<int:repair_id>/items/<int:item_id>")
@require_tenant
def remove_repair_item_route(repair_id: int, item_id: int):
    try:
        result = repair_service.remove_repair_item(_ctx(), repair_id, item_id)
        return jsonify(result), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove repair item")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.put("/<int:repair_id>/items/<int:item_id>")
@require_tenant
def update_repair_item_route(repair_id: int, item_id: int):
    try:
        payload = json_body(request)
        item = repair_service.update_repair_item_price(
            _ctx(), repair_id, item_id, require_int(payload, "unit_price_cents", minimum=0)
        )
        return jsonify({"item": item.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update repair item")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# OUTCOMES
# =============================================================================

@repairs_bp.post("/<int:repair_id>/complete")
@require_tenant
def complete_repair_route(repair_id: int):
    try:
        payload = json_body(request)
        repair = repair_service.complete_repair(
            _ctx(),
            repair_id,
            repair_fee_cents=require_int(payload, "repair_fee_cents", minimum=0, default=0),
            notes=payload.get("notes"),
        )
        return jsonify({"repair": repair.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete repair")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/<int:repair_id>/mark-repaired")
@require_tenant
def mark_repaired_route(repair_id: int):
    try:
        repair = repair_service.mark_repaired(_ctx(), repair_id)
        return jsonify({"repair": repair.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark repair repaired")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/<int:repair_id>/mark-unrepairable")
@require_tenant
def mark_unrepairable_route(repair_id: int):
    try:
        repair = repair_service.mark_unrepairable(_ctx(), repair_id)
        return jsonify({"repair": repair.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark repair unrepairable")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/<int:repair_id>/void-warranty")
@require_tenant
def void_warranty_route(repair_id: int):
    try:
        payload = json_body(request)
        repair = repair_service.void_warranty(_ctx(), repair_id, payload.get("reason"))
        return jsonify({"repair": repair.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void warranty")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/<int:repair_id>/create-replacement")
@require_tenant
def create_replacement_route(repair_id: int):
    try:
        payload = json_body(request)
        invoice = repair_service.create_replacement(
            _ctx(),
            repair_id,
            product_id=require_int(payload, "product_id", minimum=1),
            quantity=require_int(payload, "quantity", minimum=1, default=1),
            unit_price_cents=require_int(payload, "unit_price_cents", minimum=0, required=False),
            notes=payload.get("notes"),
        )
        repair = repair_service.get_repair(g.org_id, repair_id)
        return jsonify({"repair": repair.to_dict(), "invoice": invoice.to_dict()}), 201
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create replacement")
        return jsonify({"error": "Internal server error"}), 500


@repairs_bp.post("/<int:repair_id>/issue-credit")
@require_tenant
def issue_credit_route(repair_id: int):
    try:
        payload = json_body(request)
        repair = repair_service.issue_credit(
            _ctx(),
            repair_id,
            amount_cents=require_int(payload, "amount_cents", minimum=1),
            notes=payload.get("notes"),
        )
        return jsonify({"repair": repair.to_dict()}), 200
    except EngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue repair credit")
        return jsonify({"error": "Internal server error"}), 500
