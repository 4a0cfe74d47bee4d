# Overview: Flask API routes for quotations; drafts and conversion into invoices.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..services import quotation_service
from ..services.unit_of_work import context_from_app
from ..validation import json_body, require_int
from ..decorators import require_tenant


quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


@quotations_bp.post("")
@require_tenant
def create_quotation_route():
    """Draft a quotation; same line item shape as invoices, plus expiry_date."""
    try:
        payload = json_body(request)
        quotation = quotation_service.create_quotation(
            context_from_app(g.org_id, g.actor_id),
            customer_id=require_int(payload, "customer_id", minimum=1),
            line_items=payload.get("line_items"),
            issue_date=payload.get("issue_date"),
            expiry_date=payload.get("expiry_date"),
            delivery_charge_cents=require_int(payload, "delivery_charge_cents", minimum=0, default=0),
            discount_cents=require_int(payload, "discount_cents", minimum=0, default=0),
            notes=payload.get("notes"),
        )
        return jsonify({"quotation": quotation.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.get("")
@require_tenant
def list_quotations_route():
    try:
        quotations = quotation_service.list_quotations(g.org_id, status=request.args.get("status"))
        return jsonify({"items": [q.to_dict() for q in quotations], "count": len(quotations)}), 200
    except Exception:
        current_app.logger.exception("Failed to list quotations")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.get("/<int:quotation_id>")
@require_tenant
def get_quotation_route(quotation_id: int):
    try:
        return jsonify({"quotation": quotation_service.get_quotation(g.org_id, quotation_id).to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code


@quotations_bp.put("/<int:quotation_id>")
@require_tenant
def update_quotation_route(quotation_id: int):
    try:
        payload = json_body(request)
        quotation = quotation_service.update_quotation(
            context_from_app(g.org_id, g.actor_id),
            quotation_id,
            line_items=payload.get("line_items"),
            customer_id=require_int(payload, "customer_id", minimum=1, required=False),
            expiry_date=payload.get("expiry_date"),
            delivery_charge_cents=require_int(payload, "delivery_charge_cents", minimum=0, required=False),
            discount_cents=require_int(payload, "discount_cents", minimum=0, required=False),
            notes=payload.get("notes"),
        )
        return jsonify({"quotation": quotation.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.delete("/<int:quotation_id>")
@require_tenant
def delete_quotation_route(quotation_id: int):
    try:
        result = quotation_service.delete_quotation(context_from_app(g.org_id, g.actor_id), quotation_id)
        return jsonify(result), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/convert")
@require_tenant
def convert_quotation_route(quotation_id: int):
    try:
        payload = json_body(request)
        invoice = quotation_service.convert_quotation(
            context_from_app(g.org_id, g.actor_id),
            quotation_id,
            issue_date=payload.get("issue_date"),
        )
        data = invoice.to_dict()
        data["sale"] = invoice.sale.to_dict() if invoice.sale else None
        return jsonify({"invoice": data, "quotation_id": quotation_id}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to convert quotation")
        return jsonify({"error": "Internal server error"}), 500
