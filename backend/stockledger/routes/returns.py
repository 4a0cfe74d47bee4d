# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/stockledger/routes/returns.py
"""
Return Processing API Routes

- Create a return against an invoice's sale items (optionally restocking)
- Settle the refund through payment methods; "Credits" leaves store credit
- Delete a return while none of its restocked units were resold
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..services import return_service
from ..services.unit_of_work import context_from_app
from ..validation import json_body, require_int
from ..decorators import require_tenant


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_tenant
def create_return_route():
    """
    Create a return.

    Request body:
    {
        "invoice_id": 12,
        "items": [{"sale_item_id": 31, "quantity": 1}],
        "payments": [{"amount_cents": 2500, "method": "Cash"}],  (optional)
        "expenses": [{"description": "Restocking fee", "amount_cents": 500}],  (optional)
        "restock_items": true,  (optional, default: true)
        "delivery_charge_refund_cents": 0,  (optional)
        "notes": "...",  (optional)
        "return_date": "2026-03-05T00:00:00Z"  (optional)
    }

    Returns:
        201: Return created
        400: Invalid input or quantity exceeds what remains returnable
        404: Invoice not found
        409: Item does not belong to the invoice's sale
    """
    try:
        payload = json_body(request)
        restock_items = payload.get("restock_items", True)
        if not isinstance(restock_items, bool):
            return jsonify({"error": "restock_items must be a boolean"}), 400

        ret = return_service.create_return(
            context_from_app(g.org_id, g.actor_id),
            invoice_id=require_int(payload, "invoice_id", minimum=1),
            items=payload.get("items"),
            payments=payload.get("payments"),
            expenses=payload.get("expenses"),
            restock_items=restock_items,
            delivery_charge_refund_cents=require_int(payload, "delivery_charge_refund_cents", minimum=0, default=0),
            notes=payload.get("notes"),
            return_date=payload.get("return_date"),
        )
        return jsonify({"return": ret.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
@require_tenant
def list_returns_route():
    try:
        returns = return_service.list_returns(g.org_id, invoice_id=request.args.get("invoice_id", type=int))
        return jsonify({"items": [r.to_dict() for r in returns], "count": len(returns)}), 200
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
@require_tenant
def get_return_route(return_id: int):
    try:
        return jsonify({"return": return_service.get_return(g.org_id, return_id).to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.delete("/<int:return_id>")
@require_tenant
def delete_return_route(return_id: int):
    """
    Delete a return.

    Returns:
        200: Deleted
        404: Return not found
        409: Restocked units were already sold again
    """
    try:
        result = return_service.delete_return(context_from_app(g.org_id, g.actor_id), return_id)
        return jsonify(result), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete return")
        return jsonify({"error": "Internal server error"}), 500
