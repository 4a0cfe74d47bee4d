# Overview: Flask API routes for invoices and invoice payments.

# backend/stockledger/routes/invoices.py
"""
Invoice API Routes

- Create an invoice from line items (stock deducted FIFO, customer debited)
- Delete an invoice (stock restocked, linked ledger entries reversed)
- Receive payments against an invoice

Responses include the backing sale so callers know the sale item ids a
return must reference.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..services import invoice_service, payment_service
from ..services.unit_of_work import context_from_app
from ..validation import json_body, require_int
from ..decorators import require_tenant


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _invoice_payload(invoice) -> dict:
    data = invoice.to_dict()
    data["sale"] = invoice.sale.to_dict() if invoice.sale else None
    return data


@invoices_bp.post("")
@require_tenant
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "customer_id": 1,
        "line_items": [
            {"product_id": 4, "quantity": 2},
            {"product_id": 9, "quantity": 1, "unit_price_cents": 1500},
            {"description": "Delivery setup", "quantity": 1, "unit_price_cents": 2000}
        ],
        "issue_date": "2026-03-01T00:00:00Z",  (optional)
        "due_date": "2026-03-31T00:00:00Z",  (optional, default: tenant setting)
        "delivery_charge_cents": 0,  (optional)
        "discount_cents": 0,  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Invoice created
        400: Invalid input
        404: Customer or product not found
        409: Insufficient stock
    """
    try:
        payload = json_body(request)
        invoice = invoice_service.create_invoice(
            context_from_app(g.org_id, g.actor_id),
            customer_id=require_int(payload, "customer_id", minimum=1),
            line_items=payload.get("line_items"),
            issue_date=payload.get("issue_date"),
            due_date=payload.get("due_date"),
            delivery_charge_cents=require_int(payload, "delivery_charge_cents", minimum=0, default=0),
            discount_cents=require_int(payload, "discount_cents", minimum=0, default=0),
            notes=payload.get("notes"),
        )
        return jsonify({"invoice": _invoice_payload(invoice)}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("")
@require_tenant
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(
            g.org_id,
            customer_id=request.args.get("customer_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"items": [i.to_dict(include_lines=False) for i in invoices], "count": len(invoices)}), 200
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
@require_tenant
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.org_id, invoice_id)
        return jsonify({"invoice": _invoice_payload(invoice)}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
@require_tenant
def delete_invoice_route(invoice_id: int):
    """
    Delete an invoice and undo its effects.

    Returns:
        200: Deleted; body lists restocked lots and reversed transactions
        404: Invoice not found
        409: Returns exist against the invoice
    """
    try:
        result = invoice_service.delete_invoice(context_from_app(g.org_id, g.actor_id), invoice_id)
        return jsonify(result), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/payment")
@require_tenant
def receive_payment_route(invoice_id: int):
    """
    Record one or more payments.

    Request body:
    {
        "payments": [{"amount_cents": 5000, "method": "Cash"}, ...],
        "paid_at": "2026-03-02T10:00:00Z"  (optional)
    }

    A single {"amount_cents": ..., "method": ...} body is accepted as well.
    """
    try:
        payload = json_body(request)
        payments = payload.get("payments")
        if payments is None and "amount_cents" in payload:
            payments = [{"amount_cents": payload.get("amount_cents"), "method": payload.get("method")}]
        result = payment_service.receive_payment(
            context_from_app(g.org_id, g.actor_id),
            invoice_id,
            payments,
            paid_at=payload.get("paid_at"),
        )
        return jsonify(result), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
