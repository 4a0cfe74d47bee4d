# Overview: Flask API routes for customers and their ledger statements.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..models import Customer
from ..services import customer_service, ledger_service
from ..services.unit_of_work import context_from_app
from ..validation import ModelValidationPolicy, validate_payload, json_body
from ..decorators import require_tenant

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@require_tenant
def create_customer_route():
    try:
        patch = validate_payload(model=Customer, payload=json_body(request), policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.register_customer(context_from_app(g.org_id, g.actor_id), **patch)
        return jsonify(customer.to_dict()), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("")
@require_tenant
def list_customers_route():
    try:
        customers = customer_service.list_customers(g.org_id)
        return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_tenant
def get_customer_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer(g.org_id, customer_id).to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>/transactions")
@require_tenant
def customer_transactions_route(customer_id: int):
    """Ledger statement: every debit/credit of the customer, oldest first."""
    try:
        transactions = ledger_service.customer_statement(customer_id, g.org_id)
        customer = customer_service.get_customer(g.org_id, customer_id)
        return jsonify({
            "customer_id": customer.id,
            "balance_cents": customer.balance_cents,
            "transactions": [tx.to_dict() for tx in transactions],
        }), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer transactions")
        return jsonify({"error": "Internal server error"}), 500
