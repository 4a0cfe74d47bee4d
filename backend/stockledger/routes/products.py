# Overview: Flask API routes for products, bundles, purchases and lots.

# backend/stockledger/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: All product operations are scoped to the caller's organization
(g.org_id, set by @require_tenant).
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..models import Product
from ..services import inventory_service, products_service
from ..services.unit_of_work import context_from_app
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    json_body,
    require_int,
)
from ..decorators import require_tenant

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "price_cents",
        "product_type",
        "warranty_period_value",
        "warranty_period_unit",
    },
    required_on_create={"sku", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_tenant
def list_products_route():
    """List active products with their available stock (bundles: max sellable)."""
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    try:
        products = products_service.list_products(g.org_id, include_inactive=include_inactive)
        items = []
        for product in products:
            data = product.to_dict()
            data["stock"] = inventory_service.product_stock(product)
            items.append(data)
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_tenant
def create_product_route():
    try:
        patch = validate_payload(model=Product, payload=json_body(request), policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.add_product(context_from_app(g.org_id, g.actor_id), **patch)
        return jsonify(product.to_dict()), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/components")
@require_tenant
def set_components_route(product_id: int):
    """
    Replace the component list of a bundle.

    Request body:
    {
        "components": [{"sub_product_id": 3, "quantity": 2}, ...]
    }
    """
    try:
        payload = json_body(request)
        components = payload.get("components")
        if not isinstance(components, list):
            return jsonify({"error": "components must be a list"}), 400
        bundle = products_service.define_bundle(context_from_app(g.org_id, g.actor_id), product_id, components)
        return jsonify(bundle.to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set bundle components")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/purchases")
@require_tenant
def receive_purchase_route(product_id: int):
    """
    Receive a purchase batch as a new inventory lot.

    Request body:
    {
        "quantity": 10,
        "unit_cost_cents": 450,
        "purchase_date": "2026-01-05T00:00:00Z",  (optional, default: now)
        "supplier": "Acme Wholesale",  (optional)
        "note": "PO 1182"  (optional)
    }
    """
    try:
        payload = json_body(request)
        lot = inventory_service.receive_purchase(
            context_from_app(g.org_id, g.actor_id),
            product_id=product_id,
            quantity=require_int(payload, "quantity", minimum=1),
            unit_cost_cents=require_int(payload, "unit_cost_cents", minimum=0, default=0),
            purchase_date=payload.get("purchase_date"),
            supplier=payload.get("supplier"),
            note=payload.get("note"),
        )
        return jsonify(lot.to_dict()), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/lots")
@require_tenant
def list_lots_route(product_id: int):
    try:
        product = products_service.get_product(g.org_id, product_id)
        lots = inventory_service.list_lots(g.org_id, product.id)
        return jsonify({
            "product_id": product.id,
            "available": inventory_service.product_stock(product),
            "lots": [lot.to_dict() for lot in lots],
        }), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list lots")
        return jsonify({"error": "Internal server error"}), 500
