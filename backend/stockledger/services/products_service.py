# Overview: Service-layer operations for products and bundle composition.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import BundleComponent, Product
from ..models.inventory import PRODUCT_TYPE_BUNDLE, PRODUCT_TYPE_STANDARD, WARRANTY_UNITS
from .unit_of_work import WorkflowContext, run_workflow


def get_product(org_id: int, product_id: int) -> Product:
    """Tenant-scoped product lookup; a foreign product is indistinguishable from a missing one."""
    product = db.session.query(Product).filter_by(id=product_id, org_id=org_id).first()
    if not product:
        raise NotFound(f"Product {product_id} not found")
    return product


def find_product_by_name(org_id: int, name: str) -> Product | None:
    return db.session.query(Product).filter_by(org_id=org_id, name=name).order_by(Product.id).first()


def list_products(org_id: int, *, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product).filter_by(org_id=org_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Product.name, Product.id).all()


def _validate_warranty(value, unit):
    if value is None:
        return None, None
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError("warranty_period_value must be a non-negative integer")
    unit = unit or "Days"
    if unit not in WARRANTY_UNITS:
        raise ValidationError(f"warranty_period_unit must be one of {', '.join(WARRANTY_UNITS)}")
    return value, unit


def create_product(
    *,
    org_id: int,
    sku: str,
    name: str,
    price_cents: int = 0,
    product_type: str = PRODUCT_TYPE_STANDARD,
    description: str | None = None,
    warranty_period_value: int | None = None,
    warranty_period_unit: str | None = None,
) -> Product:
    """Create a product. Flushes; the caller commits."""
    if not sku or not str(sku).strip():
        raise ValidationError("sku is required")
    if not name or not str(name).strip():
        raise ValidationError("name is required")
    if product_type not in (PRODUCT_TYPE_STANDARD, PRODUCT_TYPE_BUNDLE):
        raise ValidationError("product_type must be 'standard' or 'bundle'")
    if not isinstance(price_cents, int) or isinstance(price_cents, bool) or price_cents < 0:
        raise ValidationError("price_cents must be a non-negative integer")

    sku = str(sku).strip()
    if db.session.query(Product).filter_by(org_id=org_id, sku=sku).first():
        raise ValidationError(f"SKU {sku} already exists")

    warranty_value, warranty_unit = _validate_warranty(warranty_period_value, warranty_period_unit)

    product = Product(
        org_id=org_id,
        sku=sku,
        name=str(name).strip(),
        description=description,
        price_cents=price_cents,
        product_type=product_type,
        warranty_period_value=warranty_value,
        warranty_period_unit=warranty_unit,
    )
    db.session.add(product)
    db.session.flush()
    return product


def set_bundle_components(*, org_id: int, bundle_id: int, components: list[dict]) -> Product:
    """
    Replace a bundle's component list.

    Components must be distinct standard products of the same tenant, each
    with a positive per-bundle quantity. Bundles cannot nest.
    """
    bundle = get_product(org_id, bundle_id)
    if not bundle.is_bundle:
        raise ValidationError(f"Product {bundle.name} is not a bundle")
    if not components:
        raise ValidationError("A bundle needs at least one component")

    seen: set[int] = set()
    resolved = []
    for position, raw in enumerate(components):
        sub_id = raw.get("sub_product_id")
        qty = raw.get("quantity")
        if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
            raise ValidationError("Component quantity must be a positive integer")
        if sub_id == bundle.id:
            raise ValidationError("A bundle cannot contain itself")
        if sub_id in seen:
            raise ValidationError(f"Component {sub_id} listed twice")
        sub = get_product(org_id, sub_id)
        if sub.is_bundle:
            raise ValidationError(f"Component {sub.name} is a bundle; bundles cannot nest")
        seen.add(sub_id)
        resolved.append(BundleComponent(sub_product_id=sub.id, quantity=qty, position=position))

    bundle.components.clear()
    db.session.flush()
    bundle.components.extend(resolved)
    db.session.flush()
    return bundle


def add_product(ctx: WorkflowContext, **fields) -> Product:
    """create_product as its own unit of work."""
    return run_workflow(
        ctx,
        "create_product",
        lambda: create_product(org_id=ctx.tenant_id, **fields),
        tables=("products",),
    )


def define_bundle(ctx: WorkflowContext, bundle_id: int, components: list[dict]) -> Product:
    return run_workflow(
        ctx,
        "set_bundle_components",
        lambda: set_bundle_components(org_id=ctx.tenant_id, bundle_id=bundle_id, components=components),
        tables=("products",),
    )
