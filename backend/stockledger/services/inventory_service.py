# Overview: Service-layer operations for inventory lots; FIFO deduction, restock, purchases and damaged stock.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStock, NotFound, ReversalConflict, ValidationError
from ..models import DamagedStockLog, InventoryLot, Product
from ..models.inventory import (
    DAMAGE_STATUS_DAMAGED,
    LOT_SOURCE_PURCHASE,
)
from .activity_service import log_activity
from .concurrency import lock_for_update
from .line_items import BundleLineItem, LineItem, StandardLineItem, stock_requirements
from .lot_allocator import Allocation, LotSnapshot, allocate_fifo, max_bundle_quantity
from .products_service import get_product
from .unit_of_work import WorkflowContext, run_workflow
from stockledger.time_utils import parse_iso_datetime, utcnow

"""
Inventory lot invariants (authoritative)

- Stock is held in InventoryLot rows of standard products only; a bundle's
  stock is derived from its components.
- Available stock of a product = SUM(quantity_remaining) over its lots.
- 0 <= quantity_remaining <= quantity_purchased for every lot (also a DB check).
- Consumption is FIFO: oldest purchase_date first, lot id breaks ties.
- Every multi-line request is checked in full before the first lot changes.
- Restock never tops up an old lot; it creates a new synthetic lot.
"""


STOCK_TABLES = ("inventory_lots", "products")


def available_stock(product_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(InventoryLot.quantity_remaining), 0))
        .filter(InventoryLot.product_id == product_id)
        .scalar()
    )
    return int(total or 0)


def bundle_max_sellable(bundle: Product) -> int:
    """min over components of floor(component stock / quantity per bundle)."""
    return max_bundle_quantity(
        (available_stock(c.sub_product_id), c.quantity) for c in bundle.components
    )


def product_stock(product: Product) -> int:
    if product.is_bundle:
        return bundle_max_sellable(product)
    return available_stock(product.id)


def stock_summary(org_id: int) -> list[dict]:
    """Per-product stock figures for listings and the CLI."""
    rows = []
    for product in (
        db.session.query(Product).filter_by(org_id=org_id).order_by(Product.name, Product.id).all()
    ):
        rows.append({
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "product_type": product.product_type,
            "available": product_stock(product),
        })
    return rows


def list_lots(org_id: int, product_id: int) -> list[InventoryLot]:
    get_product(org_id, product_id)
    return (
        db.session.query(InventoryLot)
        .filter_by(org_id=org_id, product_id=product_id)
        .order_by(InventoryLot.purchase_date, InventoryLot.id)
        .all()
    )


def _product_name(product_id: int) -> str | None:
    product = db.session.get(Product, product_id)
    return product.name if product else None


def ensure_available(items: Iterable[LineItem]) -> dict[int, int]:
    """
    Check stock for a whole request before anything is deducted.

    Each line is checked on its own first (bundle lines against the bundle's
    max sellable quantity) so the error names the product the caller asked
    for. Then the summed per-product requirement is checked, which catches
    two lines competing for the same component. Returns that requirement.
    """
    items = list(items)
    for item in items:
        if isinstance(item, BundleLineItem):
            capacity = max_bundle_quantity(
                (available_stock(c.sub_product_id), c.quantity) for c in item.components
            )
            if capacity < item.quantity:
                raise InsufficientStock(item.product_id, item.quantity, capacity, product_name=item.description)
        elif isinstance(item, StandardLineItem):
            stock = available_stock(item.product_id)
            if stock < item.quantity:
                raise InsufficientStock(item.product_id, item.quantity, stock, product_name=item.description)

    required = stock_requirements(items)
    ensure_quantities(required)
    return required


def ensure_quantities(required: Mapping[int, int]) -> None:
    for product_id, quantity in sorted(required.items()):
        stock = available_stock(product_id)
        if stock < quantity:
            raise InsufficientStock(product_id, quantity, stock, product_name=_product_name(product_id))


def _locked_lots(product_id: int) -> list[InventoryLot]:
    query = (
        db.session.query(InventoryLot)
        .filter(InventoryLot.product_id == product_id, InventoryLot.quantity_remaining > 0)
        .order_by(InventoryLot.purchase_date, InventoryLot.id)
    )
    return lock_for_update(query).populate_existing().all()


def deduct(product_id: int, quantity: int) -> Allocation:
    """
    Consume `quantity` units FIFO. Raises InsufficientStock without touching
    any lot when the lots cannot cover the request.
    """
    if quantity <= 0:
        raise ValidationError("quantity must be positive")

    lots = _locked_lots(product_id)
    allocation = allocate_fifo(
        [LotSnapshot(lot.id, lot.quantity_remaining, lot.unit_cost_cents, lot.purchase_date) for lot in lots],
        quantity,
    )
    if not allocation.fulfilled:
        raise InsufficientStock(product_id, quantity, allocation.allocated, product_name=_product_name(product_id))

    by_id = {lot.id: lot for lot in lots}
    for draw in allocation.draws:
        by_id[draw.lot_id].quantity_remaining -= draw.quantity
    db.session.flush()
    return allocation


def deduct_line_items(items: Iterable[LineItem]) -> dict[int, Allocation]:
    items = list(items)
    required = ensure_available(items)
    return {product_id: deduct(product_id, qty) for product_id, qty in sorted(required.items()) if qty > 0}


def restock(
    *,
    org_id: int,
    product_id: int,
    quantity: int,
    unit_cost_cents: int = 0,
    source: str,
    note: str | None = None,
    return_id: int | None = None,
    repair_id: int | None = None,
    actor_id: int | None = None,
    purchase_date: datetime | None = None,
) -> InventoryLot:
    """Put units back as a new synthetic lot."""
    if quantity <= 0:
        raise ValidationError("quantity must be positive")
    if unit_cost_cents < 0:
        raise ValidationError("unit_cost_cents must be >= 0")

    product = get_product(org_id, product_id)
    if product.is_bundle:
        raise ValidationError(f"Cannot hold stock for bundle {product.name}; restock its components")

    lot = InventoryLot(
        org_id=org_id,
        product_id=product_id,
        purchase_date=purchase_date or utcnow(),
        quantity_purchased=quantity,
        quantity_remaining=quantity,
        unit_cost_cents=unit_cost_cents,
        source=source,
        note=note,
        return_id=return_id,
        repair_id=repair_id,
        created_by_actor_id=actor_id,
    )
    db.session.add(lot)
    db.session.flush()
    return lot


def restock_line(
    *,
    org_id: int,
    product_id: int | None,
    kind: str,
    quantity: int,
    unit_price_cents: int,
    components: Iterable = (),
    source: str,
    note: str | None = None,
    return_id: int | None = None,
    actor_id: int | None = None,
) -> list[InventoryLot]:
    """
    Restock `quantity` units of one sold line.

    Standard lines come back at their unit price; bundle lines restock each
    component (quantity per bundle * quantity) at zero cost; custom lines
    have no stock and are skipped.
    """
    if product_id is None:
        return []
    if kind == BundleLineItem.kind:
        return [
            restock(
                org_id=org_id,
                product_id=comp.sub_product_id,
                quantity=comp.quantity * quantity,
                unit_cost_cents=0,
                source=source,
                note=note,
                return_id=return_id,
                actor_id=actor_id,
            )
            for comp in components
        ]
    if kind == StandardLineItem.kind:
        return [
            restock(
                org_id=org_id,
                product_id=product_id,
                quantity=quantity,
                unit_cost_cents=unit_price_cents,
                source=source,
                note=note,
                return_id=return_id,
                actor_id=actor_id,
            )
        ]
    return []


def withdraw_return_stock(return_id: int, required: Mapping[int, int]) -> None:
    """
    Take back the units a return restocked, from the lots it created.

    Every product is checked before any lot changes: if the return's lots no
    longer hold the full quantity (units were resold), the reversal is
    refused with ReversalConflict.
    """
    lots_by_product: dict[int, list[InventoryLot]] = {}
    for product_id, quantity in sorted(required.items()):
        lots = lock_for_update(
            db.session.query(InventoryLot)
            .filter(InventoryLot.return_id == return_id, InventoryLot.product_id == product_id)
            .order_by(InventoryLot.id)
        ).populate_existing().all()
        if not lots:
            raise ReversalConflict(
                f"Restock lot for return {return_id} not found for product {product_id}",
                details={"return_id": return_id, "product_id": product_id},
            )
        remaining = sum(lot.quantity_remaining for lot in lots)
        if remaining < quantity:
            raise ReversalConflict(
                f"Cannot reverse return {return_id}: {quantity - remaining} of {quantity} restocked "
                f"unit(s) of {_product_name(product_id) or product_id} were already sold",
                details={
                    "return_id": return_id,
                    "product_id": product_id,
                    "restocked": quantity,
                    "remaining": remaining,
                },
            )
        lots_by_product[product_id] = lots

    for product_id, lots in lots_by_product.items():
        still_needed = required[product_id]
        for lot in lots:
            take = min(lot.quantity_remaining, still_needed)
            lot.quantity_remaining -= take
            still_needed -= take
            lot.return_id = None
    db.session.flush()


def verify_stock(org_id: int | None = None) -> list[dict]:
    """Lots outside 0 <= remaining <= purchased, and lots held by bundles."""
    query = db.session.query(InventoryLot).join(Product, Product.id == InventoryLot.product_id)
    if org_id:
        query = query.filter(InventoryLot.org_id == org_id)

    problems = []
    for lot in query.order_by(InventoryLot.id).all():
        if lot.quantity_remaining < 0 or lot.quantity_remaining > lot.quantity_purchased:
            problems.append({"lot_id": lot.id, "product_id": lot.product_id, "problem": "remaining out of bounds"})
        elif lot.product.is_bundle:
            problems.append({"lot_id": lot.id, "product_id": lot.product_id, "problem": "lot held by bundle"})
    return problems


def receive_purchase(
    ctx: WorkflowContext,
    *,
    product_id: int,
    quantity: int,
    unit_cost_cents: int = 0,
    purchase_date=None,
    supplier: str | None = None,
    note: str | None = None,
) -> InventoryLot:
    """Record a purchase batch as a new lot."""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if not isinstance(unit_cost_cents, int) or isinstance(unit_cost_cents, bool) or unit_cost_cents < 0:
        raise ValidationError("unit_cost_cents must be a non-negative integer")
    try:
        purchased_at = parse_iso_datetime(purchase_date) or utcnow()
    except ValueError:
        raise ValidationError("purchase_date must be an ISO-8601 date")

    def _op() -> InventoryLot:
        product = get_product(ctx.tenant_id, product_id)
        if product.is_bundle:
            raise ValidationError("Bundles cannot be purchased; purchase their components")

        lot = restock(
            org_id=ctx.tenant_id,
            product_id=product.id,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            source=LOT_SOURCE_PURCHASE,
            note=note,
            actor_id=ctx.actor_id,
            purchase_date=purchased_at,
        )
        lot.supplier = supplier
        log_activity(
            org_id=ctx.tenant_id,
            event_type="purchase_received",
            message=f"Received {quantity} x {product.name}",
            actor_id=ctx.actor_id,
            details={"lot_id": lot.id, "unit_cost_cents": unit_cost_cents},
        )
        return lot

    return run_workflow(ctx, "receive_purchase", _op, tables=STOCK_TABLES + ("activity_log",))


def get_damage_log(org_id: int, log_id: int) -> DamagedStockLog:
    entry = db.session.query(DamagedStockLog).filter_by(id=log_id, org_id=org_id).first()
    if not entry:
        raise NotFound(f"Damaged stock entry {log_id} not found")
    return entry


def list_damaged_stock(org_id: int, *, status: str | None = None) -> list[DamagedStockLog]:
    query = db.session.query(DamagedStockLog).filter_by(org_id=org_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(DamagedStockLog.logged_at.desc(), DamagedStockLog.id.desc()).all()


def log_damaged_stock(
    ctx: WorkflowContext,
    *,
    product_id: int,
    quantity: int = 1,
    notes: str | None = None,
) -> DamagedStockLog:
    """Remove damaged units from sellable stock (FIFO) and record them."""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    def _op() -> DamagedStockLog:
        product = get_product(ctx.tenant_id, product_id)
        if product.is_bundle:
            raise ValidationError("Log damaged components, not bundles")

        deduct(product.id, quantity)
        entry = DamagedStockLog(
            org_id=ctx.tenant_id,
            product_id=product.id,
            quantity=quantity,
            notes=notes,
            status=DAMAGE_STATUS_DAMAGED,
            logged_by_actor_id=ctx.actor_id,
            logged_at=utcnow(),
        )
        db.session.add(entry)
        db.session.flush()
        log_activity(
            org_id=ctx.tenant_id,
            event_type="stock_damaged",
            message=f"Logged {quantity} x {product.name} as damaged",
            actor_id=ctx.actor_id,
            details={"damage_log_id": entry.id},
        )
        return entry

    return run_workflow(ctx, "log_damaged_stock", _op, tables=STOCK_TABLES + ("damaged_stock_log", "activity_log"))
