# Overview: Service-layer operations for repair orders; intake, parts, and the terminal outcomes.

"""
Repair lifecycle

    Received -> In Progress -> Completed | Completed (Replaced) | Completed (Credit)
                            -> Repaired        (internal repairs only)
                            -> Unrepairable    (from In Progress only)

- A customer repair comes in from a receipt (invoice + sold item, with the
  warranty evaluated at intake) or free-form.
- An internal repair works on a damaged-stock entry and is filed under the
  tenant's "Internal" customer. It can only end as Repaired or Unrepairable.
- Parts are consumed FIFO when added and restocked when removed, so
  completing a repair never deducts them again.
- Terminal statuses accept no further changes.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import AlreadyProcessed, NotFound, OwnershipMismatch, ValidationError
from ..models import DamagedStockLog, Invoice, Repair, RepairItem, SaleItem
from ..models.customers import TRANSACTION_CREDIT
from ..models.inventory import (
    DAMAGE_STATUS_IN_REPAIR,
    DAMAGE_STATUS_REPAIRED,
    DAMAGE_STATUS_UNREPAIRABLE,
    LOT_SOURCE_REPAIR_PART,
    LOT_SOURCE_REPAIRED,
)
from ..models.repairs import (
    REPAIR_STATUS_COMPLETED,
    REPAIR_STATUS_CREDITED,
    REPAIR_STATUS_IN_PROGRESS,
    REPAIR_STATUS_RECEIVED,
    REPAIR_STATUS_REPAIRED,
    REPAIR_STATUS_REPLACED,
    REPAIR_STATUS_UNREPAIRABLE,
)
from ..models.sales import INVOICE_SOURCE_REPAIR, INVOICE_SOURCE_REPLACEMENT, INVOICE_STATUS_PAID
from .activity_service import log_activity
from .customer_service import get_customer, get_or_create_internal_customer
from .document_service import DOC_REPAIR, next_document_number
from .inventory_service import deduct, get_damage_log, restock
from .invoice_service import INVOICE_TABLES, get_invoice, issue_invoice
from .ledger_service import record_transaction
from .line_items import build_custom_line, build_product_line
from .products_service import find_product_by_name, get_product
from .unit_of_work import WorkflowContext, run_workflow
from .warranty_service import is_under_warranty
from stockledger.time_utils import utcnow


REPAIR_TABLES = ("repairs", "activity_log")
PART_TABLES = ("repairs", "inventory_lots", "products", "activity_log")


def get_repair(org_id: int, repair_id: int) -> Repair:
    repair = db.session.query(Repair).filter_by(id=repair_id, org_id=org_id).first()
    if not repair:
        raise NotFound(f"Repair order {repair_id} not found")
    return repair


def list_repairs(org_id: int, *, status: str | None = None, customer_id: int | None = None) -> list[Repair]:
    query = db.session.query(Repair).filter_by(org_id=org_id)
    if status:
        query = query.filter_by(status=status)
    if customer_id:
        query = query.filter_by(customer_id=customer_id)
    return query.order_by(Repair.received_date.desc(), Repair.id.desc()).all()


def _require_open(repair: Repair) -> None:
    if repair.is_terminal:
        raise ValidationError(
            f"Repair {repair.repair_number} is {repair.status} and cannot be changed",
            details={"status": repair.status},
        )


def _require_customer_repair(repair: Repair) -> None:
    if repair.is_internal:
        raise ValidationError(
            "This action is not valid for internal repairs. Use 'Mark as Repaired' instead."
        )


def _positive_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{label} must be a positive integer")
    return value


def _non_negative_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{label} must be a non-negative integer")
    return value


def _receipt_intake(org_id: int, invoice_id: int, sale_item_id: int, component_name: str | None):
    """Product name, warranty flag and links for a repair opened from a receipt."""
    invoice = get_invoice(org_id, invoice_id)
    sale_item = db.session.get(SaleItem, sale_item_id)
    if sale_item is None or invoice.sale is None or sale_item.sale_id != invoice.sale.id:
        raise OwnershipMismatch(
            f"Item {sale_item_id} not found in receipt {invoice.invoice_number}",
            details={"invoice_id": invoice.id, "sale_item_id": sale_item_id},
        )

    name = sale_item.description
    if component_name:
        name = f"{name} ({component_name})"

    line = sale_item.line_item
    under_warranty = bool(line) and is_under_warranty(
        invoice.issue_date,
        line.warranty_period_value,
        line.warranty_period_unit,
        utcnow(),
    )
    return invoice, sale_item, name, under_warranty


def create_repair(
    ctx: WorkflowContext,
    *,
    customer_id: int | None = None,
    invoice_id: int | None = None,
    sale_item_id: int | None = None,
    product_name: str | None = None,
    component_name: str | None = None,
    product_serial_number: str | None = None,
    reported_problem: str | None = None,
    notes: str | None = None,
) -> Repair:
    """
    Open a repair order.

    With invoice_id + sale_item_id the repair is for an item on that receipt:
    the customer and product name come from it and the warranty is checked
    against the line's warranty period. Otherwise product_name and
    customer_id are required.
    """
    from_receipt = invoice_id is not None or sale_item_id is not None
    if from_receipt and (invoice_id is None or sale_item_id is None):
        raise ValidationError("invoice_id and sale_item_id are both required for a receipt repair")
    if not from_receipt and not (product_name or "").strip():
        raise ValidationError("product_name is required")
    if not from_receipt and customer_id is None:
        raise ValidationError("customer_id is required")

    def _op() -> Repair:
        original_invoice_id = None
        original_sale_item_id = None
        is_warranty = False
        name = (product_name or "").strip()

        if from_receipt:
            invoice, sale_item, name, is_warranty = _receipt_intake(
                ctx.tenant_id, invoice_id, sale_item_id, component_name
            )
            if customer_id is not None and customer_id != invoice.customer_id:
                raise OwnershipMismatch(
                    f"Receipt {invoice.invoice_number} belongs to another customer",
                    details={"invoice_id": invoice.id, "customer_id": customer_id},
                )
            customer = get_customer(ctx.tenant_id, invoice.customer_id)
            original_invoice_id = invoice.id
            original_sale_item_id = sale_item.id
        else:
            customer = get_customer(ctx.tenant_id, customer_id)

        repair = Repair(
            org_id=ctx.tenant_id,
            repair_number=next_document_number(org_id=ctx.tenant_id, document_type=DOC_REPAIR),
            customer_id=customer.id,
            original_invoice_id=original_invoice_id,
            original_sale_item_id=original_sale_item_id,
            product_name=name,
            product_serial_number=product_serial_number,
            reported_problem=reported_problem,
            status=REPAIR_STATUS_RECEIVED,
            received_date=utcnow(),
            is_warranty=is_warranty,
            notes=notes,
            created_by_actor_id=ctx.actor_id,
        )
        db.session.add(repair)
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_created",
            message=f'Created repair order {repair.repair_number} for item "{name}"',
            actor_id=ctx.actor_id,
            customer_id=customer.id,
            invoice_id=original_invoice_id,
            repair_id=repair.id,
            details={"is_warranty": is_warranty},
        )
        return repair

    return run_workflow(ctx, "create_repair", _op, tables=REPAIR_TABLES)


def create_repair_from_damage(ctx: WorkflowContext, damage_log_id: int) -> Repair:
    """Open an internal repair for a damaged-stock entry."""

    def _op() -> Repair:
        entry = get_damage_log(ctx.tenant_id, damage_log_id)
        if entry.repair_id:
            existing = db.session.get(Repair, entry.repair_id)
            if existing is not None:
                raise AlreadyProcessed(
                    f"A repair order ({existing.repair_number}) already exists for this item",
                    details={"repair_id": existing.id},
                )
        if entry.status in (DAMAGE_STATUS_REPAIRED, DAMAGE_STATUS_UNREPAIRABLE):
            raise AlreadyProcessed(f"Damaged stock entry {entry.id} is already {entry.status}")

        internal = get_or_create_internal_customer(ctx.tenant_id)
        repair = Repair(
            org_id=ctx.tenant_id,
            repair_number=next_document_number(org_id=ctx.tenant_id, document_type=DOC_REPAIR),
            customer_id=internal.id,
            damage_log_id=entry.id,
            product_name=entry.product.name,
            reported_problem=entry.notes or "Item from damaged stock.",
            status=REPAIR_STATUS_RECEIVED,
            received_date=utcnow(),
            created_by_actor_id=ctx.actor_id,
        )
        db.session.add(repair)
        db.session.flush()

        entry.status = DAMAGE_STATUS_IN_REPAIR
        entry.repair_id = repair.id
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_created",
            message=f"Started a repair ({repair.repair_number}) for a damaged item: {entry.product.name}",
            actor_id=ctx.actor_id,
            customer_id=internal.id,
            repair_id=repair.id,
            details={"damage_log_id": entry.id},
        )
        return repair

    return run_workflow(
        ctx,
        "create_repair_from_damage",
        _op,
        tables=REPAIR_TABLES + ("damaged_stock_log", "customers"),
    )


def update_repair_status(ctx: WorkflowContext, repair_id: int, status: str) -> Repair:
    """Manual transitions are limited to starting work; outcomes have their own operations."""
    if status != REPAIR_STATUS_IN_PROGRESS:
        raise ValidationError("Invalid status update.", details={"allowed": [REPAIR_STATUS_IN_PROGRESS]})

    def _op() -> Repair:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_open(repair)
        repair.status = status
        db.session.flush()
        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_status_updated",
            message=f"Updated repair {repair.repair_number} status to '{status}'",
            actor_id=ctx.actor_id,
            customer_id=repair.customer_id,
            repair_id=repair.id,
        )
        return repair

    return run_workflow(ctx, "update_repair_status", _op, tables=REPAIR_TABLES)


def add_repair_item(ctx: WorkflowContext, repair_id: int, *, product_id: int, quantity: int) -> RepairItem:
    """Consume a spare part (FIFO) at the product's current price."""
    _positive_int(quantity, "quantity")

    def _op() -> RepairItem:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_open(repair)
        product = get_product(ctx.tenant_id, product_id)
        if product.is_bundle:
            raise ValidationError("Bundles cannot be used as spare parts; add their components")

        deduct(product.id, quantity)
        item = RepairItem(product_id=product.id, quantity=quantity, unit_price_cents=product.price_cents)
        repair.items.append(item)
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_item_added",
            message=f"Added {quantity} unit(s) of {product.name} to repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            repair_id=repair.id,
        )
        return item

    return run_workflow(ctx, "add_repair_item", _op, tables=PART_TABLES)


def _get_repair_item(repair: Repair, item_id: int) -> RepairItem:
    item = db.session.get(RepairItem, item_id)
    if item is None:
        raise NotFound(f"Repair item {item_id} not found")
    if item.repair_id != repair.id:
        raise OwnershipMismatch(
            f"Item {item_id} is not on repair order {repair.repair_number}",
            details={"repair_id": repair.id, "repair_item_id": item_id},
        )
    return item


def remove_repair_item(ctx: WorkflowContext, repair_id: int, item_id: int) -> dict:
    """Take a part off the order and put it back into stock."""

    def _op() -> dict:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_open(repair)
        item = _get_repair_item(repair, item_id)

        lot = restock(
            org_id=ctx.tenant_id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_cost_cents=item.unit_price_cents,
            source=LOT_SOURCE_REPAIR_PART,
            note=f"Return from Repair {repair.repair_number}",
            repair_id=repair.id,
            actor_id=ctx.actor_id,
        )
        repair.items.remove(item)
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_item_removed",
            message=f"Removed a spare part from repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            repair_id=repair.id,
        )
        return {"repair_item_id": item_id, "restocked_lot_id": lot.id}

    return run_workflow(ctx, "remove_repair_item", _op, tables=PART_TABLES)


def update_repair_item_price(ctx: WorkflowContext, repair_id: int, item_id: int, unit_price_cents: int) -> RepairItem:
    _non_negative_int(unit_price_cents, "unit_price_cents")

    def _op() -> RepairItem:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_open(repair)
        item = _get_repair_item(repair, item_id)
        item.unit_price_cents = unit_price_cents
        db.session.flush()
        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_item_repriced",
            message=f"Updated a spare part price on repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            repair_id=repair.id,
            details={"repair_item_id": item.id, "unit_price_cents": unit_price_cents},
        )
        return item

    return run_workflow(ctx, "update_repair_item_price", _op, tables=REPAIR_TABLES)


def void_warranty(ctx: WorkflowContext, repair_id: int, reason: str) -> Repair:
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")

    def _op() -> Repair:
        repair = get_repair(ctx.tenant_id, repair_id)
        if repair.warranty_void_reason:
            raise AlreadyProcessed(
                f"Warranty for repair {repair.repair_number} was already voided",
                details={"reason": repair.warranty_void_reason},
            )
        repair.is_warranty = False
        repair.warranty_void_reason = str(reason).strip()
        db.session.flush()
        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_warranty_voided",
            message=f"Voided the warranty for repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            customer_id=repair.customer_id,
            repair_id=repair.id,
            details={"reason": repair.warranty_void_reason},
        )
        return repair

    return run_workflow(ctx, "void_warranty", _op, tables=REPAIR_TABLES)


def complete_repair(
    ctx: WorkflowContext,
    repair_id: int,
    *,
    repair_fee_cents: int = 0,
    notes: str | None = None,
) -> Repair:
    """
    Finish a customer repair and bill it.

    The invoice carries the fee as a service line plus one line per part at
    its repair price. Parts were consumed when added, so the invoice does not
    deduct stock (and deleting it will not restock them).
    """
    _non_negative_int(repair_fee_cents, "repair_fee_cents")

    def _op() -> Repair:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_customer_repair(repair)
        _require_open(repair)

        items = []
        if repair_fee_cents > 0:
            items.append(
                build_custom_line(
                    description=f"Repair Service for {repair.product_name}",
                    quantity=1,
                    unit_price_cents=repair_fee_cents,
                )
            )
        for part in repair.items:
            items.append(
                build_product_line(
                    part.product,
                    quantity=part.quantity,
                    unit_price_cents=part.unit_price_cents,
                )
            )

        repair.status = REPAIR_STATUS_COMPLETED
        repair.completed_date = utcnow()
        repair.repair_fee_cents = repair_fee_cents
        if notes:
            repair.notes = notes

        if items:
            invoice = issue_invoice(
                org_id=ctx.tenant_id,
                customer=repair.customer,
                items=items,
                actor_id=ctx.actor_id,
                source=INVOICE_SOURCE_REPAIR,
                deduct_stock=False,
                repair_id=repair.id,
                notes=f"Repair {repair.repair_number}",
            )
            repair.repair_invoice_id = invoice.id
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_completed",
            message=f"Completed repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            customer_id=repair.customer_id,
            invoice_id=repair.repair_invoice_id,
            repair_id=repair.id,
        )
        return repair

    return run_workflow(ctx, "complete_repair", _op, tables=INVOICE_TABLES + REPAIR_TABLES)


def mark_repaired(ctx: WorkflowContext, repair_id: int) -> Repair:
    """Internal repair done: the damaged unit goes back into stock at zero cost."""

    def _op() -> Repair:
        repair = get_repair(ctx.tenant_id, repair_id)
        if not repair.is_internal:
            raise ValidationError("This action is only for repairs originating from damaged stock.")
        _require_open(repair)

        entry = repair.damage_log
        entry.status = DAMAGE_STATUS_REPAIRED
        lot = restock(
            org_id=ctx.tenant_id,
            product_id=entry.product_id,
            quantity=1,
            unit_cost_cents=0,
            source=LOT_SOURCE_REPAIRED,
            note=f"Repaired Stock ({repair.repair_number})",
            repair_id=repair.id,
            actor_id=ctx.actor_id,
        )
        repair.status = REPAIR_STATUS_REPAIRED
        repair.completed_date = utcnow()
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_repaired",
            message=f"Marked repair {repair.repair_number} as Repaired. The item has been returned to inventory.",
            actor_id=ctx.actor_id,
            repair_id=repair.id,
            details={"lot_id": lot.id},
        )
        return repair

    return run_workflow(
        ctx,
        "mark_repaired",
        _op,
        tables=PART_TABLES + ("damaged_stock_log",),
    )


def _unrepairable_product_id(org_id: int, repair: Repair) -> int:
    if repair.original_sale_item is not None and repair.original_sale_item.product_id:
        return repair.original_sale_item.product_id
    product = find_product_by_name(org_id, repair.product_name)
    if product is None:
        raise ValidationError("Could not determine the product associated with this repair.")
    return product.id


def mark_unrepairable(ctx: WorkflowContext, repair_id: int) -> Repair:
    """
    Give up on a repair that is In Progress.

    Internal repairs close their damage entry as Unrepairable (the unit left
    stock when it was logged). Customer repairs add an Unrepairable entry for
    the product to the damage log.
    """

    def _op() -> Repair:
        repair = get_repair(ctx.tenant_id, repair_id)
        if repair.status != REPAIR_STATUS_IN_PROGRESS:
            raise ValidationError("Only repairs 'In Progress' can be marked as unrepairable.")

        if repair.is_internal:
            entry = repair.damage_log
            entry.status = DAMAGE_STATUS_UNREPAIRABLE
        else:
            entry = DamagedStockLog(
                org_id=ctx.tenant_id,
                product_id=_unrepairable_product_id(ctx.tenant_id, repair),
                quantity=1,
                notes=(
                    f"Marked as unrepairable from Repair Order {repair.repair_number}. "
                    f"Reported problem: {repair.reported_problem or 'n/a'}"
                ),
                status=DAMAGE_STATUS_UNREPAIRABLE,
                repair_id=repair.id,
                logged_by_actor_id=ctx.actor_id,
                logged_at=utcnow(),
            )
            db.session.add(entry)

        repair.status = REPAIR_STATUS_UNREPAIRABLE
        repair.completed_date = utcnow()
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_unrepairable",
            message=f'Marked repair {repair.repair_number} for "{repair.product_name}" as Unrepairable',
            actor_id=ctx.actor_id,
            customer_id=repair.customer_id,
            repair_id=repair.id,
            details={"damage_log_id": entry.id},
        )
        return repair

    return run_workflow(ctx, "mark_unrepairable", _op, tables=REPAIR_TABLES + ("damaged_stock_log",))


def create_replacement(
    ctx: WorkflowContext,
    repair_id: int,
    *,
    product_id: int,
    quantity: int = 1,
    unit_price_cents: int | None = None,
    notes: str | None = None,
) -> Invoice:
    """
    Replace the item instead of repairing it.

    Stock is deducted FIFO and a Paid invoice is issued for the replacement;
    no debit is written, the replacement settles the repair.
    """
    _positive_int(quantity, "quantity")
    if unit_price_cents is not None:
        _non_negative_int(unit_price_cents, "unit_price_cents")

    def _op() -> Invoice:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_customer_repair(repair)
        _require_open(repair)
        product = get_product(ctx.tenant_id, product_id)

        line = build_product_line(product, quantity=quantity, unit_price_cents=unit_price_cents)
        issued_at = utcnow()
        invoice = issue_invoice(
            org_id=ctx.tenant_id,
            customer=repair.customer,
            items=[line],
            actor_id=ctx.actor_id,
            issue_date=issued_at,
            due_date=issued_at,
            status=INVOICE_STATUS_PAID,
            source=INVOICE_SOURCE_REPLACEMENT,
            deduct_stock=True,
            record_debit=False,
            repair_id=repair.id,
            notes=notes or f"Replacement for repair {repair.repair_number}",
        )

        repair.status = REPAIR_STATUS_REPLACED
        repair.replacement_invoice_id = invoice.id
        repair.completed_date = issued_at
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_replaced",
            message=f"Created replacement invoice {invoice.invoice_number} for repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            customer_id=repair.customer_id,
            invoice_id=invoice.id,
            repair_id=repair.id,
        )
        return invoice

    return run_workflow(ctx, "create_replacement", _op, tables=INVOICE_TABLES + REPAIR_TABLES)


def issue_credit(ctx: WorkflowContext, repair_id: int, *, amount_cents: int, notes: str | None = None) -> Repair:
    """Settle a repair with store credit on the customer's balance."""
    _positive_int(amount_cents, "amount_cents")

    def _op() -> Repair:
        repair = get_repair(ctx.tenant_id, repair_id)
        _require_customer_repair(repair)
        _require_open(repair)

        description = f"Store Credit: {notes}" if notes else f"Store Credit for Repair {repair.repair_number}"
        record_transaction(
            customer_id=repair.customer_id,
            tx_type=TRANSACTION_CREDIT,
            amount_cents=amount_cents,
            description=description,
            repair_id=repair.id,
            actor_id=ctx.actor_id,
        )
        repair.status = REPAIR_STATUS_CREDITED
        repair.completed_date = utcnow()
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="repair_credited",
            message=f"Issued {amount_cents} cents store credit for repair {repair.repair_number}",
            actor_id=ctx.actor_id,
            customer_id=repair.customer_id,
            repair_id=repair.id,
        )
        return repair

    return run_workflow(
        ctx,
        "issue_credit",
        _op,
        tables=REPAIR_TABLES + ("transactions", "customers"),
    )
