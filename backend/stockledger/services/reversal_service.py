# Overview: Compensation logic that undoes committed invoices and returns.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import ReversalConflict
from ..models import Invoice, Quotation, Repair, Return, SaleItem
from ..models.documents import QUOTATION_STATUS_DRAFT
from ..models.inventory import LOT_SOURCE_INVOICE_REVERSAL
from ..models.sales import (
    LINE_KIND_BUNDLE,
    LINE_KIND_STANDARD,
    RETURN_STATUS_FULL,
    RETURN_STATUS_NONE,
    RETURN_STATUS_PARTIAL,
)
from .inventory_service import restock_line, withdraw_return_stock
from .ledger_service import reverse_linked_transactions

"""
Reversal rules

- A reversal validates everything it depends on before the first mutation;
  the unit of work rolls back anything that fails later.
- Ledger entries are found through their document link columns only.
- Deleting an invoice restocks its lines only if issuing it consumed stock
  (Invoice.stock_applied). Repair-completion invoices did not; their parts
  were consumed when they were added to the repair.
- An invoice with returns against it cannot be deleted; the returns go first.
"""


def refresh_return_status(invoice: Invoice) -> str:
    """Recompute return_status from the aggregate returned quantity of the sale."""
    sale = invoice.sale
    items = list(sale.items) if sale else []
    total_quantity = sum(i.quantity for i in items)
    total_returned = sum(i.quantity_returned or 0 for i in items)

    if total_returned <= 0:
        status = RETURN_STATUS_NONE
    elif total_returned >= total_quantity:
        status = RETURN_STATUS_FULL
    else:
        status = RETURN_STATUS_PARTIAL
    invoice.return_status = status
    return status


def sale_item_requirement(sale_item: SaleItem, quantity: int) -> dict[int, int]:
    """Units per standard product that `quantity` of a sold line stand for."""
    if sale_item.kind == LINE_KIND_STANDARD and sale_item.product_id:
        return {sale_item.product_id: quantity}
    if sale_item.kind == LINE_KIND_BUNDLE and sale_item.line_item is not None:
        return {c.sub_product_id: c.quantity * quantity for c in sale_item.line_item.components}
    return {}


def reverse_invoice(invoice: Invoice, *, actor_id: int | None = None) -> dict:
    """
    Undo an invoice: restock, reverse its ledger entries, drop Sale and Invoice.

    Quotations converted into it go back to Draft; repairs that reference it
    lose the link.
    """
    if invoice.returns:
        raise ReversalConflict(
            f"Invoice {invoice.invoice_number} has returns; delete them first",
            details={"invoice_id": invoice.id, "return_ids": [r.id for r in invoice.returns]},
        )

    for quotation in db.session.query(Quotation).filter_by(converted_invoice_id=invoice.id).all():
        quotation.status = QUOTATION_STATUS_DRAFT
        quotation.converted_invoice_id = None

    sale = invoice.sale
    sale_item_ids = [i.id for i in sale.items] if sale else []
    repairs = db.session.query(Repair).filter(
        or_(
            Repair.original_invoice_id == invoice.id,
            Repair.repair_invoice_id == invoice.id,
            Repair.replacement_invoice_id == invoice.id,
        )
    ).all()
    for repair in repairs:
        if repair.original_invoice_id == invoice.id:
            repair.original_invoice_id = None
            if repair.original_sale_item_id in sale_item_ids:
                repair.original_sale_item_id = None
        if repair.repair_invoice_id == invoice.id:
            repair.repair_invoice_id = None
        if repair.replacement_invoice_id == invoice.id:
            repair.replacement_invoice_id = None

    restocked_lots = []
    if invoice.stock_applied:
        for row in invoice.line_items:
            restocked_lots.extend(
                restock_line(
                    org_id=invoice.org_id,
                    product_id=row.product_id,
                    kind=row.kind,
                    quantity=row.quantity,
                    unit_price_cents=row.unit_price_cents,
                    components=row.components,
                    source=LOT_SOURCE_INVOICE_REVERSAL,
                    note=f"Deleted invoice {invoice.invoice_number}",
                    actor_id=actor_id,
                )
            )

    removed = reverse_linked_transactions(invoice_id=invoice.id)

    if sale is not None:
        db.session.delete(sale)
    db.session.delete(invoice)
    db.session.flush()

    return {
        "restocked_lot_ids": [lot.id for lot in restocked_lots],
        "reversed_transaction_ids": removed,
        "cleared_repair_ids": [r.id for r in repairs],
    }


def reverse_return(ret: Return) -> dict:
    """
    Exact inverse of a return.

    When the return restocked, the units are taken back out of the lots it
    created; if some were resold in the meantime the whole reversal fails
    with ReversalConflict and nothing changes.
    """
    required: dict[int, int] = {}
    if ret.restocked:
        for item in ret.items:
            for product_id, qty in sale_item_requirement(item.sale_item, item.quantity).items():
                required[product_id] = required.get(product_id, 0) + qty

    if required:
        withdraw_return_stock(ret.id, required)

    for item in ret.items:
        sale_item = item.sale_item
        sale_item.quantity_returned = max((sale_item.quantity_returned or 0) - item.quantity, 0)

    removed = reverse_linked_transactions(return_id=ret.id)

    invoice = ret.original_invoice
    db.session.delete(ret)
    db.session.flush()
    db.session.expire(invoice, ["returns"])
    status = refresh_return_status(invoice)
    db.session.flush()

    return {"reversed_transaction_ids": removed, "return_status": status, "withdrawn": required}
