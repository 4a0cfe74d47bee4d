# Overview: Service-layer operations for customer returns against invoices.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFound, OwnershipMismatch, ValidationError
from ..models import Return, ReturnExpense, ReturnItem, SaleItem
from ..models.customers import TRANSACTION_CREDIT, TRANSACTION_DEBIT
from ..models.inventory import LOT_SOURCE_RETURN
from .activity_service import log_activity
from .document_service import DOC_RETURN, next_document_number
from .inventory_service import restock_line
from .invoice_service import get_invoice
from .ledger_service import record_transaction
from .payment_service import CREDITS_METHOD
from .reversal_service import refresh_return_status, reverse_return
from .unit_of_work import WorkflowContext, run_workflow
from stockledger.time_utils import parse_iso_datetime, utcnow


RETURN_TABLES = (
    "returns",
    "sale_items",
    "invoices",
    "inventory_lots",
    "products",
    "transactions",
    "customers",
    "activity_log",
)


def get_return(org_id: int, return_id: int) -> Return:
    ret = db.session.query(Return).filter_by(id=return_id, org_id=org_id).first()
    if not ret:
        raise NotFound(f"Return {return_id} not found")
    return ret


def list_returns(org_id: int, *, invoice_id: int | None = None) -> list[Return]:
    query = db.session.query(Return).filter_by(org_id=org_id)
    if invoice_id:
        query = query.filter_by(original_invoice_id=invoice_id)
    return query.order_by(Return.return_date.desc(), Return.id.desc()).all()


def _positive_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{label} must be a positive integer")
    return value


def _requested_quantities(items) -> dict[int, int]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    requested: dict[int, int] = {}
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        sale_item_id = _positive_int(raw.get("sale_item_id"), f"items[{index}].sale_item_id")
        quantity = _positive_int(raw.get("quantity"), f"items[{index}].quantity")
        requested[sale_item_id] = requested.get(sale_item_id, 0) + quantity
    return requested


def _clean_expenses(expenses) -> list[dict]:
    cleaned = []
    for index, raw in enumerate(expenses or []):
        description = (raw.get("description") or "").strip() if isinstance(raw, dict) else ""
        if not description:
            raise ValidationError(f"expenses[{index}].description is required")
        amount = raw.get("amount_cents")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValidationError(f"expenses[{index}].amount_cents must be a non-negative integer")
        cleaned.append({"description": description, "amount_cents": amount})
    return cleaned


def _clean_payments(payments) -> list[dict]:
    cleaned = []
    for index, raw in enumerate(payments or []):
        if not isinstance(raw, dict):
            raise ValidationError(f"payments[{index}] must be an object")
        amount = raw.get("amount_cents")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValidationError(f"payments[{index}].amount_cents must be a non-negative integer")
        method = (raw.get("method") or "").strip()
        if not method:
            raise ValidationError(f"payments[{index}].method is required")
        cleaned.append({"amount_cents": amount, "method": method})
    return cleaned


def create_return(
    ctx: WorkflowContext,
    *,
    invoice_id: int,
    items,
    payments=None,
    expenses=None,
    restock_items: bool = True,
    delivery_charge_refund_cents: int = 0,
    notes: str | None = None,
    return_date=None,
) -> Return:
    """
    Take sold units back.

    items:    [{sale_item_id, quantity}] from the invoice's sale; the unit
              price comes from the sale item.
    payments: [{amount_cents, method}] how the refund is settled. Their sum is
              credited to the customer as value from the return; every
              method other than "Credits" is then paid out (a debit), so
              only "Credits" leaves store credit on the balance.
    expenses: [{description, amount_cents}] deducted from the refund.
    """
    requested = _requested_quantities(items)
    cleaned_expenses = _clean_expenses(expenses)
    cleaned_payments = _clean_payments(payments)
    if isinstance(delivery_charge_refund_cents, bool) or not isinstance(delivery_charge_refund_cents, int) \
            or delivery_charge_refund_cents < 0:
        raise ValidationError("delivery_charge_refund_cents must be a non-negative integer")
    try:
        returned_at = parse_iso_datetime(return_date) or utcnow()
    except ValueError:
        raise ValidationError("return_date must be an ISO-8601 date")

    def _op() -> Return:
        invoice = get_invoice(ctx.tenant_id, invoice_id)
        sale = invoice.sale
        if sale is None:
            raise NotFound(f"Sale record for invoice {invoice.invoice_number} not found")

        # Ownership and quantity checks for every line before anything changes
        resolved: list[tuple[SaleItem, int]] = []
        for sale_item_id, quantity in requested.items():
            sale_item = db.session.get(SaleItem, sale_item_id)
            if sale_item is None or sale_item.sale_id != sale.id:
                raise OwnershipMismatch(
                    f"Item {sale_item_id} does not belong to the original sale of invoice {invoice.invoice_number}",
                    details={"sale_item_id": sale_item_id, "invoice_id": invoice.id},
                )
            if quantity > sale_item.quantity_returnable:
                raise ValidationError(
                    f"Cannot return {quantity} x {sale_item.description}: "
                    f"only {sale_item.quantity_returnable} of {sale_item.quantity} remain returnable",
                    details={"sale_item_id": sale_item.id, "returnable": sale_item.quantity_returnable},
                )
            resolved.append((sale_item, quantity))

        items_value = sum(si.unit_price_cents * qty for si, qty in resolved)
        expense_total = sum(e["amount_cents"] for e in cleaned_expenses)
        total_refund = items_value + delivery_charge_refund_cents - expense_total
        if total_refund < 0:
            raise ValidationError("Expenses exceed the value of the return")
        recognized = sum(p["amount_cents"] for p in cleaned_payments)
        if recognized > total_refund:
            raise ValidationError(
                f"Refund payments ({recognized}) exceed the refund total ({total_refund})"
            )

        ret = Return(
            org_id=ctx.tenant_id,
            original_invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            return_receipt_number=next_document_number(org_id=ctx.tenant_id, document_type=DOC_RETURN),
            return_date=returned_at,
            total_refund_cents=total_refund,
            total_expense_cents=expense_total,
            delivery_charge_refund_cents=delivery_charge_refund_cents,
            notes=notes,
            restocked=bool(restock_items),
            created_by_actor_id=ctx.actor_id,
        )
        ret.items = [
            ReturnItem(
                sale_item_id=si.id,
                product_id=si.product_id,
                quantity=qty,
                unit_price_cents=si.unit_price_cents,
            )
            for si, qty in resolved
        ]
        ret.expenses = [ReturnExpense(**e) for e in cleaned_expenses]
        db.session.add(ret)
        db.session.flush()

        for sale_item, quantity in resolved:
            sale_item.quantity_returned = (sale_item.quantity_returned or 0) + quantity
            if restock_items:
                line = sale_item.line_item
                restock_line(
                    org_id=ctx.tenant_id,
                    product_id=sale_item.product_id,
                    kind=sale_item.kind,
                    quantity=quantity,
                    unit_price_cents=sale_item.unit_price_cents,
                    components=line.components if line is not None else (),
                    source=LOT_SOURCE_RETURN,
                    note=f"Return {ret.return_receipt_number}",
                    return_id=ret.id,
                    actor_id=ctx.actor_id,
                )

        if recognized > 0:
            record_transaction(
                customer_id=invoice.customer_id,
                tx_type=TRANSACTION_CREDIT,
                amount_cents=recognized,
                description=f"Value from Return {ret.return_receipt_number}",
                return_id=ret.id,
                actor_id=ctx.actor_id,
                occurred_at=returned_at,
            )
        for payment in cleaned_payments:
            if payment["method"] != CREDITS_METHOD and payment["amount_cents"] > 0:
                record_transaction(
                    customer_id=invoice.customer_id,
                    tx_type=TRANSACTION_DEBIT,
                    amount_cents=payment["amount_cents"],
                    description=f"Refund for Return {ret.return_receipt_number}",
                    payment_method=payment["method"],
                    return_id=ret.id,
                    actor_id=ctx.actor_id,
                    occurred_at=returned_at,
                )

        refresh_return_status(invoice)
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="return_created",
            message=(
                f"Processed return {ret.return_receipt_number} for invoice {invoice.invoice_number}. "
                f"Refunded {total_refund} cents."
            ),
            actor_id=ctx.actor_id,
            customer_id=invoice.customer_id,
            invoice_id=invoice.id,
            return_id=ret.id,
            details={"restocked": ret.restocked, "return_status": invoice.return_status},
        )
        return ret

    return run_workflow(ctx, "create_return", _op, tables=RETURN_TABLES)


def delete_return(ctx: WorkflowContext, return_id: int) -> dict:
    """Undo a return; refused with ReversalConflict once restocked units were resold."""

    def _op() -> dict:
        ret = get_return(ctx.tenant_id, return_id)
        number = ret.return_receipt_number
        invoice_id = ret.original_invoice_id
        customer_id = ret.customer_id
        result = reverse_return(ret)
        log_activity(
            org_id=ctx.tenant_id,
            event_type="return_deleted",
            message=f"Deleted return {number}",
            actor_id=ctx.actor_id,
            customer_id=customer_id,
            invoice_id=invoice_id,
            return_id=return_id,
            details={"reversed_transaction_ids": result["reversed_transaction_ids"]},
        )
        return {"return_id": return_id, "return_receipt_number": number, **result}

    return run_workflow(ctx, "delete_return", _op, tables=RETURN_TABLES)
