# Overview: Service-layer operations for invoices; issue, delete and overdue sweep.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import Customer, Invoice, Sale, SaleItem
from ..models.customers import TRANSACTION_DEBIT
from ..models.sales import (
    INVOICE_SOURCE_SALE,
    INVOICE_STATUS_OVERDUE,
    INVOICE_STATUS_PARTIALLY_PAID,
    INVOICE_STATUS_SENT,
)
from .activity_service import log_activity
from .customer_service import get_customer
from .document_service import DOC_INVOICE, next_document_number
from .inventory_service import deduct_line_items
from .ledger_service import record_transaction
from .line_items import LineItem, compute_totals, parse_line_items, to_rows
from .reversal_service import reverse_invoice
from .settings_service import get_tenant_settings
from .unit_of_work import WorkflowContext, run_workflow
from stockledger.time_utils import add_days, parse_iso_datetime, utcnow

"""
Invoice pipeline (shared by sales, quotation conversion and repairs)

1. customer and line items are resolved and validated
2. stock is checked for every line, then deducted FIFO (unless the caller
   already consumed it)
3. the number comes from the tenant's INVOICE counter
4. due_date = issue_date + tenant default_due_date_days unless given
5. one debit for the total is written against the customer
6. Invoice, its line rows, and the backing Sale + SaleItems are persisted

All of it runs inside the caller's unit of work.
"""


INVOICE_TABLES = (
    "invoices",
    "sales",
    "sale_items",
    "inventory_lots",
    "products",
    "transactions",
    "customers",
    "activity_log",
)


def get_invoice(org_id: int, invoice_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id, org_id=org_id).first()
    if not invoice:
        raise NotFound(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(org_id: int, *, customer_id: int | None = None, status: str | None = None) -> list[Invoice]:
    query = db.session.query(Invoice).filter_by(org_id=org_id)
    if customer_id:
        query = query.filter_by(customer_id=customer_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()


def _parse_date(value, field: str) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")


def issue_invoice(
    *,
    org_id: int,
    customer: Customer,
    items: list[LineItem],
    actor_id: int | None = None,
    issue_date: datetime | None = None,
    due_date: datetime | None = None,
    delivery_charge_cents: int = 0,
    discount_cents: int = 0,
    status: str = INVOICE_STATUS_SENT,
    source: str = INVOICE_SOURCE_SALE,
    deduct_stock: bool = True,
    record_debit: bool = True,
    repair_id: int | None = None,
    notes: str | None = None,
) -> Invoice:
    """Run the invoice pipeline. Flushes only; the caller's unit of work commits."""
    if not items:
        raise ValidationError("An invoice needs at least one line item")

    totals = compute_totals(items, delivery_charge_cents=delivery_charge_cents, discount_cents=discount_cents)

    if deduct_stock:
        deduct_line_items(items)

    issued_at = issue_date or utcnow()
    if due_date is None:
        due_date = add_days(issued_at, get_tenant_settings(org_id).default_due_date_days)
    if due_date < issued_at:
        raise ValidationError("due_date cannot be before issue_date")

    invoice = Invoice(
        org_id=org_id,
        customer_id=customer.id,
        customer_name=customer.name,
        invoice_number=next_document_number(org_id=org_id, document_type=DOC_INVOICE),
        issue_date=issued_at,
        due_date=due_date,
        subtotal_cents=totals.subtotal_cents,
        delivery_charge_cents=totals.delivery_charge_cents,
        discount_cents=totals.discount_cents,
        total_cents=totals.total_cents,
        status=status,
        source=source,
        stock_applied=deduct_stock,
        notes=notes,
        created_by_actor_id=actor_id,
    )
    invoice.line_items = to_rows(items)
    db.session.add(invoice)
    db.session.flush()

    sale = Sale(
        org_id=org_id,
        customer_id=customer.id,
        invoice_id=invoice.id,
        total_cents=totals.total_cents,
        sale_date=issued_at,
        created_by_actor_id=actor_id,
    )
    sale.items = [
        SaleItem(
            line_item=row,
            kind=row.kind,
            product_id=row.product_id,
            description=row.description,
            quantity=row.quantity,
            unit_price_cents=row.unit_price_cents,
            total_price_cents=row.line_total_cents,
            quantity_returned=0,
        )
        for row in invoice.line_items
    ]
    db.session.add(sale)
    db.session.flush()

    if record_debit and totals.total_cents > 0:
        record_transaction(
            customer_id=customer.id,
            tx_type=TRANSACTION_DEBIT,
            amount_cents=totals.total_cents,
            description=f"Invoice {invoice.invoice_number}",
            invoice_id=invoice.id,
            repair_id=repair_id,
            actor_id=actor_id,
            occurred_at=issued_at,
        )

    log_activity(
        org_id=org_id,
        event_type="invoice_created",
        message=f"Created invoice {invoice.invoice_number} for {customer.name}",
        actor_id=actor_id,
        customer_id=customer.id,
        invoice_id=invoice.id,
        repair_id=repair_id,
        details={"total_cents": totals.total_cents, "source": source},
    )
    return invoice


def create_invoice(
    ctx: WorkflowContext,
    *,
    customer_id: int,
    line_items,
    issue_date=None,
    due_date=None,
    delivery_charge_cents: int = 0,
    discount_cents: int = 0,
    notes: str | None = None,
) -> Invoice:
    """Sell line items to a customer: deduct stock, number, debit, persist."""
    issued_at = _parse_date(issue_date, "issue_date")
    due_at = _parse_date(due_date, "due_date")

    def _op() -> Invoice:
        customer = get_customer(ctx.tenant_id, customer_id)
        items = parse_line_items(ctx.tenant_id, line_items)
        return issue_invoice(
            org_id=ctx.tenant_id,
            customer=customer,
            items=items,
            actor_id=ctx.actor_id,
            issue_date=issued_at,
            due_date=due_at,
            delivery_charge_cents=delivery_charge_cents,
            discount_cents=discount_cents,
            notes=notes,
        )

    return run_workflow(ctx, "create_invoice", _op, tables=INVOICE_TABLES)


def delete_invoice(ctx: WorkflowContext, invoice_id: int) -> dict:
    """Delete an invoice and compensate its stock and ledger effects."""

    def _op() -> dict:
        invoice = get_invoice(ctx.tenant_id, invoice_id)
        number = invoice.invoice_number
        customer_id = invoice.customer_id
        result = reverse_invoice(invoice, actor_id=ctx.actor_id)
        if result["cleared_repair_ids"]:
            ctx.mark_changed("repairs")
        ctx.mark_changed("quotations")
        log_activity(
            org_id=ctx.tenant_id,
            event_type="invoice_deleted",
            message=f"Deleted invoice {number}",
            actor_id=ctx.actor_id,
            customer_id=customer_id,
            invoice_id=invoice_id,
            details=result,
        )
        return {"invoice_id": invoice_id, "invoice_number": number, **result}

    return run_workflow(ctx, "delete_invoice", _op, tables=INVOICE_TABLES)


def mark_overdue_invoices(ctx: WorkflowContext, now: datetime | None = None) -> list[Invoice]:
    """Sent or Partially Paid invoices past their due date become Overdue."""
    cutoff = now or utcnow()

    def _op() -> list[Invoice]:
        invoices = (
            db.session.query(Invoice)
            .filter(
                Invoice.org_id == ctx.tenant_id,
                Invoice.status.in_((INVOICE_STATUS_SENT, INVOICE_STATUS_PARTIALLY_PAID)),
                Invoice.due_date < cutoff,
            )
            .order_by(Invoice.id)
            .all()
        )
        for invoice in invoices:
            invoice.status = INVOICE_STATUS_OVERDUE
        if invoices:
            log_activity(
                org_id=ctx.tenant_id,
                event_type="invoices_overdue",
                message=f"Marked {len(invoices)} invoice(s) overdue",
                actor_id=ctx.actor_id,
                details={"invoice_ids": [i.id for i in invoices]},
            )
        db.session.flush()
        return invoices

    return run_workflow(ctx, "mark_overdue_invoices", _op, tables=("invoices", "activity_log"))
