# Overview: Service-layer operations for quotations; drafts and conversion into invoices.

from __future__ import annotations

from ..extensions import db
from ..errors import AlreadyProcessed, NotFound, ValidationError
from ..models import Invoice, Quotation
from ..models.documents import QUOTATION_STATUS_CONVERTED, QUOTATION_STATUS_DRAFT
from ..models.sales import INVOICE_SOURCE_QUOTATION
from .activity_service import log_activity
from .customer_service import get_customer
from .document_service import DOC_QUOTATION, next_document_number
from .invoice_service import INVOICE_TABLES, issue_invoice
from .line_items import compute_totals, parse_line_items, refresh_from_row, to_rows
from .unit_of_work import WorkflowContext, run_workflow
from stockledger.time_utils import parse_iso_datetime, utcnow


QUOTATION_TABLES = ("quotations", "activity_log")


def get_quotation(org_id: int, quotation_id: int) -> Quotation:
    quotation = db.session.query(Quotation).filter_by(id=quotation_id, org_id=org_id).first()
    if not quotation:
        raise NotFound(f"Quotation {quotation_id} not found")
    return quotation


def list_quotations(org_id: int, *, status: str | None = None) -> list[Quotation]:
    query = db.session.query(Quotation).filter_by(org_id=org_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Quotation.issue_date.desc(), Quotation.id.desc()).all()


def _dates(issue_date, expiry_date):
    try:
        issued_at = parse_iso_datetime(issue_date)
        expires_at = parse_iso_datetime(expiry_date)
    except ValueError:
        raise ValidationError("issue_date and expiry_date must be ISO-8601 dates")
    return issued_at, expires_at


def _require_draft(quotation: Quotation) -> None:
    if quotation.status == QUOTATION_STATUS_CONVERTED:
        raise AlreadyProcessed(
            f"Quotation {quotation.quotation_number} was already converted",
            details={"converted_invoice_id": quotation.converted_invoice_id},
        )


def create_quotation(
    ctx: WorkflowContext,
    *,
    customer_id: int,
    line_items,
    issue_date=None,
    expiry_date=None,
    delivery_charge_cents: int = 0,
    discount_cents: int = 0,
    notes: str | None = None,
) -> Quotation:
    """Draft a quotation. Stock and balances are untouched."""
    issued_at, expires_at = _dates(issue_date, expiry_date)

    def _op() -> Quotation:
        customer = get_customer(ctx.tenant_id, customer_id)
        items = parse_line_items(ctx.tenant_id, line_items)
        totals = compute_totals(items, delivery_charge_cents=delivery_charge_cents, discount_cents=discount_cents)
        issued = issued_at or utcnow()
        if expires_at is not None and expires_at < issued:
            raise ValidationError("expiry_date cannot be before issue_date")

        quotation = Quotation(
            org_id=ctx.tenant_id,
            customer_id=customer.id,
            customer_name=customer.name,
            quotation_number=next_document_number(org_id=ctx.tenant_id, document_type=DOC_QUOTATION),
            issue_date=issued,
            expiry_date=expires_at,
            subtotal_cents=totals.subtotal_cents,
            delivery_charge_cents=totals.delivery_charge_cents,
            discount_cents=totals.discount_cents,
            total_cents=totals.total_cents,
            status=QUOTATION_STATUS_DRAFT,
            notes=notes,
            created_by_actor_id=ctx.actor_id,
        )
        quotation.line_items = to_rows(items)
        db.session.add(quotation)
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="quotation_created",
            message=f"Created quotation {quotation.quotation_number} for {customer.name}",
            actor_id=ctx.actor_id,
            customer_id=customer.id,
            quotation_id=quotation.id,
        )
        return quotation

    return run_workflow(ctx, "create_quotation", _op, tables=QUOTATION_TABLES)


def update_quotation(
    ctx: WorkflowContext,
    quotation_id: int,
    *,
    line_items=None,
    customer_id: int | None = None,
    expiry_date=None,
    delivery_charge_cents: int | None = None,
    discount_cents: int | None = None,
    notes: str | None = None,
) -> Quotation:
    """Edit a Draft quotation; line items, when given, replace the old ones."""
    _, expires_at = _dates(None, expiry_date)

    def _op() -> Quotation:
        quotation = get_quotation(ctx.tenant_id, quotation_id)
        _require_draft(quotation)

        if customer_id is not None:
            customer = get_customer(ctx.tenant_id, customer_id)
            quotation.customer_id = customer.id
            quotation.customer_name = customer.name

        if line_items is not None:
            items = parse_line_items(ctx.tenant_id, line_items)
        else:
            items = [refresh_from_row(ctx.tenant_id, row) for row in quotation.line_items]

        totals = compute_totals(
            items,
            delivery_charge_cents=quotation.delivery_charge_cents if delivery_charge_cents is None else delivery_charge_cents,
            discount_cents=quotation.discount_cents if discount_cents is None else discount_cents,
        )

        if line_items is not None:
            quotation.line_items.clear()
            db.session.flush()
            quotation.line_items.extend(to_rows(items))

        quotation.subtotal_cents = totals.subtotal_cents
        quotation.delivery_charge_cents = totals.delivery_charge_cents
        quotation.discount_cents = totals.discount_cents
        quotation.total_cents = totals.total_cents
        if expires_at is not None:
            quotation.expiry_date = expires_at
        if notes is not None:
            quotation.notes = notes
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="quotation_updated",
            message=f"Updated quotation {quotation.quotation_number}",
            actor_id=ctx.actor_id,
            customer_id=quotation.customer_id,
            quotation_id=quotation.id,
        )
        return quotation

    return run_workflow(ctx, "update_quotation", _op, tables=QUOTATION_TABLES)


def delete_quotation(ctx: WorkflowContext, quotation_id: int) -> dict:
    def _op() -> dict:
        quotation = get_quotation(ctx.tenant_id, quotation_id)
        _require_draft(quotation)
        number = quotation.quotation_number
        customer_id = quotation.customer_id
        db.session.delete(quotation)
        db.session.flush()
        log_activity(
            org_id=ctx.tenant_id,
            event_type="quotation_deleted",
            message=f"Deleted quotation {number}",
            actor_id=ctx.actor_id,
            customer_id=customer_id,
            quotation_id=quotation_id,
        )
        return {"quotation_id": quotation_id, "quotation_number": number}

    return run_workflow(ctx, "delete_quotation", _op, tables=QUOTATION_TABLES)


def convert_quotation(ctx: WorkflowContext, quotation_id: int, *, issue_date=None) -> Invoice:
    """
    Turn a Draft quotation into an invoice.

    Stock is re-checked now, against the current bundle composition; prices,
    discounts and charges are taken from the quotation as quoted.
    """
    try:
        issued_at = parse_iso_datetime(issue_date)
    except ValueError:
        raise ValidationError("issue_date must be an ISO-8601 date")

    def _op() -> Invoice:
        quotation = get_quotation(ctx.tenant_id, quotation_id)
        _require_draft(quotation)

        customer = get_customer(ctx.tenant_id, quotation.customer_id)
        items = [refresh_from_row(ctx.tenant_id, row) for row in quotation.line_items]

        invoice = issue_invoice(
            org_id=ctx.tenant_id,
            customer=customer,
            items=items,
            actor_id=ctx.actor_id,
            issue_date=issued_at,
            delivery_charge_cents=quotation.delivery_charge_cents,
            discount_cents=quotation.discount_cents,
            source=INVOICE_SOURCE_QUOTATION,
            notes=quotation.notes,
        )

        quotation.status = QUOTATION_STATUS_CONVERTED
        quotation.converted_invoice_id = invoice.id
        db.session.flush()

        log_activity(
            org_id=ctx.tenant_id,
            event_type="quotation_converted",
            message=f"Converted quotation {quotation.quotation_number} to invoice {invoice.invoice_number}",
            actor_id=ctx.actor_id,
            customer_id=customer.id,
            invoice_id=invoice.id,
            quotation_id=quotation.id,
        )
        return invoice

    return run_workflow(ctx, "convert_quotation", _op, tables=INVOICE_TABLES + QUOTATION_TABLES)
