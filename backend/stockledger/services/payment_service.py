# Overview: Service-layer operations for invoice payments; credits against the customer ledger.

"""
Payment processing

- Every payment is one credit ledger entry linked to the invoice, carrying
  its payment method.
- Invoice status follows the sum of those credits:
    total_paid >= total  -> Paid
    total_paid > 0       -> Partially Paid
    otherwise            -> unchanged
- Overpayment is not refused: the excess simply leaves the customer with a
  positive balance (store credit).
"""

from __future__ import annotations

from ..errors import ValidationError
from ..models import Invoice
from ..models.customers import TRANSACTION_CREDIT
from ..models.sales import INVOICE_STATUS_PAID, INVOICE_STATUS_PARTIALLY_PAID
from .activity_service import log_activity
from .invoice_service import get_invoice
from .ledger_service import record_transaction, total_paid_cents
from .unit_of_work import WorkflowContext, run_workflow
from stockledger.time_utils import parse_iso_datetime, utcnow


DEFAULT_PAYMENT_METHOD = "Cash"
CREDITS_METHOD = "Credits"


def _validate_payments(payments) -> list[dict]:
    if not isinstance(payments, list) or not payments:
        raise ValidationError("payments must be a non-empty list")

    cleaned = []
    for index, raw in enumerate(payments):
        if not isinstance(raw, dict):
            raise ValidationError(f"payments[{index}] must be an object")
        amount = raw.get("amount_cents")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"payments[{index}].amount_cents must be a positive integer")
        method = (raw.get("method") or DEFAULT_PAYMENT_METHOD).strip()
        cleaned.append({"amount_cents": amount, "method": method})
    return cleaned


def apply_payment_status(invoice: Invoice) -> str:
    paid = total_paid_cents(invoice.id)
    if paid >= invoice.total_cents and paid > 0:
        invoice.status = INVOICE_STATUS_PAID
    elif paid > 0:
        invoice.status = INVOICE_STATUS_PARTIALLY_PAID
    return invoice.status


def receive_payment(ctx: WorkflowContext, invoice_id: int, payments, *, paid_at=None) -> dict:
    """Record payments against an invoice and update its status."""
    cleaned = _validate_payments(payments)
    try:
        occurred_at = parse_iso_datetime(paid_at) or utcnow()
    except ValueError:
        raise ValidationError("paid_at must be an ISO-8601 date")

    def _op() -> dict:
        invoice = get_invoice(ctx.tenant_id, invoice_id)
        transactions = [
            record_transaction(
                customer_id=invoice.customer_id,
                tx_type=TRANSACTION_CREDIT,
                amount_cents=p["amount_cents"],
                description=f"Payment for Invoice {invoice.invoice_number}",
                payment_method=p["method"],
                invoice_id=invoice.id,
                actor_id=ctx.actor_id,
                occurred_at=occurred_at,
            )
            for p in cleaned
        ]
        status = apply_payment_status(invoice)
        paid = total_paid_cents(invoice.id)

        log_activity(
            org_id=ctx.tenant_id,
            event_type="payment_received",
            message=f"Received {sum(p['amount_cents'] for p in cleaned)} cents for invoice {invoice.invoice_number}",
            actor_id=ctx.actor_id,
            customer_id=invoice.customer_id,
            invoice_id=invoice.id,
            details={"payments": cleaned, "status": status},
        )
        return {
            "invoice": invoice.to_dict(),
            "transactions": [tx.to_dict() for tx in transactions],
            "total_paid_cents": paid,
            "balance_due_cents": max(invoice.total_cents - paid, 0),
        }

    return run_workflow(
        ctx,
        "receive_payment",
        _op,
        tables=("transactions", "customers", "invoices", "activity_log"),
    )
