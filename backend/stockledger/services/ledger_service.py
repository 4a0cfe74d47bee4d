# Overview: Service-layer operations for the financial ledger; signed customer transactions and cached balances.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import case, func

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import Customer, LedgerTransaction
from ..models.customers import TRANSACTION_CREDIT, TRANSACTION_DEBIT
from .concurrency import lock_for_update
from stockledger.time_utils import utcnow

"""
Financial ledger invariants (authoritative)

- customer.balance_cents == sum(credit amounts) - sum(debit amounts) over the
  customer's existing transactions, at every commit.
- The balance is changed only here, together with the transaction row.
- Amounts are non-negative integers in cents; the type carries the sign.
- A reversal applies the exact inverse adjustment and deletes the row.
- Transactions point at the document that produced them (invoice_id,
  return_id, repair_id); lookups never match on description text.
"""


def _locked_customer(customer_id: int) -> Customer:
    customer = (
        lock_for_update(db.session.query(Customer).filter_by(id=customer_id))
        .populate_existing()
        .first()
    )
    if not customer:
        raise NotFound(f"Customer {customer_id} not found")
    return customer


def balance_delta(tx_type: str, amount_cents: int) -> int:
    return amount_cents if tx_type == TRANSACTION_CREDIT else -amount_cents


def record_transaction(
    *,
    customer_id: int,
    tx_type: str,
    amount_cents: int,
    description: str,
    invoice_id: int | None = None,
    return_id: int | None = None,
    repair_id: int | None = None,
    payment_method: str | None = None,
    actor_id: int | None = None,
    occurred_at: Optional[datetime] = None,
) -> LedgerTransaction:
    """
    Insert a ledger entry and move the customer's balance with it.

    debit: the customer owes more (balance goes down).
    credit: the customer paid or received credit (balance goes up).
    """
    if tx_type not in (TRANSACTION_DEBIT, TRANSACTION_CREDIT):
        raise ValidationError(f"Invalid transaction type: {tx_type}")
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents < 0:
        raise ValidationError("amount_cents must be a non-negative integer")

    customer = _locked_customer(customer_id)

    tx = LedgerTransaction(
        org_id=customer.org_id,
        customer_id=customer.id,
        type=tx_type,
        amount_cents=amount_cents,
        description=description,
        payment_method=payment_method,
        invoice_id=invoice_id,
        return_id=return_id,
        repair_id=repair_id,
        occurred_at=occurred_at or utcnow(),
        created_by_actor_id=actor_id,
    )
    customer.balance_cents = (customer.balance_cents or 0) + balance_delta(tx_type, amount_cents)

    db.session.add(tx)
    db.session.flush()
    return tx


def reverse_transaction(tx: LedgerTransaction) -> int:
    """Undo one entry: inverse balance adjustment, then delete. Returns the applied delta."""
    customer = _locked_customer(tx.customer_id)
    delta = -balance_delta(tx.type, tx.amount_cents)
    customer.balance_cents = (customer.balance_cents or 0) + delta
    db.session.delete(tx)
    db.session.flush()
    return delta


def linked_transactions(
    *,
    invoice_id: int | None = None,
    return_id: int | None = None,
    repair_id: int | None = None,
) -> list[LedgerTransaction]:
    if not any((invoice_id, return_id, repair_id)):
        raise ValidationError("A document link is required")
    query = db.session.query(LedgerTransaction)
    if invoice_id:
        query = query.filter(LedgerTransaction.invoice_id == invoice_id)
    if return_id:
        query = query.filter(LedgerTransaction.return_id == return_id)
    if repair_id:
        query = query.filter(LedgerTransaction.repair_id == repair_id)
    return query.order_by(LedgerTransaction.id).all()


def reverse_linked_transactions(
    *,
    invoice_id: int | None = None,
    return_id: int | None = None,
    repair_id: int | None = None,
) -> list[int]:
    """Reverse every entry produced by a document. Returns the ids removed."""
    removed = []
    for tx in linked_transactions(invoice_id=invoice_id, return_id=return_id, repair_id=repair_id):
        removed.append(tx.id)
        reverse_transaction(tx)
    return removed


def total_paid_cents(invoice_id: int) -> int:
    """Sum of credit entries linked to an invoice."""
    total = (
        db.session.query(func.coalesce(func.sum(LedgerTransaction.amount_cents), 0))
        .filter(
            LedgerTransaction.invoice_id == invoice_id,
            LedgerTransaction.type == TRANSACTION_CREDIT,
        )
        .scalar()
    )
    return int(total or 0)


def customer_statement(customer_id: int, org_id: int) -> list[LedgerTransaction]:
    customer = db.session.query(Customer).filter_by(id=customer_id, org_id=org_id).first()
    if not customer:
        raise NotFound(f"Customer {customer_id} not found")
    return (
        db.session.query(LedgerTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(LedgerTransaction.occurred_at, LedgerTransaction.id)
        .all()
    )


def ledger_sum_cents(customer_id: int) -> int:
    signed = case(
        (LedgerTransaction.type == TRANSACTION_CREDIT, LedgerTransaction.amount_cents),
        else_=-LedgerTransaction.amount_cents,
    )
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(LedgerTransaction.customer_id == customer_id)
        .scalar()
    )
    return int(total or 0)


def verify_balances(org_id: int | None = None) -> list[dict]:
    """
    Customers whose cached balance disagrees with their transactions.

    An empty list means the ledger invariant holds.
    """
    query = db.session.query(Customer)
    if org_id:
        query = query.filter_by(org_id=org_id)

    mismatches = []
    for customer in query.order_by(Customer.id).all():
        expected = ledger_sum_cents(customer.id)
        if expected != customer.balance_cents:
            mismatches.append({
                "customer_id": customer.id,
                "org_id": customer.org_id,
                "balance_cents": customer.balance_cents,
                "ledger_sum_cents": expected,
            })
    return mismatches
