from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


INTERNAL_CUSTOMER_NAME = "Internal"


class Customer(db.Model):
    """
    Customer with a cached signed balance.

    balance_cents < 0: the customer owes the store.
    balance_cents > 0: the store holds credit for the customer.

    The balance is only ever changed by ledger_service together with the
    LedgerTransaction that justifies it, so it always equals the signed sum
    of the customer's existing transactions (debit subtracts, credit adds).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "customer_number", name="uq_customers_org_number"),
        db.Index("ix_customers_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    customer_number = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    # The tenant's own pseudo-customer used for internal (damaged stock) repairs
    is_internal = db.Column(db.Boolean, nullable=False, default=False)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    organization = db.relationship("Organization", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "customer_number": self.customer_number,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "is_internal": self.is_internal,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


TRANSACTION_DEBIT = "debit"
TRANSACTION_CREDIT = "credit"


class LedgerTransaction(db.Model):
    """
    Signed money movement against a customer.

    Immutable once written. Reversal deletes the row and applies the inverse
    balance adjustment in the same unit of work. The producing document is
    referenced by explicit foreign keys, never by description text.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_non_negative"),
        db.CheckConstraint("type IN ('debit', 'credit')", name="ck_transactions_type"),
        db.Index("ix_transactions_customer_date", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    payment_method = db.Column(db.String(64), nullable=True)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=True, index=True)
    repair_id = db.Column(db.Integer, db.ForeignKey("repairs.id"), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy="dynamic"))

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.type == TRANSACTION_CREDIT else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "customer_id": self.customer_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "payment_method": self.payment_method,
            "invoice_id": self.invoice_id,
            "return_id": self.return_id,
            "repair_id": self.repair_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_actor_id": self.created_by_actor_id,
        }
