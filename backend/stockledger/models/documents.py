from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


QUOTATION_STATUS_DRAFT = "Draft"
QUOTATION_STATUS_CONVERTED = "Converted"


class Quotation(db.Model):
    """
    Price quotation. Editable and deletable while Draft; terminal once
    Converted into an invoice. Never touches stock or balances itself.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("org_id", "quotation_number", name="uq_quotations_org_number"),
        db.Index("ix_quotations_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    quotation_number = db.Column(db.String(64), nullable=False)
    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_charge_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=QUOTATION_STATUS_DRAFT)
    converted_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("quotations", lazy=True))
    line_items = db.relationship(
        "DocumentLineItem",
        foreign_keys="DocumentLineItem.quotation_id",
        order_by="DocumentLineItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "quotation_number": self.quotation_number,
            "issue_date": to_utc_z(self.issue_date),
            "expiry_date": to_utc_z(self.expiry_date),
            "subtotal_cents": self.subtotal_cents,
            "delivery_charge_cents": self.delivery_charge_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "converted_invoice_id": self.converted_invoice_id,
            "notes": self.notes,
            "line_items": [li.to_dict() for li in self.line_items],
            "created_at": to_utc_z(self.created_at),
        }


class Return(db.Model):
    """
    Customer return against an invoice.

    Quantities are tracked on the original SaleItems (quantity_returned).
    When restocked, each returned product gets its own synthetic lot whose
    return_id points here, so deleting the return can take exactly those
    units back out of stock.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("org_id", "return_receipt_number", name="uq_returns_org_number"),
        db.Index("ix_returns_original_invoice", "original_invoice_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    original_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    return_receipt_number = db.Column(db.String(64), nullable=False)
    return_date = db.Column(db.DateTime(timezone=True), nullable=False)

    total_refund_cents = db.Column(db.Integer, nullable=False, default=0)
    total_expense_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_charge_refund_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    restocked = db.Column(db.Boolean, nullable=False, default=False)

    created_by_actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    original_invoice = db.relationship("Invoice", backref=db.backref("returns", lazy=True))
    items = db.relationship("ReturnItem", order_by="ReturnItem.id", cascade="all, delete-orphan", lazy=True)
    expenses = db.relationship("ReturnExpense", order_by="ReturnExpense.id", cascade="all, delete-orphan", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "original_invoice_id": self.original_invoice_id,
            "customer_id": self.customer_id,
            "return_receipt_number": self.return_receipt_number,
            "return_date": to_utc_z(self.return_date),
            "total_refund_cents": self.total_refund_cents,
            "total_expense_cents": self.total_expense_cents,
            "delivery_charge_refund_cents": self.delivery_charge_refund_cents,
            "notes": self.notes,
            "restocked": self.restocked,
            "items": [i.to_dict() for i in self.items],
            "expenses": [e.to_dict() for e in self.expenses],
            "created_at": to_utc_z(self.created_at),
        }


class ReturnItem(db.Model):
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    sale_item = db.relationship("SaleItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


class ReturnExpense(db.Model):
    __tablename__ = "return_expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"id": self.id, "description": self.description, "amount_cents": self.amount_cents}


class DocumentSequence(db.Model):
    """Per-tenant counter row for one document kind (INVOICE, QUOTATION, ...)."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class ActivityLog(db.Model):
    """
    Append-only business audit trail ("who did what").

    Document links are plain integers: the trail outlives deleted documents.
    """
    __tablename__ = "activity_log"
    __table_args__ = (
        db.Index("ix_activity_log_org_occurred", "org_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    actor_id = db.Column(db.Integer, nullable=True)

    customer_id = db.Column(db.Integer, nullable=True, index=True)
    invoice_id = db.Column(db.Integer, nullable=True)
    quotation_id = db.Column(db.Integer, nullable=True)
    return_id = db.Column(db.Integer, nullable=True)
    repair_id = db.Column(db.Integer, nullable=True)

    details = db.Column(db.JSON, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "event_type": self.event_type,
            "message": self.message,
            "actor_id": self.actor_id,
            "customer_id": self.customer_id,
            "invoice_id": self.invoice_id,
            "quotation_id": self.quotation_id,
            "return_id": self.return_id,
            "repair_id": self.repair_id,
            "details": self.details,
            "occurred_at": to_utc_z(self.occurred_at),
        }
