from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


# Invoice status
INVOICE_STATUS_DRAFT = "Draft"
INVOICE_STATUS_SENT = "Sent"
INVOICE_STATUS_PARTIALLY_PAID = "Partially Paid"
INVOICE_STATUS_PAID = "Paid"
INVOICE_STATUS_OVERDUE = "Overdue"

# Invoice return status
RETURN_STATUS_NONE = "None"
RETURN_STATUS_PARTIAL = "Partially Returned"
RETURN_STATUS_FULL = "Fully Returned"

# Workflow that issued the invoice
INVOICE_SOURCE_SALE = "SALE"
INVOICE_SOURCE_QUOTATION = "QUOTATION"
INVOICE_SOURCE_REPAIR = "REPAIR"
INVOICE_SOURCE_REPLACEMENT = "REPLACEMENT"

# Line item variants
LINE_KIND_STANDARD = "standard"
LINE_KIND_BUNDLE = "bundle"
LINE_KIND_CUSTOM = "custom"


class Invoice(db.Model):
    """
    Customer invoice.

    Issued by a sale, a quotation conversion, a repair completion or a repair
    replacement. Always backed by exactly one Sale. stock_applied records
    whether issuing it consumed stock for its items, which decides whether
    deleting it restocks them.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("org_id", "invoice_number", name="uq_invoices_org_number"),
        db.Index("ix_invoices_org_status", "org_id", "status"),
        db.Index("ix_invoices_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    customer_name = db.Column(db.String(255), nullable=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_charge_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_SENT)
    return_status = db.Column(db.String(32), nullable=False, default=RETURN_STATUS_NONE)

    source = db.Column(db.String(16), nullable=False, default=INVOICE_SOURCE_SALE)
    stock_applied = db.Column(db.Boolean, nullable=False, default=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    line_items = db.relationship(
        "DocumentLineItem",
        foreign_keys="DocumentLineItem.invoice_id",
        order_by="DocumentLineItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "invoice_number": self.invoice_number,
            "issue_date": to_utc_z(self.issue_date),
            "due_date": to_utc_z(self.due_date),
            "subtotal_cents": self.subtotal_cents,
            "delivery_charge_cents": self.delivery_charge_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "return_status": self.return_status,
            "source": self.source,
            "stock_applied": self.stock_applied,
            "notes": self.notes,
            "created_by_actor_id": self.created_by_actor_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["line_items"] = [li.to_dict() for li in self.line_items]
        return data


class DocumentLineItem(db.Model):
    """
    Normalized line item of an invoice or a quotation.

    kind is the variant tag:
    - standard: backed by a standard product, deducts that product's stock
    - bundle: backed by a bundle product, deducts each component; the
      component list at issue time is snapshotted in LineItemComponent
    - custom: free text line (service fee, delivery, ...), never touches stock
    """
    __tablename__ = "document_line_items"
    __table_args__ = (
        db.CheckConstraint(
            "(invoice_id IS NULL) <> (quotation_id IS NULL)",
            name="ck_line_items_single_parent",
        ),
        db.CheckConstraint("kind IN ('standard', 'bundle', 'custom')", name="ck_line_items_kind"),
        db.CheckConstraint("quantity > 0", name="ck_line_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=True, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Client-visible id; custom lines use a "custom-" prefix
    line_ref = db.Column(db.String(64), nullable=False)

    kind = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    warranty_period_value = db.Column(db.Integer, nullable=True)
    warranty_period_unit = db.Column(db.String(8), nullable=True)

    components = db.relationship(
        "LineItemComponent",
        order_by="LineItemComponent.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents - (self.discount_cents or 0)

    def to_dict(self) -> dict:
        data = {
            "id": self.line_ref,
            "kind": self.kind,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "is_bundle": self.kind == LINE_KIND_BUNDLE,
            "warranty_period_days": self.warranty_period_value,
            "warranty_period_unit": self.warranty_period_unit,
        }
        if self.kind == LINE_KIND_BUNDLE:
            data["components"] = [c.to_dict() for c in self.components]
        return data


class LineItemComponent(db.Model):
    """Snapshot of one bundle component at the time the line was written."""
    __tablename__ = "line_item_components"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    line_item_id = db.Column(db.Integer, db.ForeignKey("document_line_items.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    sub_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    sub_product_name = db.Column(db.String(255), nullable=False)
    sub_product_sku = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "sub_product_id": self.sub_product_id,
            "sub_product_name": self.sub_product_name,
            "sub_product_sku": self.sub_product_sku,
            "quantity": self.quantity,
        }


class Sale(db.Model):
    """Backing record for an Invoice: what was sold and how much was returned."""
    __tablename__ = "sales"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, unique=True)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by_actor_id = db.Column(db.Integer, nullable=True)

    invoice = db.relationship("Invoice", backref=db.backref("sale", uselist=False))
    items = db.relationship("SaleItem", order_by="SaleItem.id", cascade="all, delete-orphan", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "customer_id": self.customer_id,
            "invoice_id": self.invoice_id,
            "total_cents": self.total_cents,
            "sale_date": to_utc_z(self.sale_date),
            "items": [i.to_dict() for i in self.items],
        }


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint(
            "quantity_returned >= 0 AND quantity_returned <= quantity",
            name="ck_sale_items_returned_bounds",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    line_item_id = db.Column(db.Integer, db.ForeignKey("document_line_items.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    quantity_returned = db.Column(db.Integer, nullable=False, default=0)

    line_item = db.relationship("DocumentLineItem")

    @property
    def quantity_returnable(self) -> int:
        return self.quantity - (self.quantity_returned or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "line_item_id": self.line_item_id,
            "kind": self.kind,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "quantity_returned": self.quantity_returned,
        }
