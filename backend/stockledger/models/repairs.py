from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


REPAIR_STATUS_RECEIVED = "Received"
REPAIR_STATUS_IN_PROGRESS = "In Progress"
REPAIR_STATUS_COMPLETED = "Completed"
REPAIR_STATUS_REPLACED = "Completed (Replaced)"
REPAIR_STATUS_CREDITED = "Completed (Credit)"
REPAIR_STATUS_REPAIRED = "Repaired"
REPAIR_STATUS_UNREPAIRABLE = "Unrepairable"

REPAIR_TERMINAL_STATUSES = frozenset({
    REPAIR_STATUS_COMPLETED,
    REPAIR_STATUS_REPLACED,
    REPAIR_STATUS_CREDITED,
    REPAIR_STATUS_REPAIRED,
    REPAIR_STATUS_UNREPAIRABLE,
})


class Repair(db.Model):
    """
    Repair order.

    Customer repairs come from a receipt (original invoice + sale item, with
    warranty evaluated at intake) or are free-form. Internal repairs come
    from a damaged-stock log entry and belong to the tenant's Internal
    customer.
    """
    __tablename__ = "repairs"
    __table_args__ = (
        db.UniqueConstraint("org_id", "repair_number", name="uq_repairs_org_number"),
        db.Index("ix_repairs_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    repair_number = db.Column(db.String(64), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    original_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    original_sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=True)
    damage_log_id = db.Column(db.Integer, db.ForeignKey("damaged_stock_log.id"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_serial_number = db.Column(db.String(128), nullable=True)
    reported_problem = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(32), nullable=False, default=REPAIR_STATUS_RECEIVED)
    received_date = db.Column(db.DateTime(timezone=True), nullable=False)
    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    is_warranty = db.Column(db.Boolean, nullable=False, default=False)
    warranty_void_reason = db.Column(db.Text, nullable=True)

    repair_fee_cents = db.Column(db.Integer, nullable=True)
    repair_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    replacement_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("repairs", lazy=True))
    damage_log = db.relationship("DamagedStockLog", foreign_keys=[damage_log_id])
    original_sale_item = db.relationship("SaleItem", foreign_keys=[original_sale_item_id])
    items = db.relationship("RepairItem", order_by="RepairItem.id", cascade="all, delete-orphan", lazy=True)

    @property
    def is_internal(self) -> bool:
        return self.damage_log_id is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in REPAIR_TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "repair_number": self.repair_number,
            "customer_id": self.customer_id,
            "original_invoice_id": self.original_invoice_id,
            "original_sale_item_id": self.original_sale_item_id,
            "damage_log_id": self.damage_log_id,
            "product_name": self.product_name,
            "product_serial_number": self.product_serial_number,
            "reported_problem": self.reported_problem,
            "status": self.status,
            "received_date": to_utc_z(self.received_date),
            "completed_date": to_utc_z(self.completed_date),
            "is_warranty": self.is_warranty,
            "warranty_void_reason": self.warranty_void_reason,
            "repair_fee_cents": self.repair_fee_cents,
            "repair_invoice_id": self.repair_invoice_id,
            "replacement_invoice_id": self.replacement_invoice_id,
            "notes": self.notes,
            "items": [i.to_dict() for i in self.items],
            "created_at": to_utc_z(self.created_at),
        }


class RepairItem(db.Model):
    """Spare part consumed by a repair (stock is deducted when added)."""
    __tablename__ = "repair_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_repair_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    repair_id = db.Column(db.Integer, db.ForeignKey("repairs.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "repair_id": self.repair_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }
