from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


PRODUCT_TYPE_STANDARD = "standard"
PRODUCT_TYPE_BUNDLE = "bundle"

WARRANTY_UNITS = ("Days", "Months", "Years")


class Product(db.Model):
    """
    Product master data.

    A bundle is virtual: it owns an ordered list of BundleComponent rows and
    never has lots of its own. Its sellable stock is derived from the
    components. Components are always standard products.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_products_org_sku"),
        db.Index("ix_products_org_name", "org_id", "name"),
        db.CheckConstraint("product_type IN ('standard', 'bundle')", name="ck_products_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    product_type = db.Column(db.String(16), nullable=False, default=PRODUCT_TYPE_STANDARD)

    # Warranty window granted on sale, e.g. 6 Months
    warranty_period_value = db.Column(db.Integer, nullable=True)
    warranty_period_unit = db.Column(db.String(8), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    components = db.relationship(
        "BundleComponent",
        foreign_keys="BundleComponent.bundle_product_id",
        order_by="BundleComponent.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_bundle(self) -> bool:
        return self.product_type == PRODUCT_TYPE_BUNDLE

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} type={self.product_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "product_type": self.product_type,
            "warranty_period_value": self.warranty_period_value,
            "warranty_period_unit": self.warranty_period_unit,
            "is_active": self.is_active,
            "components": [c.to_dict() for c in self.components] if self.is_bundle else [],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BundleComponent(db.Model):
    __tablename__ = "bundle_components"
    __table_args__ = (
        db.UniqueConstraint("bundle_product_id", "sub_product_id", name="uq_bundle_components_pair"),
        db.CheckConstraint("quantity > 0", name="ck_bundle_components_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bundle_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    sub_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Units of the component consumed per unit of bundle
    quantity = db.Column(db.Integer, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    sub_product = db.relationship("Product", foreign_keys=[sub_product_id])

    def to_dict(self) -> dict:
        return {
            "sub_product_id": self.sub_product_id,
            "sub_product_name": self.sub_product.name if self.sub_product else None,
            "sub_product_sku": self.sub_product.sku if self.sub_product else None,
            "quantity": self.quantity,
        }


# Lot sources
LOT_SOURCE_PURCHASE = "PURCHASE"
LOT_SOURCE_RETURN = "RETURN"
LOT_SOURCE_INVOICE_REVERSAL = "INVOICE_REVERSAL"
LOT_SOURCE_REPAIR_PART = "REPAIR_PART"
LOT_SOURCE_REPAIRED = "REPAIRED"


class InventoryLot(db.Model):
    """
    One batch of stock for a standard product.

    Purchases create lots; returns, invoice reversals and repairs create
    synthetic lots. Sales consume lots oldest purchase_date first. Lots are
    never deleted outside a tenant data reset.
    """
    __tablename__ = "inventory_lots"
    __table_args__ = (
        db.CheckConstraint(
            "quantity_remaining >= 0 AND quantity_remaining <= quantity_purchased",
            name="ck_inventory_lots_remaining_bounds",
        ),
        db.Index("ix_inventory_lots_fifo", "product_id", "purchase_date", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    quantity_purchased = db.Column(db.Integer, nullable=False)
    quantity_remaining = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    source = db.Column(db.String(32), nullable=False, default=LOT_SOURCE_PURCHASE, index=True)
    supplier = db.Column(db.String(255), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    # Provenance of synthetic lots; a return reversal locates its lot here
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id", ondelete="SET NULL"), nullable=True, index=True)
    repair_id = db.Column(db.Integer, db.ForeignKey("repairs.id", ondelete="SET NULL"), nullable=True, index=True)

    created_by_actor_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("lots", lazy=True))

    def __repr__(self) -> str:
        return f"<InventoryLot id={self.id} product_id={self.product_id} remaining={self.quantity_remaining}/{self.quantity_purchased}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "purchase_date": to_utc_z(self.purchase_date),
            "quantity_purchased": self.quantity_purchased,
            "quantity_remaining": self.quantity_remaining,
            "unit_cost_cents": self.unit_cost_cents,
            "source": self.source,
            "supplier": self.supplier,
            "note": self.note,
            "return_id": self.return_id,
            "repair_id": self.repair_id,
            "created_at": to_utc_z(self.created_at),
        }


DAMAGE_STATUS_DAMAGED = "Damaged"
DAMAGE_STATUS_IN_REPAIR = "In Repair"
DAMAGE_STATUS_REPAIRED = "Repaired"
DAMAGE_STATUS_UNREPAIRABLE = "Unrepairable"


class DamagedStockLog(db.Model):
    """Units taken out of sellable stock because they are damaged."""
    __tablename__ = "damaged_stock_log"
    __table_args__ = (
        db.Index("ix_damaged_stock_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=DAMAGE_STATUS_DAMAGED)

    # Repair working on this entry (repairs.damage_log_id points back here)
    repair_id = db.Column(db.Integer, nullable=True, index=True)

    logged_by_actor_id = db.Column(db.Integer, nullable=True)
    logged_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "notes": self.notes,
            "status": self.status,
            "repair_id": self.repair_id,
            "logged_by_actor_id": self.logged_by_actor_id,
            "logged_at": to_utc_z(self.logged_at),
        }
