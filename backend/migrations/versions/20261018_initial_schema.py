"""Initial stockledger schema: tenants, catalog, lots, documents, ledger

Revision ID: 20261018_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_organizations_code", "organizations", ["code"], unique=True)
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"], unique=False)

    op.create_table(
        "organization_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("updated_by_actor_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "key", name="uq_org_settings_key"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_organization_settings_org_id", "organization_settings", ["org_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("product_type", sa.String(length=16), nullable=False),
        sa.Column("warranty_period_value", sa.Integer(), nullable=True),
        sa.Column("warranty_period_unit", sa.String(length=8), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("product_type IN ('standard', 'bundle')", name="ck_products_type"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "sku", name="uq_products_org_sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_org_id", "products", ["org_id"], unique=False)
    op.create_index("ix_products_org_name", "products", ["org_id", "name"], unique=False)

    op.create_table(
        "bundle_components",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bundle_product_id", sa.Integer(), nullable=False),
        sa.Column("sub_product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_bundle_components_qty_positive"),
        sa.ForeignKeyConstraint(["bundle_product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["sub_product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bundle_product_id", "sub_product_id", name="uq_bundle_components_pair"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_bundle_components_bundle_product_id", "bundle_components", ["bundle_product_id"], unique=False)
    op.create_index("ix_bundle_components_sub_product_id", "bundle_components", ["sub_product_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("customer_number", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_internal", sa.Boolean(), nullable=False),
        sa.Column("balance_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "customer_number", name="uq_customers_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_org_id", "customers", ["org_id"], unique=False)
    op.create_index("ix_customers_org_name", "customers", ["org_id", "name"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_org_id", "document_sequences", ["org_id"], unique=False)
    op.create_index("ix_document_sequences_document_type", "document_sequences", ["document_type"], unique=False)

    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("quotation_id", sa.Integer(), nullable=True),
        sa.Column("return_id", sa.Integer(), nullable=True),
        sa.Column("repair_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_activity_log_org_id", "activity_log", ["org_id"], unique=False)
    op.create_index("ix_activity_log_event_type", "activity_log", ["event_type"], unique=False)
    op.create_index("ix_activity_log_customer_id", "activity_log", ["customer_id"], unique=False)
    op.create_index("ix_activity_log_org_occurred", "activity_log", ["org_id", "occurred_at"], unique=False)

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("delivery_charge_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("return_status", sa.String(length=32), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("stock_applied", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "invoice_number", name="uq_invoices_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoices_org_id", "invoices", ["org_id"], unique=False)
    op.create_index("ix_invoices_org_status", "invoices", ["org_id", "status"], unique=False)
    op.create_index("ix_invoices_customer", "invoices", ["customer_id"], unique=False)

    op.create_table(
        "quotations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("quotation_number", sa.String(length=64), nullable=False),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("delivery_charge_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("converted_invoice_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["converted_invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "quotation_number", name="uq_quotations_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_quotations_org_id", "quotations", ["org_id"], unique=False)
    op.create_index("ix_quotations_customer_id", "quotations", ["customer_id"], unique=False)
    op.create_index("ix_quotations_converted_invoice_id", "quotations", ["converted_invoice_id"], unique=False)
    op.create_index("ix_quotations_org_status", "quotations", ["org_id", "status"], unique=False)

    op.create_table(
        "document_line_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("quotation_id", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("line_ref", sa.String(length=64), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False),
        sa.Column("warranty_period_value", sa.Integer(), nullable=True),
        sa.Column("warranty_period_unit", sa.String(length=8), nullable=True),
        sa.CheckConstraint("(invoice_id IS NULL) <> (quotation_id IS NULL)", name="ck_line_items_single_parent"),
        sa.CheckConstraint("kind IN ('standard', 'bundle', 'custom')", name="ck_line_items_kind"),
        sa.CheckConstraint("quantity > 0", name="ck_line_items_qty_positive"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["quotation_id"], ["quotations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_line_items_invoice_id", "document_line_items", ["invoice_id"], unique=False)
    op.create_index("ix_document_line_items_quotation_id", "document_line_items", ["quotation_id"], unique=False)
    op.create_index("ix_document_line_items_product_id", "document_line_items", ["product_id"], unique=False)

    op.create_table(
        "line_item_components",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("line_item_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("sub_product_id", sa.Integer(), nullable=False),
        sa.Column("sub_product_name", sa.String(length=255), nullable=False),
        sa.Column("sub_product_sku", sa.String(length=64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["line_item_id"], ["document_line_items.id"]),
        sa.ForeignKeyConstraint(["sub_product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_line_item_components_line_item_id", "line_item_components", ["line_item_id"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("sale_date", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_org_id", "sales", ["org_id"], unique=False)
    op.create_index("ix_sales_customer_id", "sales", ["customer_id"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("line_item_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_price_cents", sa.Integer(), nullable=False),
        sa.Column("quantity_returned", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "quantity_returned >= 0 AND quantity_returned <= quantity",
            name="ck_sale_items_returned_bounds",
        ),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["line_item_id"], ["document_line_items.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"], unique=False)
    op.create_index("ix_sale_items_line_item_id", "sale_items", ["line_item_id"], unique=False)
    op.create_index("ix_sale_items_product_id", "sale_items", ["product_id"], unique=False)

    op.create_table(
        "returns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("original_invoice_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("return_receipt_number", sa.String(length=64), nullable=False),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_refund_cents", sa.Integer(), nullable=False),
        sa.Column("total_expense_cents", sa.Integer(), nullable=False),
        sa.Column("delivery_charge_refund_cents", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("restocked", sa.Boolean(), nullable=False),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["original_invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "return_receipt_number", name="uq_returns_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_returns_org_id", "returns", ["org_id"], unique=False)
    op.create_index("ix_returns_customer_id", "returns", ["customer_id"], unique=False)
    op.create_index("ix_returns_original_invoice", "returns", ["original_invoice_id"], unique=False)

    op.create_table(
        "return_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_id", sa.Integer(), nullable=False),
        sa.Column("sale_item_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_return_items_qty_positive"),
        sa.ForeignKeyConstraint(["return_id"], ["returns.id"]),
        sa.ForeignKeyConstraint(["sale_item_id"], ["sale_items.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_return_items_return_id", "return_items", ["return_id"], unique=False)
    op.create_index("ix_return_items_sale_item_id", "return_items", ["sale_item_id"], unique=False)

    op.create_table(
        "return_expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["return_id"], ["returns.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_return_expenses_return_id", "return_expenses", ["return_id"], unique=False)

    op.create_table(
        "damaged_stock_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("repair_id", sa.Integer(), nullable=True),
        sa.Column("logged_by_actor_id", sa.Integer(), nullable=True),
        sa.Column("logged_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_damaged_stock_log_org_id", "damaged_stock_log", ["org_id"], unique=False)
    op.create_index("ix_damaged_stock_log_product_id", "damaged_stock_log", ["product_id"], unique=False)
    op.create_index("ix_damaged_stock_log_repair_id", "damaged_stock_log", ["repair_id"], unique=False)
    op.create_index("ix_damaged_stock_org_status", "damaged_stock_log", ["org_id", "status"], unique=False)

    op.create_table(
        "repairs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("repair_number", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("original_invoice_id", sa.Integer(), nullable=True),
        sa.Column("original_sale_item_id", sa.Integer(), nullable=True),
        sa.Column("damage_log_id", sa.Integer(), nullable=True),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_serial_number", sa.String(length=128), nullable=True),
        sa.Column("reported_problem", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_warranty", sa.Boolean(), nullable=False),
        sa.Column("warranty_void_reason", sa.Text(), nullable=True),
        sa.Column("repair_fee_cents", sa.Integer(), nullable=True),
        sa.Column("repair_invoice_id", sa.Integer(), nullable=True),
        sa.Column("replacement_invoice_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["original_invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["original_sale_item_id"], ["sale_items.id"]),
        sa.ForeignKeyConstraint(["damage_log_id"], ["damaged_stock_log.id"]),
        sa.ForeignKeyConstraint(["repair_invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["replacement_invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "repair_number", name="uq_repairs_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_repairs_org_id", "repairs", ["org_id"], unique=False)
    op.create_index("ix_repairs_customer_id", "repairs", ["customer_id"], unique=False)
    op.create_index("ix_repairs_org_status", "repairs", ["org_id", "status"], unique=False)

    op.create_table(
        "repair_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("repair_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_repair_items_qty_positive"),
        sa.ForeignKeyConstraint(["repair_id"], ["repairs.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_repair_items_repair_id", "repair_items", ["repair_id"], unique=False)

    op.create_table(
        "inventory_lots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity_purchased", sa.Integer(), nullable=False),
        sa.Column("quantity_remaining", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("supplier", sa.String(length=255), nullable=True),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("return_id", sa.Integer(), nullable=True),
        sa.Column("repair_id", sa.Integer(), nullable=True),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "quantity_remaining >= 0 AND quantity_remaining <= quantity_purchased",
            name="ck_inventory_lots_remaining_bounds",
        ),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["return_id"], ["returns.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["repair_id"], ["repairs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_lots_org_id", "inventory_lots", ["org_id"], unique=False)
    op.create_index("ix_inventory_lots_product_id", "inventory_lots", ["product_id"], unique=False)
    op.create_index("ix_inventory_lots_purchase_date", "inventory_lots", ["purchase_date"], unique=False)
    op.create_index("ix_inventory_lots_source", "inventory_lots", ["source"], unique=False)
    op.create_index("ix_inventory_lots_return_id", "inventory_lots", ["return_id"], unique=False)
    op.create_index("ix_inventory_lots_repair_id", "inventory_lots", ["repair_id"], unique=False)
    op.create_index("ix_inventory_lots_fifo", "inventory_lots", ["product_id", "purchase_date", "id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("return_id", sa.Integer(), nullable=True),
        sa.Column("repair_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("created_by_actor_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_non_negative"),
        sa.CheckConstraint("type IN ('debit', 'credit')", name="ck_transactions_type"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["return_id"], ["returns.id"]),
        sa.ForeignKeyConstraint(["repair_id"], ["repairs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_transactions_org_id", "transactions", ["org_id"], unique=False)
    op.create_index("ix_transactions_customer_id", "transactions", ["customer_id"], unique=False)
    op.create_index("ix_transactions_invoice_id", "transactions", ["invoice_id"], unique=False)
    op.create_index("ix_transactions_return_id", "transactions", ["return_id"], unique=False)
    op.create_index("ix_transactions_repair_id", "transactions", ["repair_id"], unique=False)
    op.create_index("ix_transactions_customer_date", "transactions", ["customer_id", "occurred_at"], unique=False)


def downgrade():
    for table in (
        "transactions",
        "inventory_lots",
        "repair_items",
        "repairs",
        "damaged_stock_log",
        "return_expenses",
        "return_items",
        "returns",
        "sale_items",
        "sales",
        "line_item_components",
        "document_line_items",
        "quotations",
        "invoices",
        "activity_log",
        "document_sequences",
        "customers",
        "bundle_components",
        "products",
        "organization_settings",
        "organizations",
    ):
        op.drop_table(table)
