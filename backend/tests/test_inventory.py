# Overview: Pytest coverage for lot-based stock, FIFO deduction, bundles and damaged stock.

import pytest

from stockledger.errors import InsufficientStock, ValidationError
from stockledger.extensions import db
from stockledger.models import Invoice, InventoryLot, LedgerTransaction
from stockledger.models.inventory import DAMAGE_STATUS_DAMAGED, LOT_SOURCE_PURCHASE
from stockledger.services import inventory_service, invoice_service

from conftest import add_lot


class TestFifoDeduction:
    def test_sale_drains_oldest_lot_first(self, ctx, customer, widget):
        older = add_lot(widget, 5, unit_cost_cents=1000, days_ago=10)
        newer = add_lot(widget, 5, unit_cost_cents=1200, days_ago=1)

        invoice_service.create_invoice(
            ctx,
            customer_id=customer.id,
            line_items=[{"product_id": widget.id, "quantity": 7}],
        )

        db.session.refresh(older)
        db.session.refresh(newer)
        assert older.quantity_remaining == 0
        assert newer.quantity_remaining == 3
        assert inventory_service.available_stock(widget.id) == 3

    def test_insufficient_stock_leaves_lots_untouched(self, ctx, customer, widget):
        lot = add_lot(widget, 4, unit_cost_cents=1000)

        with pytest.raises(InsufficientStock) as exc:
            invoice_service.create_invoice(
                ctx,
                customer_id=customer.id,
                line_items=[{"product_id": widget.id, "quantity": 5}],
            )

        assert exc.value.details["requested"] == 5
        assert exc.value.details["available"] == 4
        db.session.refresh(lot)
        assert lot.quantity_remaining == 4
        assert db.session.query(Invoice).count() == 0

    def test_multi_line_failure_is_atomic(self, ctx, customer, widget, gadget):
        widget_lot = add_lot(widget, 10)
        gadget_lot = add_lot(gadget, 1)

        with pytest.raises(InsufficientStock):
            invoice_service.create_invoice(
                ctx,
                customer_id=customer.id,
                line_items=[
                    {"product_id": widget.id, "quantity": 3},
                    {"product_id": gadget.id, "quantity": 2},
                ],
            )

        db.session.refresh(widget_lot)
        db.session.refresh(gadget_lot)
        assert widget_lot.quantity_remaining == 10
        assert gadget_lot.quantity_remaining == 1
        db.session.refresh(customer)
        assert customer.balance_cents == 0
        assert db.session.query(LedgerTransaction).count() == 0

    def test_two_lines_for_same_product_are_summed(self, ctx, customer, widget):
        add_lot(widget, 5)
        with pytest.raises(InsufficientStock):
            invoice_service.create_invoice(
                ctx,
                customer_id=customer.id,
                line_items=[
                    {"product_id": widget.id, "quantity": 3},
                    {"product_id": widget.id, "quantity": 3},
                ],
            )
        assert inventory_service.available_stock(widget.id) == 5


class TestBundles:
    def test_max_sellable_from_components(self, db_session, kit, widget, gadget):
        add_lot(widget, 10)
        add_lot(gadget, 3)
        assert inventory_service.bundle_max_sellable(kit) == 3
        assert inventory_service.product_stock(kit) == 3

    def test_selling_bundle_deducts_components(self, ctx, customer, kit, widget, gadget):
        add_lot(widget, 10)
        add_lot(gadget, 3)

        invoice_service.create_invoice(
            ctx,
            customer_id=customer.id,
            line_items=[{"product_id": kit.id, "quantity": 2}],
        )

        assert inventory_service.available_stock(widget.id) == 6
        assert inventory_service.available_stock(gadget.id) == 1
        assert inventory_service.bundle_max_sellable(kit) == 1

    def test_selling_more_bundles_than_buildable_fails(self, ctx, customer, kit, widget, gadget):
        add_lot(widget, 10)
        add_lot(gadget, 3)

        with pytest.raises(InsufficientStock) as exc:
            invoice_service.create_invoice(
                ctx,
                customer_id=customer.id,
                line_items=[{"product_id": kit.id, "quantity": 4}],
            )

        assert exc.value.details["product_id"] == kit.id
        assert exc.value.details["available"] == 3
        assert inventory_service.available_stock(widget.id) == 10
        assert inventory_service.available_stock(gadget.id) == 3

    def test_bundle_and_component_lines_compete(self, ctx, customer, kit, widget, gadget):
        add_lot(widget, 4)
        add_lot(gadget, 5)
        # 2 kits need 4 widgets; the extra widget line cannot be covered
        with pytest.raises(InsufficientStock):
            invoice_service.create_invoice(
                ctx,
                customer_id=customer.id,
                line_items=[
                    {"product_id": kit.id, "quantity": 2},
                    {"product_id": widget.id, "quantity": 1},
                ],
            )
        assert inventory_service.available_stock(widget.id) == 4

    def test_restock_on_bundle_is_refused(self, db_session, org_a, kit):
        with pytest.raises(ValidationError):
            inventory_service.restock(
                org_id=org_a.id,
                product_id=kit.id,
                quantity=1,
                source=LOT_SOURCE_PURCHASE,
            )


class TestPurchasesAndDamage:
    def test_receive_purchase_creates_lot(self, ctx, widget, changes):
        lot = inventory_service.receive_purchase(
            ctx,
            product_id=widget.id,
            quantity=12,
            unit_cost_cents=850,
            purchase_date="2026-01-15",
            supplier="Acme Supply",
        )

        assert lot.quantity_purchased == 12
        assert lot.quantity_remaining == 12
        assert lot.supplier == "Acme Supply"
        assert lot.purchase_date.year == 2026
        assert "inventory_lots" in changes

    def test_receive_purchase_rejects_bad_quantity(self, ctx, widget):
        with pytest.raises(ValidationError):
            inventory_service.receive_purchase(ctx, product_id=widget.id, quantity=0)

    def test_receive_purchase_rejects_bundle(self, ctx, kit):
        with pytest.raises(ValidationError):
            inventory_service.receive_purchase(ctx, product_id=kit.id, quantity=1)

    def test_log_damaged_stock_removes_units(self, ctx, widget):
        add_lot(widget, 3)
        entry = inventory_service.log_damaged_stock(ctx, product_id=widget.id, quantity=2, notes="Dropped")

        assert entry.status == DAMAGE_STATUS_DAMAGED
        assert inventory_service.available_stock(widget.id) == 1
        assert [e.id for e in inventory_service.list_damaged_stock(ctx.tenant_id)] == [entry.id]

    def test_log_damaged_stock_needs_stock(self, ctx, widget):
        with pytest.raises(InsufficientStock):
            inventory_service.log_damaged_stock(ctx, product_id=widget.id, quantity=1)


class TestVerifyStock:
    def test_consistent_lots_report_nothing(self, db_session, org_a, widget):
        add_lot(widget, 3)
        assert inventory_service.verify_stock(org_a.id) == []

    def test_stock_summary_lists_bundles_by_capacity(self, db_session, org_a, kit, widget, gadget):
        add_lot(widget, 6)
        add_lot(gadget, 9)
        rows = {row["sku"]: row["available"] for row in inventory_service.stock_summary(org_a.id)}
        assert rows == {"KIT-001": 3, "WID-001": 6, "GAD-001": 9}

    def test_lots_listed_in_fifo_order(self, db_session, org_a, widget):
        newer = add_lot(widget, 1, days_ago=1)
        older = add_lot(widget, 1, days_ago=5)
        lots = inventory_service.list_lots(org_a.id, widget.id)
        assert [lot.id for lot in lots] == [older.id, newer.id]
        assert all(isinstance(lot, InventoryLot) for lot in lots)
