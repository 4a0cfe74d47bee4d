# Overview: Pytest coverage for the repair lifecycle, parts, and repair outcomes.

import pytest

from stockledger.errors import AlreadyProcessed, InsufficientStock, OwnershipMismatch, ValidationError
from stockledger.extensions import db
from stockledger.models import DamagedStockLog, Invoice, LedgerTransaction, Repair
from stockledger.models.inventory import (
    DAMAGE_STATUS_IN_REPAIR,
    DAMAGE_STATUS_REPAIRED,
    DAMAGE_STATUS_UNREPAIRABLE,
    LOT_SOURCE_REPAIR_PART,
    LOT_SOURCE_REPAIRED,
)
from stockledger.models.repairs import (
    REPAIR_STATUS_COMPLETED,
    REPAIR_STATUS_CREDITED,
    REPAIR_STATUS_IN_PROGRESS,
    REPAIR_STATUS_RECEIVED,
    REPAIR_STATUS_REPAIRED,
    REPAIR_STATUS_REPLACED,
    REPAIR_STATUS_UNREPAIRABLE,
)
from stockledger.models.sales import INVOICE_SOURCE_REPAIR, INVOICE_SOURCE_REPLACEMENT, INVOICE_STATUS_PAID
from stockledger.services import inventory_service, invoice_service, ledger_service, repair_service

from conftest import add_lot


@pytest.fixture
def receipt(ctx, customer, widget):
    """A sold Widget (one-year warranty) and its sale item."""
    add_lot(widget, 1)
    invoice = invoice_service.create_invoice(
        ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
    )
    return invoice, invoice.sale.items[0]


@pytest.fixture
def walk_in_repair(ctx, customer):
    return repair_service.create_repair(
        ctx, customer_id=customer.id, product_name="Bench Grinder", reported_problem="Won't start"
    )


class TestIntake:
    def test_receipt_repair_under_warranty(self, ctx, customer, receipt):
        invoice, sale_item = receipt

        repair = repair_service.create_repair(
            ctx, invoice_id=invoice.id, sale_item_id=sale_item.id, component_name="Battery",
            reported_problem="Does not charge",
        )

        assert repair.repair_number == "REP-0001"
        assert repair.status == REPAIR_STATUS_RECEIVED
        assert repair.is_warranty
        assert repair.product_name == "Widget (Battery)"
        assert repair.customer_id == customer.id
        assert repair.original_sale_item_id == sale_item.id

    def test_item_must_belong_to_receipt(self, ctx, customer, receipt, gadget):
        invoice, _ = receipt
        add_lot(gadget, 1)
        other = invoice_service.create_invoice(
            ctx, customer_id=customer.id, line_items=[{"product_id": gadget.id, "quantity": 1}]
        )

        with pytest.raises(OwnershipMismatch):
            repair_service.create_repair(ctx, invoice_id=invoice.id, sale_item_id=other.sale.items[0].id)

        assert db.session.query(Repair).count() == 0

    def test_free_form_needs_product_name(self, ctx, customer):
        with pytest.raises(ValidationError):
            repair_service.create_repair(ctx, customer_id=customer.id)

    def test_free_form_is_not_warranty(self, walk_in_repair):
        assert not walk_in_repair.is_warranty
        assert walk_in_repair.original_invoice_id is None

    def test_void_warranty(self, ctx, receipt):
        invoice, sale_item = receipt
        repair = repair_service.create_repair(ctx, invoice_id=invoice.id, sale_item_id=sale_item.id)

        voided = repair_service.void_warranty(ctx, repair.id, "Liquid damage")

        assert not voided.is_warranty
        assert voided.warranty_void_reason == "Liquid damage"
        with pytest.raises(AlreadyProcessed):
            repair_service.void_warranty(ctx, repair.id, "Again")

    def test_only_in_progress_is_a_manual_transition(self, ctx, walk_in_repair):
        with pytest.raises(ValidationError):
            repair_service.update_repair_status(ctx, walk_in_repair.id, REPAIR_STATUS_COMPLETED)

        repair = repair_service.update_repair_status(ctx, walk_in_repair.id, REPAIR_STATUS_IN_PROGRESS)
        assert repair.status == REPAIR_STATUS_IN_PROGRESS


class TestParts:
    def test_parts_are_consumed_and_returned(self, ctx, walk_in_repair, gadget):
        add_lot(gadget, 5, unit_cost_cents=300)

        item = repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=gadget.id, quantity=2)
        assert item.unit_price_cents == 500
        assert inventory_service.available_stock(gadget.id) == 3

        result = repair_service.remove_repair_item(ctx, walk_in_repair.id, item.id)

        assert inventory_service.available_stock(gadget.id) == 5
        lot = [l for l in inventory_service.list_lots(ctx.tenant_id, gadget.id) if l.id == result["restocked_lot_id"]][0]
        assert (lot.quantity_purchased, lot.unit_cost_cents, lot.source) == (2, 500, LOT_SOURCE_REPAIR_PART)

    def test_part_needs_stock(self, ctx, walk_in_repair, gadget):
        add_lot(gadget, 1)
        with pytest.raises(InsufficientStock):
            repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=gadget.id, quantity=2)
        assert inventory_service.available_stock(gadget.id) == 1

    def test_bundles_are_not_parts(self, ctx, walk_in_repair, kit):
        with pytest.raises(ValidationError):
            repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=kit.id, quantity=1)

    def test_reprice_part(self, ctx, walk_in_repair, gadget):
        add_lot(gadget, 1)
        item = repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=gadget.id, quantity=1)

        repriced = repair_service.update_repair_item_price(ctx, walk_in_repair.id, item.id, 0)
        assert repriced.unit_price_cents == 0

    def test_item_of_another_repair(self, ctx, customer, walk_in_repair, gadget):
        add_lot(gadget, 1)
        other = repair_service.create_repair(ctx, customer_id=customer.id, product_name="Drill")
        item = repair_service.add_repair_item(ctx, other.id, product_id=gadget.id, quantity=1)

        with pytest.raises(OwnershipMismatch):
            repair_service.remove_repair_item(ctx, walk_in_repair.id, item.id)


class TestCustomerOutcomes:
    def test_complete_bills_fee_and_parts(self, ctx, customer, walk_in_repair, gadget):
        add_lot(gadget, 3)
        repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=gadget.id, quantity=1)

        repair = repair_service.complete_repair(ctx, walk_in_repair.id, repair_fee_cents=3000)

        assert repair.status == REPAIR_STATUS_COMPLETED
        invoice = db.session.get(Invoice, repair.repair_invoice_id)
        assert invoice.source == INVOICE_SOURCE_REPAIR
        assert invoice.total_cents == 3500
        assert [row.description for row in invoice.line_items] == ["Repair Service for Bench Grinder", "Gadget"]
        assert not invoice.stock_applied
        # the part left stock once, when it was added
        assert inventory_service.available_stock(gadget.id) == 2
        db.session.refresh(customer)
        assert customer.balance_cents == -3500

    def test_complete_without_charges_issues_no_invoice(self, ctx, walk_in_repair):
        repair = repair_service.complete_repair(ctx, walk_in_repair.id)
        assert repair.status == REPAIR_STATUS_COMPLETED
        assert repair.repair_invoice_id is None
        assert db.session.query(Invoice).count() == 0

    def test_terminal_repair_accepts_no_changes(self, ctx, walk_in_repair, gadget):
        add_lot(gadget, 1)
        repair_service.complete_repair(ctx, walk_in_repair.id)

        with pytest.raises(ValidationError):
            repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=gadget.id, quantity=1)
        with pytest.raises(ValidationError):
            repair_service.complete_repair(ctx, walk_in_repair.id, repair_fee_cents=100)

    def test_deleting_repair_invoice_keeps_parts_consumed(self, ctx, walk_in_repair, gadget):
        add_lot(gadget, 2)
        repair_service.add_repair_item(ctx, walk_in_repair.id, product_id=gadget.id, quantity=1)
        repair = repair_service.complete_repair(ctx, walk_in_repair.id, repair_fee_cents=1000)

        result = invoice_service.delete_invoice(ctx, repair.repair_invoice_id)

        assert result["restocked_lot_ids"] == []
        assert result["cleared_repair_ids"] == [walk_in_repair.id]
        assert inventory_service.available_stock(gadget.id) == 1
        assert db.session.get(Repair, walk_in_repair.id).repair_invoice_id is None

    def test_replacement_is_paid_without_debit(self, ctx, customer, receipt, widget):
        invoice, sale_item = receipt
        repair = repair_service.create_repair(ctx, invoice_id=invoice.id, sale_item_id=sale_item.id)
        add_lot(widget, 1)
        db.session.refresh(customer)
        balance_before = customer.balance_cents

        replacement = repair_service.create_replacement(ctx, repair.id, product_id=widget.id)

        assert replacement.status == INVOICE_STATUS_PAID
        assert replacement.source == INVOICE_SOURCE_REPLACEMENT
        assert replacement.due_date == replacement.issue_date
        assert inventory_service.available_stock(widget.id) == 0
        db.session.refresh(customer)
        assert customer.balance_cents == balance_before
        assert db.session.query(LedgerTransaction).filter_by(invoice_id=replacement.id).count() == 0
        assert db.session.get(Repair, repair.id).status == REPAIR_STATUS_REPLACED

    def test_store_credit(self, ctx, customer, walk_in_repair):
        repair = repair_service.issue_credit(ctx, walk_in_repair.id, amount_cents=1500, notes="Goodwill")

        assert repair.status == REPAIR_STATUS_CREDITED
        db.session.refresh(customer)
        assert customer.balance_cents == 1500
        assert ledger_service.verify_balances(ctx.tenant_id) == []

    def test_customer_repair_becomes_unrepairable(self, ctx, receipt, widget):
        invoice, sale_item = receipt
        repair = repair_service.create_repair(ctx, invoice_id=invoice.id, sale_item_id=sale_item.id)

        with pytest.raises(ValidationError):
            repair_service.mark_unrepairable(ctx, repair.id)

        repair_service.update_repair_status(ctx, repair.id, REPAIR_STATUS_IN_PROGRESS)
        repair = repair_service.mark_unrepairable(ctx, repair.id)

        assert repair.status == REPAIR_STATUS_UNREPAIRABLE
        entry = db.session.query(DamagedStockLog).filter_by(repair_id=repair.id).one()
        assert entry.product_id == widget.id
        assert entry.status == DAMAGE_STATUS_UNREPAIRABLE

    def test_mark_repaired_is_for_internal_repairs(self, ctx, walk_in_repair):
        with pytest.raises(ValidationError):
            repair_service.mark_repaired(ctx, walk_in_repair.id)


class TestInternalRepairs:
    @pytest.fixture
    def damaged(self, ctx, widget):
        add_lot(widget, 2)
        return inventory_service.log_damaged_stock(ctx, product_id=widget.id, notes="Cracked housing")

    def test_damage_entry_opens_internal_repair(self, ctx, damaged):
        repair = repair_service.create_repair_from_damage(ctx, damaged.id)

        assert repair.is_internal
        assert repair.customer.name == "Internal"
        assert repair.reported_problem == "Cracked housing"
        db.session.refresh(damaged)
        assert damaged.status == DAMAGE_STATUS_IN_REPAIR
        assert damaged.repair_id == repair.id

        with pytest.raises(AlreadyProcessed):
            repair_service.create_repair_from_damage(ctx, damaged.id)

    def test_repaired_unit_returns_to_stock_at_zero_cost(self, ctx, damaged, widget):
        repair = repair_service.create_repair_from_damage(ctx, damaged.id)
        assert inventory_service.available_stock(widget.id) == 1

        repair = repair_service.mark_repaired(ctx, repair.id)

        assert repair.status == REPAIR_STATUS_REPAIRED
        assert inventory_service.available_stock(widget.id) == 2
        lots = [l for l in inventory_service.list_lots(ctx.tenant_id, widget.id) if l.source == LOT_SOURCE_REPAIRED]
        assert [(l.quantity_purchased, l.unit_cost_cents) for l in lots] == [(1, 0)]
        db.session.refresh(damaged)
        assert damaged.status == DAMAGE_STATUS_REPAIRED

    def test_internal_unrepairable_closes_damage_entry(self, ctx, damaged, widget):
        repair = repair_service.create_repair_from_damage(ctx, damaged.id)
        repair_service.update_repair_status(ctx, repair.id, REPAIR_STATUS_IN_PROGRESS)

        repair_service.mark_unrepairable(ctx, repair.id)

        assert db.session.query(DamagedStockLog).count() == 1
        db.session.refresh(damaged)
        assert damaged.status == DAMAGE_STATUS_UNREPAIRABLE
        assert inventory_service.available_stock(widget.id) == 1

    def test_customer_outcomes_refused(self, ctx, damaged, widget):
        repair = repair_service.create_repair_from_damage(ctx, damaged.id)

        with pytest.raises(ValidationError):
            repair_service.complete_repair(ctx, repair.id, repair_fee_cents=100)
        with pytest.raises(ValidationError):
            repair_service.issue_credit(ctx, repair.id, amount_cents=100)
        with pytest.raises(ValidationError):
            repair_service.create_replacement(ctx, repair.id, product_id=widget.id)
