# Overview: Pytest coverage for invoicing, payments, overdue sweep and invoice deletion.

from datetime import timedelta

import pytest

from stockledger.errors import NotFound, ValidationError
from stockledger.extensions import db
from stockledger.models import Invoice, LedgerTransaction, Sale
from stockledger.models.inventory import LOT_SOURCE_INVOICE_REVERSAL
from stockledger.models.sales import (
    INVOICE_STATUS_OVERDUE,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_PARTIALLY_PAID,
    INVOICE_STATUS_SENT,
    LINE_KIND_BUNDLE,
    LINE_KIND_CUSTOM,
)
from stockledger.services import inventory_service, invoice_service, ledger_service, payment_service
from stockledger.services.settings_service import set_tenant_setting
from stockledger.time_utils import utcnow

from conftest import add_lot


def _sell(ctx, customer, items, **kwargs):
    return invoice_service.create_invoice(ctx, customer_id=customer.id, line_items=items, **kwargs)


class TestCreateInvoice:
    def test_invoice_debits_customer(self, ctx, customer, widget, changes):
        add_lot(widget, 10, unit_cost_cents=900)

        invoice = _sell(ctx, customer, [{"product_id": widget.id, "quantity": 5}])

        assert invoice.invoice_number == "INV-0001"
        assert invoice.status == INVOICE_STATUS_SENT
        assert invoice.total_cents == 10000
        db.session.refresh(customer)
        assert customer.balance_cents == -10000
        assert ledger_service.verify_balances(ctx.tenant_id) == []
        assert {"invoices", "inventory_lots", "transactions", "customers"} <= set(changes)

    def test_totals_include_discounts_and_delivery(self, ctx, customer, widget):
        add_lot(widget, 10)

        invoice = _sell(
            ctx,
            customer,
            [{"product_id": widget.id, "quantity": 2, "discount_cents": 500}],
            delivery_charge_cents=300,
            discount_cents=800,
        )

        assert invoice.subtotal_cents == 2 * 2000 - 500
        assert invoice.total_cents == 3500 + 300 - 800

    def test_due_date_defaults_to_tenant_window(self, ctx, customer, widget):
        add_lot(widget, 1)
        set_tenant_setting(ctx.tenant_id, "default_due_date_days", 14)
        db.session.commit()

        invoice = _sell(ctx, customer, [{"product_id": widget.id, "quantity": 1}], issue_date="2026-03-01")

        assert (invoice.due_date - invoice.issue_date) == timedelta(days=14)

    def test_due_date_before_issue_date_rejected(self, ctx, customer, widget):
        add_lot(widget, 1)
        with pytest.raises(ValidationError):
            _sell(
                ctx, customer, [{"product_id": widget.id, "quantity": 1}],
                issue_date="2026-03-10", due_date="2026-03-01",
            )
        assert inventory_service.available_stock(widget.id) == 1

    def test_sale_mirrors_line_items(self, ctx, customer, widget, gadget):
        add_lot(widget, 5)
        add_lot(gadget, 5)

        invoice = _sell(ctx, customer, [
            {"product_id": widget.id, "quantity": 2},
            {"product_id": gadget.id, "quantity": 1, "unit_price_cents": 450},
        ])

        sale = db.session.query(Sale).filter_by(invoice_id=invoice.id).one()
        assert [(i.product_id, i.quantity, i.total_price_cents) for i in sale.items] == [
            (widget.id, 2, 4000),
            (gadget.id, 1, 450),
        ]
        assert sale.total_cents == invoice.total_cents

    def test_custom_items_need_no_stock(self, ctx, customer):
        invoice = _sell(ctx, customer, [
            {"product_id": "custom-1", "description": "Cable crimping", "quantity": 3, "unit_price_cents": 250},
            {"description": "Site visit", "quantity": 1, "unit_price_cents": 4000},
        ])

        kinds = [row.kind for row in invoice.line_items]
        assert kinds == [LINE_KIND_CUSTOM, LINE_KIND_CUSTOM]
        assert invoice.line_items[0].product_id is None
        assert invoice.total_cents == 750 + 4000

    def test_custom_item_needs_description(self, ctx, customer):
        with pytest.raises(ValidationError):
            _sell(ctx, customer, [{"product_id": "custom-1", "quantity": 1, "unit_price_cents": 100}])

    def test_bundle_line_snapshots_components(self, ctx, customer, kit, widget, gadget):
        add_lot(widget, 4)
        add_lot(gadget, 2)

        invoice = _sell(ctx, customer, [{"product_id": kit.id, "quantity": 1}])

        row = invoice.line_items[0]
        assert row.kind == LINE_KIND_BUNDLE
        assert [(c.sub_product_id, c.quantity) for c in row.components] == [(widget.id, 2), (gadget.id, 1)]
        assert row.line_total_cents == 4000

    def test_zero_total_invoice_writes_no_debit(self, ctx, customer, widget):
        add_lot(widget, 1)
        _sell(ctx, customer, [{"product_id": widget.id, "quantity": 1, "unit_price_cents": 0}])
        assert db.session.query(LedgerTransaction).count() == 0

    def test_unknown_customer(self, ctx, widget):
        add_lot(widget, 1)
        with pytest.raises(NotFound):
            invoice_service.create_invoice(ctx, customer_id=404, line_items=[{"product_id": widget.id, "quantity": 1}])

    def test_empty_line_items(self, ctx, customer):
        with pytest.raises(ValidationError):
            _sell(ctx, customer, [])


class TestPayments:
    def test_partial_then_full_payment(self, ctx, customer, gadget):
        add_lot(gadget, 20)
        invoice = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 20}])
        assert invoice.total_cents == 10000

        result = payment_service.receive_payment(ctx, invoice.id, [{"amount_cents": 6000, "method": "Cash"}])
        assert result["invoice"]["status"] == INVOICE_STATUS_PARTIALLY_PAID
        assert result["total_paid_cents"] == 6000
        assert result["balance_due_cents"] == 4000
        db.session.refresh(customer)
        assert customer.balance_cents == -4000

        result = payment_service.receive_payment(ctx, invoice.id, [{"amount_cents": 4000, "method": "Card"}])
        assert result["invoice"]["status"] == INVOICE_STATUS_PAID
        assert result["balance_due_cents"] == 0
        db.session.refresh(customer)
        assert customer.balance_cents == 0
        assert ledger_service.verify_balances(ctx.tenant_id) == []

    def test_split_payment_records_each_method(self, ctx, customer, gadget):
        add_lot(gadget, 2)
        invoice = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 2}])

        result = payment_service.receive_payment(ctx, invoice.id, [
            {"amount_cents": 600, "method": "Cash"},
            {"amount_cents": 400, "method": "Bank Transfer"},
        ])

        assert [tx["payment_method"] for tx in result["transactions"]] == ["Cash", "Bank Transfer"]
        assert result["invoice"]["status"] == INVOICE_STATUS_PAID

    def test_overpayment_leaves_credit(self, ctx, customer, gadget):
        add_lot(gadget, 1)
        invoice = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}])

        payment_service.receive_payment(ctx, invoice.id, [{"amount_cents": 800, "method": "Cash"}])

        db.session.refresh(customer)
        assert customer.balance_cents == 300

    @pytest.mark.parametrize("payments", [[], [{"amount_cents": 0}], [{"amount_cents": -5}], "cash"])
    def test_invalid_payments(self, ctx, customer, gadget, payments):
        add_lot(gadget, 1)
        invoice = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}])
        with pytest.raises(ValidationError):
            payment_service.receive_payment(ctx, invoice.id, payments)


class TestOverdue:
    def test_past_due_unpaid_invoices_become_overdue(self, ctx, customer, gadget):
        add_lot(gadget, 3)
        late = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}],
                     issue_date="2026-01-01", due_date="2026-01-31")
        paid = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}],
                     issue_date="2026-01-01", due_date="2026-01-31")
        current = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}])
        payment_service.receive_payment(ctx, paid.id, [{"amount_cents": 500, "method": "Cash"}])

        marked = invoice_service.mark_overdue_invoices(ctx, now=utcnow())

        assert [i.id for i in marked] == [late.id]
        assert db.session.get(Invoice, late.id).status == INVOICE_STATUS_OVERDUE
        assert db.session.get(Invoice, paid.id).status == INVOICE_STATUS_PAID
        assert db.session.get(Invoice, current.id).status == INVOICE_STATUS_SENT


class TestDeleteInvoice:
    def test_round_trip_restores_stock_and_balance(self, ctx, customer, widget):
        add_lot(widget, 10, unit_cost_cents=900)
        invoice = _sell(ctx, customer, [{"product_id": widget.id, "quantity": 4}])
        payment_service.receive_payment(ctx, invoice.id, [{"amount_cents": 3000, "method": "Cash"}])
        invoice_id = invoice.id

        result = invoice_service.delete_invoice(ctx, invoice_id)

        assert result["invoice_number"] == "INV-0001"
        assert len(result["reversed_transaction_ids"]) == 2
        assert inventory_service.available_stock(widget.id) == 10
        db.session.refresh(customer)
        assert customer.balance_cents == 0
        assert db.session.get(Invoice, invoice_id) is None
        assert db.session.query(Sale).count() == 0
        assert ledger_service.verify_balances(ctx.tenant_id) == []

    def test_restock_goes_to_new_lot(self, ctx, customer, widget):
        original = add_lot(widget, 5, unit_cost_cents=900, days_ago=3)
        invoice = _sell(ctx, customer, [{"product_id": widget.id, "quantity": 5}])

        result = invoice_service.delete_invoice(ctx, invoice.id)

        db.session.refresh(original)
        assert original.quantity_remaining == 0
        lots = inventory_service.list_lots(ctx.tenant_id, widget.id)
        restocked = [lot for lot in lots if lot.id in result["restocked_lot_ids"]]
        assert [(lot.quantity_remaining, lot.unit_cost_cents, lot.source) for lot in restocked] == [
            (5, 2000, LOT_SOURCE_INVOICE_REVERSAL)
        ]

    def test_bundle_components_come_back(self, ctx, customer, kit, widget, gadget):
        add_lot(widget, 4)
        add_lot(gadget, 2)
        invoice = _sell(ctx, customer, [{"product_id": kit.id, "quantity": 2}])
        assert inventory_service.bundle_max_sellable(kit) == 0

        invoice_service.delete_invoice(ctx, invoice.id)

        assert inventory_service.available_stock(widget.id) == 4
        assert inventory_service.available_stock(gadget.id) == 2

    def test_numbers_are_not_reused_after_delete(self, ctx, customer, gadget):
        add_lot(gadget, 2)
        first = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}])
        invoice_service.delete_invoice(ctx, first.id)

        second = _sell(ctx, customer, [{"product_id": gadget.id, "quantity": 1}])
        assert second.invoice_number == "INV-0002"

    def test_delete_unknown_invoice(self, ctx):
        with pytest.raises(NotFound):
            invoice_service.delete_invoice(ctx, 12345)
