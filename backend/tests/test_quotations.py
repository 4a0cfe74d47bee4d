# Overview: Pytest coverage for quotations and their conversion to invoices.

import pytest

from stockledger.errors import AlreadyProcessed, InsufficientStock, ValidationError
from stockledger.extensions import db
from stockledger.models import LedgerTransaction, Quotation
from stockledger.models.documents import QUOTATION_STATUS_CONVERTED, QUOTATION_STATUS_DRAFT
from stockledger.models.sales import INVOICE_SOURCE_QUOTATION
from stockledger.services import inventory_service, invoice_service, quotation_service

from conftest import add_lot


def _quote(ctx, customer, items, **kwargs):
    return quotation_service.create_quotation(ctx, customer_id=customer.id, line_items=items, **kwargs)


class TestQuotationDrafts:
    def test_draft_touches_neither_stock_nor_ledger(self, ctx, customer, widget):
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 50}], delivery_charge_cents=1000)

        assert quotation.quotation_number == "QUO-0001"
        assert quotation.status == QUOTATION_STATUS_DRAFT
        assert quotation.total_cents == 50 * 2000 + 1000
        assert db.session.query(LedgerTransaction).count() == 0
        db.session.refresh(customer)
        assert customer.balance_cents == 0

    def test_update_replaces_line_items(self, ctx, customer, widget, gadget):
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 1}])

        updated = quotation_service.update_quotation(
            ctx,
            quotation.id,
            line_items=[
                {"product_id": gadget.id, "quantity": 2},
                {"description": "Installation", "quantity": 1, "unit_price_cents": 1500},
            ],
            discount_cents=500,
        )

        assert [row.description for row in updated.line_items] == ["Gadget", "Installation"]
        assert updated.total_cents == 2 * 500 + 1500 - 500

    def test_expiry_before_issue_is_rejected(self, ctx, customer, widget):
        with pytest.raises(ValidationError):
            _quote(
                ctx, customer, [{"product_id": widget.id, "quantity": 1}],
                issue_date="2026-05-10", expiry_date="2026-05-01",
            )
        assert db.session.query(Quotation).count() == 0

    def test_delete_draft(self, ctx, customer, widget):
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 1}])
        quotation_id = quotation.id

        result = quotation_service.delete_quotation(ctx, quotation_id)

        assert result["quotation_number"] == "QUO-0001"
        assert db.session.get(Quotation, quotation_id) is None


class TestConvertQuotation:
    def test_conversion_issues_invoice(self, ctx, customer, widget):
        add_lot(widget, 5)
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 2, "unit_price_cents": 1800}])

        invoice = quotation_service.convert_quotation(ctx, quotation.id)

        assert invoice.source == INVOICE_SOURCE_QUOTATION
        assert invoice.total_cents == 3600
        assert inventory_service.available_stock(widget.id) == 3
        db.session.refresh(quotation)
        assert quotation.status == QUOTATION_STATUS_CONVERTED
        assert quotation.converted_invoice_id == invoice.id
        db.session.refresh(customer)
        assert customer.balance_cents == -3600

    def test_conversion_rechecks_stock(self, ctx, customer, widget):
        add_lot(widget, 1)
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 3}])

        with pytest.raises(InsufficientStock):
            quotation_service.convert_quotation(ctx, quotation.id)

        db.session.refresh(quotation)
        assert quotation.status == QUOTATION_STATUS_DRAFT
        assert inventory_service.available_stock(widget.id) == 1

    def test_converted_quotation_is_locked(self, ctx, customer, widget):
        add_lot(widget, 2)
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 1}])
        quotation_service.convert_quotation(ctx, quotation.id)

        with pytest.raises(AlreadyProcessed):
            quotation_service.convert_quotation(ctx, quotation.id)
        with pytest.raises(AlreadyProcessed):
            quotation_service.update_quotation(ctx, quotation.id, notes="late edit")
        with pytest.raises(AlreadyProcessed):
            quotation_service.delete_quotation(ctx, quotation.id)

    def test_deleting_invoice_reopens_quotation(self, ctx, customer, widget):
        add_lot(widget, 2)
        quotation = _quote(ctx, customer, [{"product_id": widget.id, "quantity": 2}])
        invoice = quotation_service.convert_quotation(ctx, quotation.id)

        invoice_service.delete_invoice(ctx, invoice.id)

        db.session.refresh(quotation)
        assert quotation.status == QUOTATION_STATUS_DRAFT
        assert quotation.converted_invoice_id is None
        assert inventory_service.available_stock(widget.id) == 2
