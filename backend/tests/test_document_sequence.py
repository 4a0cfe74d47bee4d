# Overview: Pytest coverage for per-tenant document numbering.

import pytest

from stockledger.errors import InsufficientStock, ValidationError
from stockledger.extensions import db
from stockledger.services import invoice_service
from stockledger.services.document_service import (
    DOC_INVOICE,
    DOC_QUOTATION,
    DOC_REPAIR,
    DOC_RETURN,
    format_document_number,
    next_document_number,
    peek_next_number,
    set_next_number,
)
from stockledger.services.settings_service import set_tenant_setting

from conftest import add_lot


def test_format_pads_to_four_digits():
    assert format_document_number("INV-", 7) == "INV-0007"
    assert format_document_number("INV-", 12345) == "INV-12345"


def test_numbers_are_sequential_per_type(db_session, org_a):
    numbers = [next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) for _ in range(3)]
    assert numbers == ["INV-0001", "INV-0002", "INV-0003"]

    assert next_document_number(org_id=org_a.id, document_type=DOC_QUOTATION) == "QUO-0001"
    assert next_document_number(org_id=org_a.id, document_type=DOC_RETURN) == "RTN-0001"
    assert next_document_number(org_id=org_a.id, document_type=DOC_REPAIR) == "REP-0001"


def test_tenants_have_independent_counters(db_session, org_a, org_b):
    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "INV-0001"
    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "INV-0002"
    assert next_document_number(org_id=org_b.id, document_type=DOC_INVOICE) == "INV-0001"


def test_rolled_back_number_is_reissued(db_session, org_a):
    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "INV-0001"
    db_session.commit()

    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "INV-0002"
    db_session.rollback()

    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "INV-0002"


def test_failed_invoice_consumes_no_number(ctx, customer, widget):
    add_lot(widget, 1)
    with pytest.raises(InsufficientStock):
        invoice_service.create_invoice(
            ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 2}]
        )

    invoice = invoice_service.create_invoice(
        ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
    )
    assert invoice.invoice_number == "INV-0001"


def test_prefix_comes_from_tenant_settings(db_session, org_a):
    set_tenant_setting(org_a.id, "invoice_prefix", "S-")
    db_session.commit()
    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "S-0001"


def test_peek_does_not_allocate(db_session, org_a):
    assert peek_next_number(org_id=org_a.id, document_type=DOC_INVOICE) == 1
    next_document_number(org_id=org_a.id, document_type=DOC_INVOICE)
    assert peek_next_number(org_id=org_a.id, document_type=DOC_INVOICE) == 2
    assert peek_next_number(org_id=org_a.id, document_type=DOC_INVOICE) == 2


def test_counter_moves_forward_only(db_session, org_a):
    set_next_number(org_id=org_a.id, document_type=DOC_INVOICE, next_number=500)
    db.session.flush()
    assert next_document_number(org_id=org_a.id, document_type=DOC_INVOICE) == "INV-0500"

    with pytest.raises(ValidationError):
        set_next_number(org_id=org_a.id, document_type=DOC_INVOICE, next_number=10)


def test_unknown_document_type(db_session, org_a):
    with pytest.raises(ValidationError):
        next_document_number(org_id=org_a.id, document_type="RECEIPT")
