# Overview: Pytest coverage for the customer ledger and the balance invariant.

import pytest

from stockledger.errors import NotFound, ValidationError
from stockledger.models import LedgerTransaction, Repair
from stockledger.models.customers import TRANSACTION_CREDIT, TRANSACTION_DEBIT
from stockledger.services import ledger_service
from stockledger.services.customer_service import create_customer, get_or_create_internal_customer
from stockledger.time_utils import utcnow


class TestRecordTransaction:
    def test_debit_lowers_and_credit_raises_balance(self, db_session, customer):
        ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_DEBIT, amount_cents=10000, description="Invoice"
        )
        ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_CREDIT, amount_cents=2500, description="Payment"
        )
        db_session.commit()

        assert customer.balance_cents == -7500
        assert ledger_service.ledger_sum_cents(customer.id) == -7500
        assert ledger_service.verify_balances(customer.org_id) == []

    def test_transaction_carries_tenant_of_customer(self, db_session, customer):
        tx = ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_CREDIT, amount_cents=100, description="Credit"
        )
        assert tx.org_id == customer.org_id
        assert tx.signed_amount_cents == 100

    def test_rejects_unknown_type(self, db_session, customer):
        with pytest.raises(ValidationError):
            ledger_service.record_transaction(
                customer_id=customer.id, tx_type="refund", amount_cents=100, description="?"
            )

    def test_rejects_negative_amount(self, db_session, customer):
        with pytest.raises(ValidationError):
            ledger_service.record_transaction(
                customer_id=customer.id, tx_type=TRANSACTION_DEBIT, amount_cents=-1, description="?"
            )

    def test_unknown_customer(self, db_session, org_a):
        with pytest.raises(NotFound):
            ledger_service.record_transaction(
                customer_id=999, tx_type=TRANSACTION_DEBIT, amount_cents=1, description="?"
            )


class TestReversal:
    def test_reverse_restores_balance_and_deletes_entry(self, db_session, customer):
        tx = ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_DEBIT, amount_cents=4000, description="Invoice"
        )
        db_session.commit()

        delta = ledger_service.reverse_transaction(tx)
        db_session.commit()

        assert delta == 4000
        assert customer.balance_cents == 0
        assert db_session.query(LedgerTransaction).count() == 0

    def test_reverse_linked_only_touches_that_document(self, db_session, customer, org_a):
        repair = Repair(
            org_id=org_a.id, repair_number="REP-0001", customer_id=customer.id,
            product_name="Widget", received_date=utcnow(),
        )
        db_session.add(repair)
        db_session.flush()
        ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_CREDIT, amount_cents=1000,
            description="Store credit", repair_id=repair.id,
        )
        kept = ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_DEBIT, amount_cents=700, description="Other"
        )
        db_session.commit()

        removed = ledger_service.reverse_linked_transactions(repair_id=repair.id)
        db_session.commit()

        assert len(removed) == 1
        assert db_session.get(LedgerTransaction, kept.id) is not None
        assert customer.balance_cents == -700

    def test_reverse_linked_requires_a_document(self, db_session, customer):
        with pytest.raises(ValidationError):
            ledger_service.reverse_linked_transactions()


class TestVerifyBalances:
    def test_detects_drift(self, db_session, customer):
        ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_DEBIT, amount_cents=500, description="Invoice"
        )
        customer.balance_cents = 0
        db_session.commit()

        problems = ledger_service.verify_balances(customer.org_id)
        assert problems == [{
            "customer_id": customer.id,
            "org_id": customer.org_id,
            "balance_cents": 0,
            "ledger_sum_cents": -500,
        }]

    def test_statement_is_chronological(self, db_session, customer):
        first = ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_DEBIT, amount_cents=500, description="Invoice"
        )
        second = ledger_service.record_transaction(
            customer_id=customer.id, tx_type=TRANSACTION_CREDIT, amount_cents=500, description="Payment"
        )
        db_session.commit()
        statement = ledger_service.customer_statement(customer.id, customer.org_id)
        assert [tx.id for tx in statement] == [first.id, second.id]

    def test_statement_is_tenant_scoped(self, db_session, customer, org_b):
        with pytest.raises(NotFound):
            ledger_service.customer_statement(customer.id, org_b.id)


class TestCustomers:
    def test_customer_numbers_are_sequential(self, db_session, org_a):
        first = create_customer(org_id=org_a.id, name="First")
        second = create_customer(org_id=org_a.id, name="Second")
        assert (first.customer_number, second.customer_number) == ("CUS-0001", "CUS-0002")
        assert first.balance_cents == 0

    def test_internal_customer_is_created_once(self, db_session, org_a):
        internal = get_or_create_internal_customer(org_a.id)
        again = get_or_create_internal_customer(org_a.id)
        assert internal.id == again.id
        assert internal.is_internal
        assert internal.name == "Internal"

    def test_name_required(self, db_session, org_a):
        with pytest.raises(ValidationError):
            create_customer(org_id=org_a.id, name="  ")
