# Overview: Pytest coverage for the flask CLI command groups.

import pytest

from stockledger.extensions import db
from stockledger.models import InventoryLot, Organization
from stockledger.models.sales import INVOICE_STATUS_OVERDUE
from stockledger.services import invoice_service
from stockledger.services.customer_service import INTERNAL_CUSTOMER_NUMBER
from stockledger.services.settings_service import get_tenant_settings

from conftest import add_lot


@pytest.fixture
def runner(app, db_session):
    return app.test_cli_runner()


class TestSystemInit:
    def test_creates_organization_with_settings(self, runner):
        result = runner.invoke(args=[
            "system", "init", "--org", "Harbor Hardware", "--org-code", "HARBOR",
            "--currency", "EUR", "--due-days", "21",
        ])

        assert result.exit_code == 0, result.output
        assert "PASS Created organization: Harbor Hardware" in result.output
        org = db.session.query(Organization).filter_by(code="HARBOR").one()
        settings = get_tenant_settings(org.id)
        assert settings.currency == "EUR"
        assert settings.default_due_date_days == 21
        assert any(c.customer_number == INTERNAL_CUSTOMER_NUMBER for c in org.customers)

    def test_is_idempotent(self, runner):
        runner.invoke(args=["system", "init", "--org-code", "HARBOR"])
        result = runner.invoke(args=["system", "init", "--org-code", "HARBOR"])

        assert result.exit_code == 0, result.output
        assert "PASS Using existing organization" in result.output
        assert db.session.query(Organization).filter_by(code="HARBOR").count() == 1


class TestLedgerCommands:
    def test_verify_passes_on_consistent_data(self, runner, ctx, customer, widget):
        add_lot(widget, 2)
        invoice_service.create_invoice(
            ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
        )

        result = runner.invoke(args=["ledger", "verify", "--org-id", str(ctx.tenant_id)])

        assert result.exit_code == 0, result.output
        assert "PASS Balances and lots are consistent." in result.output

    def test_verify_reports_drift(self, runner, customer, kit):
        customer.balance_cents = -250
        db.session.commit()
        lot = add_lot(kit, 1)

        result = runner.invoke(args=["ledger", "verify"])

        assert result.exit_code == 1
        assert f"FAIL Customer {customer.id}: balance -250 != ledger 0" in result.output
        assert f"FAIL Lot {lot.id} (product {kit.id}): lot held by bundle" in result.output
        assert "1 balance and 1 stock problem(s) found" in result.output

    def test_mark_overdue(self, runner, ctx, customer, gadget):
        add_lot(gadget, 1)
        invoice = invoice_service.create_invoice(
            ctx,
            customer_id=customer.id,
            line_items=[{"product_id": gadget.id, "quantity": 1}],
            issue_date="2026-01-01",
            due_date="2026-01-15",
        )

        result = runner.invoke(args=["ledger", "mark-overdue", "--org-id", str(ctx.tenant_id)])

        assert result.exit_code == 0, result.output
        assert "OVERDUE INV-0001 due 2026-01-15" in result.output
        assert "PASS 1 invoice(s) marked overdue." in result.output
        db.session.expire_all()
        assert invoice_service.get_invoice(ctx.tenant_id, invoice.id).status == INVOICE_STATUS_OVERDUE

    def test_unknown_org(self, runner):
        result = runner.invoke(args=["ledger", "mark-overdue", "--org-id", "4242"])

        assert result.exit_code == 1
        assert "Organization 4242 not found" in result.output


class TestInventoryAndWipe:
    def test_stock_report(self, runner, org_a, kit, widget, gadget):
        add_lot(widget, 6)
        add_lot(gadget, 2)

        result = runner.invoke(args=["inventory", "stock", "--org-id", str(org_a.id)])

        assert result.exit_code == 0, result.output
        lines = {line.split()[0]: line.split()[-1] for line in result.output.splitlines() if line[:3] in ("WID", "GAD", "KIT")}
        assert lines == {"WID-001": "6", "GAD-001": "2", "KIT-001": "2"}

    def test_stock_report_without_products(self, runner, org_b):
        result = runner.invoke(args=["inventory", "stock", "--org-id", str(org_b.id)])
        assert "No products found." in result.output

    def test_wipe(self, runner, ctx, customer, widget):
        add_lot(widget, 3)
        invoice_service.create_invoice(
            ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
        )

        result = runner.invoke(args=["system", "wipe", "--org-id", str(ctx.tenant_id), "--yes"])

        assert result.exit_code == 0, result.output
        assert "PASS Wipe complete." in result.output
        db.session.expire_all()
        assert db.session.query(InventoryLot).count() == 0
        assert db.session.get(type(customer), customer.id).balance_cents == 0
