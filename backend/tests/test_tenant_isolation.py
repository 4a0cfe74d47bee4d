# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

Two organizations share one database. Every lookup, workflow and route is
scoped to the caller's organization, and a foreign row is reported as
missing (never as "forbidden", which would reveal that it exists).

Test Coverage:
- Lookups: products, customers, invoices, quotations, repairs, returns
- Workflows: selling, purchasing and repairing with another tenant's rows
- Numbering: each tenant has its own document counters
- Ledger: verification and statements never cross tenants
- Routes: foreign ids answer 404
"""

import pytest

from stockledger.errors import NotFound
from stockledger.extensions import db
from stockledger.models import InventoryLot
from stockledger.services import (
    customer_service,
    inventory_service,
    invoice_service,
    ledger_service,
    products_service,
    quotation_service,
    repair_service,
    return_service,
)
from stockledger.services.products_service import create_product

from conftest import add_lot


@pytest.fixture
def beta_product(org_b):
    product = create_product(org_id=org_b.id, sku="WID-001", name="Beta Widget", price_cents=1500)
    db.session.commit()
    add_lot(product, 5, unit_cost_cents=700)
    return product


@pytest.fixture
def sold_in_a(ctx, customer, widget):
    add_lot(widget, 5)
    return invoice_service.create_invoice(
        ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 2}]
    )


class TestLookups:
    """Foreign ids look exactly like missing ids."""

    def test_product(self, org_b, widget):
        with pytest.raises(NotFound):
            products_service.get_product(org_b.id, widget.id)

    def test_customer(self, org_b, customer):
        with pytest.raises(NotFound):
            customer_service.get_customer(org_b.id, customer.id)

    def test_invoice(self, org_b, sold_in_a):
        with pytest.raises(NotFound):
            invoice_service.get_invoice(org_b.id, sold_in_a.id)

    def test_quotation(self, ctx, org_b, customer, widget):
        quotation = quotation_service.create_quotation(
            ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
        )
        with pytest.raises(NotFound):
            quotation_service.get_quotation(org_b.id, quotation.id)

    def test_repair(self, ctx, org_b, customer):
        repair = repair_service.create_repair(ctx, customer_id=customer.id, product_name="Drill")
        with pytest.raises(NotFound):
            repair_service.get_repair(org_b.id, repair.id)

    def test_return(self, ctx, org_b, sold_in_a):
        ret = return_service.create_return(
            ctx,
            invoice_id=sold_in_a.id,
            items=[{"sale_item_id": sold_in_a.sale.items[0].id, "quantity": 1}],
        )
        with pytest.raises(NotFound):
            return_service.get_return(org_b.id, ret.id)

    def test_lists_are_scoped(self, org_a, org_b, widget, beta_product, customer, customer_b):
        assert [p.id for p in products_service.list_products(org_b.id)] == [beta_product.id]
        assert widget.id in [p.id for p in products_service.list_products(org_a.id)]
        assert customer.id not in [c.id for c in customer_service.list_customers(org_b.id)]
        assert customer_b.id in [c.id for c in customer_service.list_customers(org_b.id)]


class TestWorkflows:
    def test_cannot_sell_another_tenants_product(self, ctx_b, customer_b, widget):
        add_lot(widget, 3)

        with pytest.raises(NotFound):
            invoice_service.create_invoice(
                ctx_b, customer_id=customer_b.id, line_items=[{"product_id": widget.id, "quantity": 1}]
            )

        assert inventory_service.available_stock(widget.id) == 3

    def test_cannot_invoice_another_tenants_customer(self, ctx_b, customer, beta_product):
        with pytest.raises(NotFound):
            invoice_service.create_invoice(
                ctx_b, customer_id=customer.id, line_items=[{"product_id": beta_product.id, "quantity": 1}]
            )

    def test_cannot_receive_into_another_tenants_product(self, ctx_b, widget):
        with pytest.raises(NotFound):
            inventory_service.receive_purchase(ctx_b, product_id=widget.id, quantity=4, unit_cost_cents=100)

        assert db.session.query(InventoryLot).filter_by(product_id=widget.id).count() == 0

    def test_cannot_delete_another_tenants_invoice(self, ctx_b, sold_in_a, widget):
        with pytest.raises(NotFound):
            invoice_service.delete_invoice(ctx_b, sold_in_a.id)

        assert inventory_service.available_stock(widget.id) == 3

    def test_cannot_return_against_another_tenants_invoice(self, ctx_b, sold_in_a):
        with pytest.raises(NotFound):
            return_service.create_return(
                ctx_b,
                invoice_id=sold_in_a.id,
                items=[{"sale_item_id": sold_in_a.sale.items[0].id, "quantity": 1}],
            )

    def test_cannot_use_another_tenants_part(self, ctx_b, customer_b, widget):
        add_lot(widget, 2)
        repair = repair_service.create_repair(ctx_b, customer_id=customer_b.id, product_name="Mixer")

        with pytest.raises(NotFound):
            repair_service.add_repair_item(ctx_b, repair.id, product_id=widget.id, quantity=1)

        assert inventory_service.available_stock(widget.id) == 2

    def test_same_sku_in_both_tenants(self, widget, beta_product):
        assert widget.sku == beta_product.sku
        assert widget.org_id != beta_product.org_id


class TestNumberingAndLedger:
    def test_each_tenant_counts_from_one(self, ctx, ctx_b, customer, customer_b, widget, beta_product):
        add_lot(widget, 2)

        first_a = invoice_service.create_invoice(
            ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
        )
        first_b = invoice_service.create_invoice(
            ctx_b, customer_id=customer_b.id, line_items=[{"product_id": beta_product.id, "quantity": 1}]
        )
        second_a = invoice_service.create_invoice(
            ctx, customer_id=customer.id, line_items=[{"product_id": widget.id, "quantity": 1}]
        )

        assert (first_a.invoice_number, second_a.invoice_number) == ("INV-0001", "INV-0002")
        assert first_b.invoice_number == "INV-0001"

    def test_statement_is_scoped(self, org_b, sold_in_a, customer):
        with pytest.raises(NotFound):
            ledger_service.customer_statement(customer.id, org_b.id)

    def test_verification_is_scoped(self, ctx, org_b, sold_in_a, customer):
        customer.balance_cents += 1
        db.session.commit()

        assert ledger_service.verify_balances(org_b.id) == []
        assert len(ledger_service.verify_balances(ctx.tenant_id)) == 1


class TestRoutes:
    def test_foreign_invoice_is_404(self, client, org_b, sold_in_a):
        response = client.get(f"/api/invoices/{sold_in_a.id}", headers={"X-Tenant-Id": str(org_b.id)})
        assert response.status_code == 404

    def test_foreign_product_lots_is_404(self, client, org_b, widget):
        response = client.get(f"/api/products/{widget.id}/lots", headers={"X-Tenant-Id": str(org_b.id)})
        assert response.status_code == 404

    def test_listing_shows_only_own_products(self, client, org_b, widget, beta_product):
        response = client.get("/api/products", headers={"X-Tenant-Id": str(org_b.id)})
        assert [p["id"] for p in response.get_json()["items"]] == [beta_product.id]
