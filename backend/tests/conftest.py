"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, tenant fixtures, a workflow context with a
recording broadcaster, and a test client that sends tenant headers.
"""

from datetime import timedelta

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import InventoryLot, Organization
from stockledger.models.inventory import LOT_SOURCE_PURCHASE, PRODUCT_TYPE_BUNDLE
from stockledger.services.concurrency import TenantLockRegistry
from stockledger.services.customer_service import create_customer
from stockledger.services.notifier import ChangeBroadcaster
from stockledger.services.products_service import create_product, set_bundle_components
from stockledger.services.unit_of_work import WorkflowContext
from stockledger.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Corner Electronics", code="CORNER", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Repairs", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def changes():
    """Tables announced by the broadcaster, in notification order."""
    return []


@pytest.fixture(scope='function')
def ctx(db_session, org_a, changes):
    """Workflow context for Org A with its own lock registry and broadcaster."""
    broadcaster = ChangeBroadcaster(history_size=50)
    broadcaster.subscribe(changes.append)
    return WorkflowContext(
        tenant_id=org_a.id,
        actor_id=7,
        locks=TenantLockRegistry(),
        broadcaster=broadcaster,
    )


@pytest.fixture(scope='function')
def ctx_b(db_session, org_b):
    return WorkflowContext(
        tenant_id=org_b.id,
        actor_id=8,
        locks=TenantLockRegistry(),
        broadcaster=ChangeBroadcaster(history_size=50),
    )


@pytest.fixture(scope='function')
def customer(db_session, org_a):
    c = create_customer(org_id=org_a.id, name="Dana Reyes", email="dana@example.com", phone="555-0101")
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def customer_b(db_session, org_b):
    c = create_customer(org_id=org_b.id, name="Beta Walk-in")
    db_session.commit()
    return c


def add_lot(product, quantity, unit_cost_cents=0, days_ago=0):
    """Insert a purchase lot directly; older lots get a larger days_ago."""
    lot = InventoryLot(
        org_id=product.org_id,
        product_id=product.id,
        purchase_date=utcnow() - timedelta(days=days_ago),
        quantity_purchased=quantity,
        quantity_remaining=quantity,
        unit_cost_cents=unit_cost_cents,
        source=LOT_SOURCE_PURCHASE,
    )
    db.session.add(lot)
    db.session.commit()
    return lot


@pytest.fixture(scope='function')
def widget(db_session, org_a):
    """Standard product priced 20.00 with a one-year warranty."""
    product = create_product(
        org_id=org_a.id,
        sku="WID-001",
        name="Widget",
        price_cents=2000,
        warranty_period_value=1,
        warranty_period_unit="Years",
    )
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def gadget(db_session, org_a):
    product = create_product(org_id=org_a.id, sku="GAD-001", name="Gadget", price_cents=500)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def kit(db_session, org_a, widget, gadget):
    """Bundle of 2 Widgets + 1 Gadget."""
    bundle = create_product(
        org_id=org_a.id,
        sku="KIT-001",
        name="Starter Kit",
        price_cents=4000,
        product_type=PRODUCT_TYPE_BUNDLE,
    )
    set_bundle_components(
        org_id=org_a.id,
        bundle_id=bundle.id,
        components=[
            {"sub_product_id": widget.id, "quantity": 2},
            {"sub_product_id": gadget.id, "quantity": 1},
        ],
    )
    db_session.commit()
    return bundle


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def tenant_headers(org_a):
    return {"X-Tenant-Id": str(org_a.id), "X-Actor-Id": "7"}
