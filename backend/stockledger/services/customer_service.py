# Overview: Service-layer operations for customers.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFound, ValidationError
from ..models import Customer
from ..models.customers import INTERNAL_CUSTOMER_NAME
from .unit_of_work import WorkflowContext, run_workflow


INTERNAL_CUSTOMER_NUMBER = "CUS-INTERNAL"


def get_customer(org_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, org_id=org_id).first()
    if not customer:
        raise NotFound(f"Customer {customer_id} not found")
    return customer


def list_customers(org_id: int) -> list[Customer]:
    return db.session.query(Customer).filter_by(org_id=org_id).order_by(Customer.name, Customer.id).all()


def _next_customer_number(org_id: int) -> str:
    count = db.session.query(Customer).filter_by(org_id=org_id, is_internal=False).count()
    number = count + 1
    while db.session.query(Customer).filter_by(org_id=org_id, customer_number=f"CUS-{number:04d}").first():
        number += 1
    return f"CUS-{number:04d}"


def create_customer(
    *,
    org_id: int,
    name: str,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Customer:
    """Create a customer with a zero balance. Flushes; the caller commits."""
    if not name or not str(name).strip():
        raise ValidationError("name is required")

    customer = Customer(
        org_id=org_id,
        customer_number=_next_customer_number(org_id),
        name=str(name).strip(),
        email=email,
        phone=phone,
        address=address,
        balance_cents=0,
    )
    db.session.add(customer)
    db.session.flush()
    return customer


def get_or_create_internal_customer(org_id: int) -> Customer:
    """The tenant's own pseudo-customer that internal repairs are filed under."""
    customer = db.session.query(Customer).filter_by(org_id=org_id, is_internal=True).first()
    if customer:
        return customer
    customer = Customer(
        org_id=org_id,
        customer_number=INTERNAL_CUSTOMER_NUMBER,
        name=INTERNAL_CUSTOMER_NAME,
        is_internal=True,
        balance_cents=0,
    )
    db.session.add(customer)
    db.session.flush()
    return customer


def register_customer(ctx: WorkflowContext, **fields) -> Customer:
    """create_customer as its own unit of work."""
    return run_workflow(
        ctx,
        "create_customer",
        lambda: create_customer(org_id=ctx.tenant_id, **fields),
        tables=("customers",),
    )
