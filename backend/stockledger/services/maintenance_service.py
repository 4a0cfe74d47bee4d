# Overview: Service-layer operations for maintenance; tenant data reset.

from __future__ import annotations

from sqlalchemy import or_, select

from ..extensions import db
from ..models import (
    ActivityLog,
    Customer,
    DamagedStockLog,
    DocumentLineItem,
    DocumentSequence,
    InventoryLot,
    Invoice,
    LedgerTransaction,
    LineItemComponent,
    Quotation,
    Repair,
    RepairItem,
    Return,
    ReturnExpense,
    ReturnItem,
    Sale,
    SaleItem,
)
from .unit_of_work import WorkflowContext, run_workflow


CLEARED_TABLES = (
    "transactions",
    "inventory_lots",
    "returns",
    "repairs",
    "damaged_stock_log",
    "sales",
    "invoices",
    "quotations",
    "activity_log",
    "document_sequences",
    "customers",
)


def _delete_children(model, fk_column, parent_ids) -> int:
    return (
        db.session.query(model)
        .filter(fk_column.in_(parent_ids))
        .delete(synchronize_session=False)
    )


def _delete_tenant_rows(org_id: int) -> dict[str, int]:
    """Children before parents; catalog, customers and settings stay."""
    counts: dict[str, int] = {}

    return_ids = select(Return.id).where(Return.org_id == org_id)
    repair_ids = select(Repair.id).where(Repair.org_id == org_id)
    sale_ids = select(Sale.id).where(Sale.org_id == org_id)
    invoice_ids = select(Invoice.id).where(Invoice.org_id == org_id)
    quotation_ids = select(Quotation.id).where(Quotation.org_id == org_id)
    line_ids = select(DocumentLineItem.id).where(
        or_(
            DocumentLineItem.invoice_id.in_(invoice_ids),
            DocumentLineItem.quotation_id.in_(quotation_ids),
        )
    )

    def _by_org(model) -> int:
        return db.session.query(model).filter(model.org_id == org_id).delete(synchronize_session=False)

    counts["transactions"] = _by_org(LedgerTransaction)
    counts["inventory_lots"] = _by_org(InventoryLot)
    counts["return_expenses"] = _delete_children(ReturnExpense, ReturnExpense.return_id, return_ids)
    counts["return_items"] = _delete_children(ReturnItem, ReturnItem.return_id, return_ids)
    counts["returns"] = _by_org(Return)
    counts["repair_items"] = _delete_children(RepairItem, RepairItem.repair_id, repair_ids)
    counts["repairs"] = _by_org(Repair)
    counts["damaged_stock_log"] = _by_org(DamagedStockLog)
    counts["sale_items"] = _delete_children(SaleItem, SaleItem.sale_id, sale_ids)
    counts["sales"] = _by_org(Sale)
    counts["line_item_components"] = _delete_children(LineItemComponent, LineItemComponent.line_item_id, line_ids)
    counts["document_line_items"] = (
        db.session.query(DocumentLineItem)
        .filter(
            or_(
                DocumentLineItem.invoice_id.in_(invoice_ids),
                DocumentLineItem.quotation_id.in_(quotation_ids),
            )
        )
        .delete(synchronize_session=False)
    )
    counts["quotations"] = _by_org(Quotation)
    counts["invoices"] = _by_org(Invoice)
    counts["activity_log"] = _by_org(ActivityLog)
    counts["document_sequences"] = _by_org(DocumentSequence)
    return counts


def clear_tenant_data(ctx: WorkflowContext) -> dict[str, int]:
    """
    Delete every transactional row of one tenant and zero customer balances.

    Products, bundle definitions, customers and settings survive; stock,
    documents, the ledger, the activity trail and numbering start over.
    """

    def _op() -> dict[str, int]:
        counts = _delete_tenant_rows(ctx.tenant_id)
        counts["customers_reset"] = (
            db.session.query(Customer)
            .filter(Customer.org_id == ctx.tenant_id)
            .update({Customer.balance_cents: 0}, synchronize_session=False)
        )
        db.session.flush()
        db.session.expire_all()
        return counts

    return run_workflow(ctx, "clear_tenant_data", _op, tables=CLEARED_TABLES)
