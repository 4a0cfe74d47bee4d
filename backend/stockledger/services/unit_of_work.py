# Overview: Unit of work for engine workflows; one tenant-serialized, all-or-nothing transaction per call.

"""
Every workflow (create invoice, delete return, complete repair, ...) runs as

    run_workflow(ctx, "create_invoice", _op, tables=[...])

which:
1. takes the tenant's lock from ctx.locks (no interleaving per tenant),
2. opens the write transaction (BEGIN IMMEDIATE on SQLite),
3. runs _op; _op validates everything before it mutates anything,
4. commits, or rolls back every mutation on any exception,
5. retries lock / stale-version failures with backoff,
6. after the commit, notifies ctx.broadcaster once per affected table.

_op never commits itself and never notifies; nested helpers only flush.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, TypeVar

from flask import current_app

from ..extensions import db
from .concurrency import TenantLockRegistry, begin_write_transaction, run_with_retry
from .notifier import ChangeBroadcaster


T = TypeVar("T")


@dataclass
class WorkflowContext:
    """Who is acting, for which tenant, and the collaborators a workflow needs."""
    tenant_id: int
    actor_id: int | None
    locks: TenantLockRegistry
    broadcaster: ChangeBroadcaster
    changed_tables: set[str] = field(default_factory=set)

    def mark_changed(self, *tables: str) -> None:
        self.changed_tables.update(tables)


def context_from_app(tenant_id: int, actor_id: int | None = None) -> WorkflowContext:
    """Build a context from the registry objects the app factory installed."""
    return WorkflowContext(
        tenant_id=tenant_id,
        actor_id=actor_id,
        locks=current_app.extensions["stockledger.locks"],
        broadcaster=current_app.extensions["stockledger.broadcaster"],
    )


def run_workflow(
    ctx: WorkflowContext,
    name: str,
    op: Callable[[], T],
    *,
    tables: Iterable[str] = (),
) -> T:
    attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    backoff = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    def _attempt() -> T:
        ctx.changed_tables = set(tables)
        begin_write_transaction()
        try:
            result = op()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    with ctx.locks.hold(ctx.tenant_id):
        result = run_with_retry(_attempt, attempts=attempts, backoff_base=backoff, label=name)

    current_app.logger.info("Workflow %s committed for org %s", name, ctx.tenant_id)
    for table in sorted(ctx.changed_tables):
        ctx.broadcaster.notify_changed(table)
    return result
