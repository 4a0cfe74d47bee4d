# Overview: Service-layer operations for concurrency; row locks, retries and per-tenant serialization.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for read-then-write rows (lots, balances, counters).

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the whole write
    transaction is taken up front by begin_write_transaction().
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the write transaction before the first read of a workflow.

    On SQLite this is BEGIN IMMEDIATE, which takes the database write lock so
    no other connection can interleave between our stock/balance reads and
    the writes based on them. Skipped if the connection is already inside a
    transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, label: str | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors propagate immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying %s after %s (attempt %d/%d)",
                label or getattr(func, "__name__", "operation"),
                type(exc).__name__,
                attempt + 1,
                attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class TenantLockRegistry:
    """
    One re-entrant lock per tenant.

    Created by the app factory and handed to workflows through their
    WorkflowContext; two workflows of the same tenant never interleave,
    workflows of different tenants run independently.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}

    def lock_for(self, tenant_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[tenant_id] = lock
            return lock

    @contextmanager
    def hold(self, tenant_id: int):
        lock = self.lock_for(tenant_id)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
