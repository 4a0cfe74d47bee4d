# Overview: Service-layer operations for the activity trail; append-only, written inside the workflow transaction.

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import ActivityLog
from stockledger.time_utils import utcnow

"""
Activity trail invariants

- Append-only: no updates or deletes outside a tenant data reset.
- Written in the same transaction as the workflow it describes, so a rolled
  back workflow leaves no trace here either.
- Document links are informational integers; the trail survives deletion of
  the documents it mentions.
"""


def log_activity(
    *,
    org_id: int,
    event_type: str,
    message: str,
    actor_id: int | None = None,
    customer_id: int | None = None,
    invoice_id: int | None = None,
    quotation_id: int | None = None,
    return_id: int | None = None,
    repair_id: int | None = None,
    details: Optional[dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
) -> ActivityLog:
    entry = ActivityLog(
        org_id=org_id,
        event_type=event_type,
        message=message,
        actor_id=actor_id,
        customer_id=customer_id,
        invoice_id=invoice_id,
        quotation_id=quotation_id,
        return_id=return_id,
        repair_id=repair_id,
        details=details,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_activity(org_id: int, *, limit: int = 100, customer_id: int | None = None) -> list[ActivityLog]:
    query = db.session.query(ActivityLog).filter_by(org_id=org_id)
    if customer_id:
        query = query.filter_by(customer_id=customer_id)
    limit = max(1, min(limit, 500))
    return query.order_by(ActivityLog.occurred_at.desc(), ActivityLog.id.desc()).limit(limit).all()
