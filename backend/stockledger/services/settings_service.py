# Overview: Service-layer operations for tenant settings; typed defaults over key/value rows.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import OrganizationSetting


INTEGER_KEYS = {"default_due_date_days"}

STATIC_DEFAULTS = {
    "invoice_prefix": "INV-",
    "quotation_prefix": "QUO-",
    "return_prefix": "RTN-",
    "repair_prefix": "REP-",
}


@dataclass(frozen=True)
class TenantSettings:
    currency: str
    default_due_date_days: int
    invoice_prefix: str
    quotation_prefix: str
    return_prefix: str
    repair_prefix: str

    def prefix_for(self, key: str) -> str:
        return getattr(self, key)


def _defaults() -> dict[str, str]:
    values = dict(STATIC_DEFAULTS)
    values["currency"] = current_app.config.get("DEFAULT_CURRENCY", "$")
    values["default_due_date_days"] = str(current_app.config.get("DEFAULT_DUE_DATE_DAYS", 30))
    return values


def _coerce(key: str, raw: str | None):
    if key in INTEGER_KEYS:
        try:
            value = int(str(raw).strip())
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be an integer")
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        return value
    if raw is None or not str(raw).strip():
        raise ValidationError(f"{key} must not be empty")
    return str(raw)


def get_tenant_settings(org_id: int) -> TenantSettings:
    values = _defaults()
    rows = db.session.query(OrganizationSetting).filter_by(org_id=org_id).all()
    for row in rows:
        if row.key in values and row.value is not None:
            values[row.key] = row.value
    return TenantSettings(**{key: _coerce(key, raw) for key, raw in values.items()})


def set_tenant_setting(org_id: int, key: str, value, actor_id: int | None = None) -> OrganizationSetting:
    """Validate and upsert one setting. Flushes; the caller commits."""
    if key not in _defaults():
        raise ValidationError(f"Unknown setting: {key}")
    _coerce(key, value)

    row = db.session.query(OrganizationSetting).filter_by(org_id=org_id, key=key).first()
    if row is None:
        row = OrganizationSetting(org_id=org_id, key=key)
        db.session.add(row)
    row.value = str(value)
    row.updated_by_actor_id = actor_id
    db.session.flush()
    return row
