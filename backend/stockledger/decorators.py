# Overview: Request decorators for API routes; tenant context from the auth layer.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import Organization


def _header_int(name: str):
    raw = request.headers.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def require_tenant(f):
    """
    Establish tenant context for a request.

    Authentication happens upstream; the auth layer forwards the caller's
    organization in X-Tenant-Id and the acting user in X-Actor-Id.

    Sets the following Flask g attributes:
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.actor_id: The acting user ID (may be None)

    Returns 401 if the tenant header is missing, malformed, or names an
    unknown or deactivated organization.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        org_id = _header_int("X-Tenant-Id")
        if org_id is None:
            return jsonify({"error": "Tenant context required"}), 401

        org = db.session.get(Organization, org_id)
        if org is None or not org.is_active:
            return jsonify({"error": "Invalid tenant context"}), 401

        g.org_id = org.id
        g.actor_id = _header_int("X-Actor-Id")

        return f(*args, **kwargs)

    return decorated_function
