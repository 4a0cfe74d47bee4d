# Overview: Typed business errors raised by the transaction engine.

"""
Engine error taxonomy.

Every workflow aborts as a whole when one of these is raised: the unit of
work rolls the session back, so no stock, ledger or numbering change from the
failed request survives. The request layer maps each class to an HTTP status
through ``status_code`` and renders ``to_dict()`` as the JSON body.
"""

from __future__ import annotations

from typing import Any


class EngineError(ValueError):
    """Base class for business-rule failures."""

    status_code = 400
    code = "ENGINE_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(EngineError):
    """Customer, product or document missing (or owned by another tenant)."""

    status_code = 404
    code = "NOT_FOUND"


class ValidationError(EngineError):
    """400-level input problem or invalid status transition."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InsufficientStock(EngineError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int, *, product_name: str | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class AlreadyProcessed(EngineError):
    """Terminal document touched again (converted quotation, voided warranty)."""

    status_code = 409
    code = "ALREADY_PROCESSED"


class OwnershipMismatch(EngineError):
    """A referenced child row does not belong to the claimed parent."""

    status_code = 409
    code = "OWNERSHIP_MISMATCH"


class ReversalConflict(EngineError):
    """Stock or ledger state moved on since the document was created."""

    status_code = 409
    code = "REVERSAL_CONFLICT"
