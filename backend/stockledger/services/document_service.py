# Overview: Service-layer operations for document numbering; per-tenant monotonic counters.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..errors import ValidationError
from ..models import DocumentSequence
from .settings_service import get_tenant_settings


DOC_INVOICE = "INVOICE"
DOC_QUOTATION = "QUOTATION"
DOC_RETURN = "RETURN"
DOC_REPAIR = "REPAIR"

# document_type -> tenant setting holding its prefix
PREFIX_SETTINGS = {
    DOC_INVOICE: "invoice_prefix",
    DOC_QUOTATION: "quotation_prefix",
    DOC_RETURN: "return_prefix",
    DOC_REPAIR: "repair_prefix",
}


class DocumentSequenceError(ValidationError):
    """Raised when document sequence operations fail."""
    pass


def format_document_number(prefix: str, number: int, pad: int = 4) -> str:
    return f"{prefix}{number:0{pad}d}"


def _current_next_number(org_id: int, document_type: str) -> int | None:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(org_id=org_id, document_type=document_type)
        .scalar()
    )


def next_document_number(*, org_id: int, document_type: str, pad: int = 4) -> str:
    """
    Allocate the next number for (tenant, kind), e.g. "INV-0001".

    The counter row is incremented inside the caller's transaction, so the
    number and the document it labels commit or roll back together. Must be
    called inside a unit of work.
    """
    if not org_id:
        raise DocumentSequenceError("org_id is required")
    if document_type not in PREFIX_SETTINGS:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.org_id == org_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_next_number(org_id, document_type) - 1
    else:
        seq = DocumentSequence(org_id=org_id, document_type=document_type, next_number=2)
        db.session.add(seq)
        db.session.flush()
        next_num = 1

    prefix = get_tenant_settings(org_id).prefix_for(PREFIX_SETTINGS[document_type])
    return format_document_number(prefix, next_num, pad)


def peek_next_number(*, org_id: int, document_type: str) -> int:
    """Number the next document of this kind would receive (no allocation)."""
    current = _current_next_number(org_id, document_type)
    return current if current is not None else 1


def set_next_number(*, org_id: int, document_type: str, next_number: int) -> DocumentSequence:
    """
    Move a counter forward (e.g. when migrating from another system).

    Counters never move backwards: that would re-issue numbers.
    """
    if document_type not in PREFIX_SETTINGS:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")
    current = peek_next_number(org_id=org_id, document_type=document_type)
    if next_number < current:
        raise DocumentSequenceError(
            f"{document_type} counter is at {current}; it cannot move back to {next_number}"
        )

    seq = db.session.query(DocumentSequence).filter_by(org_id=org_id, document_type=document_type).first()
    if seq is None:
        seq = DocumentSequence(org_id=org_id, document_type=document_type)
        db.session.add(seq)
    seq.next_number = next_number
    db.session.flush()
    return seq
