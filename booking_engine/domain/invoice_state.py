"""Invoice review states: pending -> paid | rejected, both terminal."""

from typing import Optional

from booking_engine.core.exceptions import InvalidTransitionError, MissingReasonError
from booking_engine.models.enums import InvoiceStatus


def mark_paid(invoice, admin_notes: Optional[str] = None) -> bool:
    """Returns False when the invoice is already paid (replayed approval)."""
    if invoice.status == InvoiceStatus.PAID:
        return False
    if invoice.status != InvoiceStatus.PENDING:
        raise InvalidTransitionError("invoice", invoice.status.value, InvoiceStatus.PAID.value)
    invoice.status = InvoiceStatus.PAID
    if admin_notes:
        invoice.admin_notes = admin_notes
    return True


def mark_rejected(invoice, admin_notes: Optional[str]) -> bool:
    """Rejection needs a reason. Returns False when the invoice is already rejected."""
    if not admin_notes or not admin_notes.strip():
        raise MissingReasonError()
    if invoice.status == InvoiceStatus.REJECTED:
        return False
    if invoice.status != InvoiceStatus.PENDING:
        raise InvalidTransitionError("invoice", invoice.status.value, InvoiceStatus.REJECTED.value)
    invoice.status = InvoiceStatus.REJECTED
    invoice.admin_notes = admin_notes.strip()
    return True
