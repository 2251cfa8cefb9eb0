"""Unit tests for invoice review transitions."""

import pytest
from types import SimpleNamespace

from booking_engine.core.exceptions import InvalidTransitionError, MissingReasonError
from booking_engine.domain import invoice_state
from booking_engine.models.enums import InvoiceStatus


def _invoice(status=InvoiceStatus.PENDING):
    return SimpleNamespace(status=status, admin_notes=None)


def test_mark_paid():
    invoice = _invoice()
    assert invoice_state.mark_paid(invoice, "receipt checked") is True
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.admin_notes == "receipt checked"


def test_mark_paid_twice_is_noop():
    invoice = _invoice(InvoiceStatus.PAID)
    assert invoice_state.mark_paid(invoice) is False


def test_rejected_invoice_cannot_be_paid():
    with pytest.raises(InvalidTransitionError):
        invoice_state.mark_paid(_invoice(InvoiceStatus.REJECTED))


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_rejection_needs_a_reason(reason):
    invoice = _invoice()
    with pytest.raises(MissingReasonError):
        invoice_state.mark_rejected(invoice, reason)
    assert invoice.status == InvoiceStatus.PENDING


def test_mark_rejected():
    invoice = _invoice()
    assert invoice_state.mark_rejected(invoice, "  receipt unreadable ") is True
    assert invoice.status == InvoiceStatus.REJECTED
    assert invoice.admin_notes == "receipt unreadable"
    assert invoice_state.mark_rejected(invoice, "again") is False


def test_paid_invoice_cannot_be_rejected():
    with pytest.raises(InvalidTransitionError):
        invoice_state.mark_rejected(_invoice(InvoiceStatus.PAID), "too late")
