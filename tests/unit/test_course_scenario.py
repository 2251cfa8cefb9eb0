"""
End-to-end course purchase at service level: a 12-session course at 240.00
paid in four installments, with the visibility gate checked at each step,
and a dated course session holding the teacher's time against individual bookings.
"""

import pytest
from datetime import datetime, timedelta
from uuid import uuid4
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import OverlapError
from booking_engine.domain import session_state
from booking_engine.domain.conflicts import CommittedSlot
from booking_engine.domain.time_slot import TimeSlot
from booking_engine.models.enums import BookingStatus, InstallmentStatus, PaymentMethod, SessionStatus
from booking_engine.schemas.billing import PaymentDraft
from booking_engine.services.booking_service import BookingService
from booking_engine.services.conflict_service import lesson_duration
from booking_engine.services.group_session_service import GroupSessionService
from booking_engine.services.invoice_service import InvoiceService

from conftest import make_booking, make_lesson, make_session

NOW = datetime(2026, 3, 2, 9, 0)
SERVICE = "booking_engine.services.invoice_service"
CONFLICTS = "booking_engine.services.conflict_service"
GROUP = "booking_engine.services.group_session_service"
BOOKINGS = "booking_engine.services.booking_service"


def _draft(student_id, lesson, method, booking_id=None, external_payment_id=None):
    return PaymentDraft(
        student_id=student_id,
        lesson_id=lesson.id,
        amount=Decimal("60.00"),
        payment_method=method,
        pay_in_installments=booking_id is None,
        booking_id=booking_id,
        payment_receipt_url=None if method.is_instant else "https://cdn/receipt.png",
        external_payment_id=external_payment_id,
    )


def _visible(sessions, booking):
    return [not session_state.student_view(s, booking.paid_sessions).locked for s in sessions]


@pytest.mark.asyncio
async def test_twelve_session_course_paid_in_installments(group_course, student_id):
    db = AsyncMock(spec=AsyncSession)
    db.get.return_value = group_course
    sessions = [make_session(group_course, n, scheduled_at=NOW + timedelta(days=n)) for n in range(1, 13)]
    for s in sessions:
        s.status = SessionStatus.ACTIVE
    invoices = {}

    async def by_external_id(_db, external_payment_id):
        return invoices.get(external_payment_id)

    with patch(f"{SERVICE}.InvoiceService.get_invoice_by_external_id", side_effect=by_external_id), \
            patch(f"{SERVICE}.BookingService.get_active_booking", new_callable=AsyncMock, return_value=None):
        # Installment 1 by bank transfer: nothing visible until approved
        first = await InvoiceService.record_payment(
            db, _draft(student_id, group_course, PaymentMethod.BANK_TRANSFER), now=NOW
        )
        booking = first.booking
        assert booking.status == BookingStatus.PENDING
        assert booking.installment_amount == Decimal("60.00")
        assert not any(_visible(sessions, booking))

        with patch(f"{SERVICE}.InvoiceService.get_invoice", new_callable=AsyncMock, return_value=first.invoice), \
                patch(f"{SERVICE}.BookingService.get_booking", new_callable=AsyncMock, return_value=booking):
            await InvoiceService.approve_invoice(db, first.invoice.id, now=NOW)
        assert booking.status == BookingStatus.SCHEDULED
        assert booking.paid_sessions == 3
        assert _visible(sessions, booking) == [True] * 3 + [False] * 9

        with patch(f"{SERVICE}.BookingService.get_booking", new_callable=AsyncMock, return_value=booking):
            # Installment 2 by PayPal unlocks sessions 4-6 at once
            second = await InvoiceService.record_payment(
                db, _draft(student_id, group_course, PaymentMethod.PAYPAL, booking.id, "pp-2"), now=NOW
            )
            invoices["pp-2"] = second.invoice
            assert second.installment.installment_number == 2
            assert booking.paid_sessions == 6

            # The payment provider redelivers the same confirmation
            replay = await InvoiceService.record_payment(
                db, _draft(student_id, group_course, PaymentMethod.PAYPAL, booking.id, "pp-2"), now=NOW
            )
            assert replay.replayed is True
            assert booking.paid_sessions == 6

            # Installment 3 is rejected; the course stays active at 6 sessions
            third = await InvoiceService.record_payment(
                db, _draft(student_id, group_course, PaymentMethod.BANK_TRANSFER, booking.id), now=NOW
            )
            with patch(f"{SERVICE}.InvoiceService.get_invoice", new_callable=AsyncMock, return_value=third.invoice):
                await InvoiceService.reject_invoice(db, third.invoice.id, "receipt unreadable")
            assert third.installment.status == InstallmentStatus.REJECTED
            assert booking.status == BookingStatus.SCHEDULED
            assert booking.paid_sessions == 6

            # Retry of installment 3, then installment 4, both instant
            retry = await InvoiceService.record_payment(
                db, _draft(student_id, group_course, PaymentMethod.PAYPAL, booking.id), now=NOW
            )
            assert retry.installment.installment_number == 3
            assert booking.paid_sessions == 9

            last = await InvoiceService.record_payment(
                db, _draft(student_id, group_course, PaymentMethod.PAYPAL, booking.id), now=NOW
            )
            assert last.installment.installment_number == 4
            assert booking.paid_sessions == 12
            assert all(_visible(sessions, booking))


@pytest.mark.asyncio
async def test_course_session_blocks_overlapping_individual_booking(group_course, student_id):
    db = AsyncMock(spec=AsyncSession)
    sessions = [make_session(group_course, n) for n in range(1, 13)]
    tutoring = make_lesson(group_course.teacher_id, title="Algebra")
    booking = make_booking(tutoring, uuid4(), status=BookingStatus.ACCEPTED)
    slot_x = NOW + timedelta(days=2, hours=1)

    async def committed_slots(_db, teacher_id):
        assert teacher_id == group_course.teacher_id
        return [
            CommittedSlot(
                slot=TimeSlot(s.scheduled_at, lesson_duration(group_course)),
                label=s.title or group_course.title,
                session_id=s.id,
            )
            for s in sessions
            if s.scheduled_at is not None and s.status in (SessionStatus.PENDING, SessionStatus.ACTIVE)
        ]

    with patch(f"{CONFLICTS}.ConflictValidator.load_committed_slots", side_effect=committed_slots), \
            patch(f"{GROUP}.GroupSessionService.get_session", new_callable=AsyncMock, return_value=sessions[0]), \
            patch(f"{BOOKINGS}.BookingService.get_booking", new_callable=AsyncMock, return_value=booking), \
            patch(f"{BOOKINGS}.meeting_service.try_create_meeting", new_callable=AsyncMock, return_value=None):
        await GroupSessionService.schedule_session(db, sessions[0].id, slot_x, now=NOW)
        assert sessions[0].scheduled_at == slot_x

        for offset in (timedelta(minutes=10), timedelta(minutes=-10)):
            with pytest.raises(OverlapError) as exc_info:
                await BookingService.schedule_booking(db, booking.id, slot_x + offset, now=NOW)
            assert exc_info.value.label == "Conversation Club"
            assert exc_info.value.conflicting_start == slot_x
            assert booking.status == BookingStatus.ACCEPTED
            assert booking.scheduled_at is None

        # Back-to-back with the session is allowed
        slot_after = slot_x + timedelta(minutes=lesson_duration(group_course))
        await BookingService.schedule_booking(db, booking.id, slot_after, now=NOW)
    assert booking.status == BookingStatus.SCHEDULED
    assert booking.scheduled_at == slot_after
