"""Invoice Reconciliation - turns payment outcomes into booking and session state"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking_engine.core.exceptions import (
    AmountMismatchError,
    ConcurrentModificationError,
    DomainError,
    DuplicateBookingError,
    InstallmentPendingError,
    InstallmentPlanCompleteError,
    NotFoundError,
    PaymentIdConflictError,
    PermissionDeniedError,
)
from booking_engine.domain import booking_state, invoice_state
from booking_engine.domain.installments import (
    InstallmentPlan,
    fold_paid_sessions,
    next_installment_number,
    pinned_plan,
    plan as plan_installments,
)
from booking_engine.models.billing import Installment, Invoice
from booking_engine.models.booking import Booking
from booking_engine.models.catalog import Lesson
from booking_engine.models.enums import (
    BookingEventType,
    BookingStatus,
    InstallmentStatus,
    InvoiceStatus,
)
from booking_engine.schemas.billing import PaymentDraft
from booking_engine.services.booking_service import BookingService, flush_versioned
from booking_engine.services.event_service import EventService
from booking_engine.utils.time import get_utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    booking: Booking
    invoice: Invoice
    installment: Optional[Installment] = None
    replayed: bool = False


def _refold(db: AsyncSession, booking: Booking) -> None:
    """Recompute paid_sessions from the ledger and announce newly unlocked sessions."""
    before = booking.paid_sessions or 0
    after = fold_paid_sessions(
        booking.initial_sessions_unlocked or 0,
        booking.installments,
        booking.total_sessions,
    )
    booking.paid_sessions = after
    if after > before:
        EventService.emit(
            db,
            BookingEventType.SESSION_UNLOCKED,
            booking_id=booking.id,
            lesson_id=booking.lesson_id,
            first_session=before + 1,
            last_session=after,
            **EventService.booking_payload(booking),
        )


def _grant_initial_sessions(db: AsyncSession, booking: Booking) -> None:
    """Sessions covered by the initiating purchase, granted once its payment is confirmed."""
    if booking.total_sessions is None:
        return
    plan = pinned_plan(booking)
    booking.initial_sessions_unlocked = plan.sessions_unlocked_by(1) if plan else booking.total_sessions
    _refold(db, booking)


def _confirm_installment(db: AsyncSession, booking: Booking, installment: Installment, now: datetime) -> None:
    installment.status = InstallmentStatus.PAID
    installment.paid_at = now
    _refold(db, booking)
    logger.info(
        "Installment #%s paid, %s sessions unlocked",
        installment.installment_number,
        booking.paid_sessions,
        extra={"booking_id": booking.id},
    )


def _same_purchase(invoice: Invoice, draft: PaymentDraft) -> bool:
    """A redelivery must come from the same student, for the same lesson and booking."""
    if invoice.student_id != draft.student_id or invoice.lesson_id != draft.lesson_id:
        return False
    return draft.booking_id is None or draft.booking_id == invoice.booking.id


def _assert_amount(expected: Decimal, actual: Decimal) -> None:
    if Decimal(actual) != Decimal(expected):
        raise AmountMismatchError(
            f"Expected a payment of {expected}, got {actual}",
            details={"expected": str(expected), "actual": str(actual)},
        )


class InvoiceService:
    @staticmethod
    async def get_invoice(db: AsyncSession, invoice_id: UUID, for_update: bool = False) -> Invoice:
        stmt = (
            select(Invoice)
            .options(
                selectinload(Invoice.booking).selectinload(Booking.installments),
                selectinload(Invoice.booking).selectinload(Booking.lesson),
                selectinload(Invoice.installment),
            )
            .where(Invoice.id == invoice_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    @staticmethod
    async def get_invoice_by_external_id(db: AsyncSession, external_payment_id: str) -> Optional[Invoice]:
        result = await db.execute(
            select(Invoice)
            .options(
                selectinload(Invoice.booking).selectinload(Booking.installments),
                selectinload(Invoice.installment),
            )
            .where(Invoice.external_payment_id == external_payment_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def record_payment(
        db: AsyncSession,
        draft: PaymentDraft,
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        """
        Record a payment outcome.

        A first payment creates the booking and its initiating invoice; a
        payment carrying booking_id is the next installment of a course.
        Delivering the same external payment again returns the records it
        created the first time and changes nothing.
        """
        now = now or get_utc_now()
        if draft.external_payment_id:
            existing = await InvoiceService.get_invoice_by_external_id(db, draft.external_payment_id)
            if existing is not None:
                if not _same_purchase(existing, draft):
                    logger.warning(
                        "Payment id %s reused for a different purchase",
                        draft.external_payment_id,
                        extra={"invoice_id": existing.id, "student_id": draft.student_id},
                    )
                    raise PaymentIdConflictError(draft.external_payment_id)
                logger.info(
                    "Replayed payment %s",
                    draft.external_payment_id,
                    extra={"invoice_id": existing.id, "booking_id": existing.booking_id},
                )
                return ReconciliationResult(
                    booking=existing.booking,
                    invoice=existing,
                    installment=existing.installment,
                    replayed=True,
                )

        if draft.booking_id is None:
            result = await InvoiceService._record_purchase(db, draft)
        else:
            result = await InvoiceService._record_installment(db, draft, now)

        try:
            await flush_versioned(db, result.booking)
        except IntegrityError as e:
            # Lost a race on the active-booking or external-payment unique index
            raise ConcurrentModificationError("Payment", draft.external_payment_id or draft.lesson_id) from e
        return result

    @staticmethod
    async def _record_purchase(db: AsyncSession, draft: PaymentDraft) -> ReconciliationResult:
        lesson = await db.get(Lesson, draft.lesson_id)
        if lesson is None or not lesson.is_active:
            raise NotFoundError("Lesson", draft.lesson_id)

        if await BookingService.get_active_booking(db, draft.student_id, lesson.id) is not None:
            raise DuplicateBookingError(
                "Student already holds an active booking for this lesson",
                details={"lesson_id": str(lesson.id)},
            )

        plan: Optional[InstallmentPlan] = None
        if draft.pay_in_installments:
            if not lesson.is_course:
                raise DomainError("Only group courses can be paid in installments", code="InstallmentsUnavailable")
            plan = plan_installments(lesson.total_sessions or 0, lesson.price)
            if plan is None:
                raise DomainError(
                    f"Courses of {lesson.total_sessions} sessions are paid in full",
                    code="InstallmentsUnavailable",
                )
        _assert_amount(plan.amount_per_installment if plan else lesson.price, draft.amount)

        booking = Booking(
            id=uuid4(),
            student_id=draft.student_id,
            teacher_id=lesson.teacher_id,
            lesson_id=lesson.id,
            amount=lesson.price,
            payment_method=draft.payment_method,
            status=booking_state.initial_status(lesson.is_course, draft.payment_method),
            notes=draft.notes,
            is_installment=plan is not None,
            total_installments=plan.num_installments if plan else None,
            total_sessions=lesson.total_sessions if lesson.is_course else None,
            sessions_per_installment=plan.sessions_per_installment if plan else None,
            installment_amount=plan.amount_per_installment if plan else None,
            initial_sessions_unlocked=0,
            paid_sessions=0 if lesson.is_course else None,
        )
        booking.lesson = lesson
        booking.installments = []
        invoice = Invoice(
            id=uuid4(),
            booking=booking,
            lesson_id=lesson.id,
            student_id=draft.student_id,
            teacher_id=lesson.teacher_id,
            amount=draft.amount,
            payment_method=draft.payment_method,
            status=InvoiceStatus.PAID if draft.payment_method.is_instant else InvoiceStatus.PENDING,
            is_initiating=True,
            payment_receipt_url=draft.payment_receipt_url,
            external_payment_id=draft.external_payment_id,
        )
        db.add(booking)
        db.add(invoice)

        if draft.payment_method.is_instant:
            _grant_initial_sessions(db, booking)
            EventService.emit(
                db,
                BookingEventType.BOOKING_ACCEPTED,
                booking_id=booking.id,
                lesson_id=lesson.id,
                **EventService.booking_payload(booking),
            )
        logger.info(
            "Purchase recorded (%s, %s)",
            draft.payment_method.value,
            booking.status.value,
            extra={"booking_id": booking.id, "invoice_id": invoice.id},
        )
        return ReconciliationResult(booking=booking, invoice=invoice)

    @staticmethod
    async def _record_installment(
        db: AsyncSession,
        draft: PaymentDraft,
        now: datetime,
    ) -> ReconciliationResult:
        booking = await BookingService.get_booking(db, draft.booking_id, for_update=True)
        if booking.student_id != draft.student_id or booking.lesson_id != draft.lesson_id:
            raise PermissionDeniedError("Booking does not belong to this student and lesson")
        if not booking.is_installment:
            raise DomainError("Booking is not on an installment plan", code="InstallmentsUnavailable")
        if booking.status not in (BookingStatus.ACCEPTED, BookingStatus.SCHEDULED):
            raise DomainError(
                f"Cannot pay an installment on a {booking.status.value} booking",
                code="BookingNotActive",
            )
        if any(i.status == InstallmentStatus.PENDING for i in booking.installments):
            raise InstallmentPendingError("A previous installment is still awaiting review")

        plan = pinned_plan(booking)
        number = next_installment_number(booking.installments)
        if number > plan.num_installments:
            raise InstallmentPlanCompleteError(
                "All installments of this course are already paid",
                details={"total_installments": plan.num_installments},
            )
        _assert_amount(plan.amount_per_installment, draft.amount)

        installment = Installment(
            id=uuid4(),
            installment_number=number,
            amount=plan.amount_per_installment,
            sessions_unlocked=plan.sessions_unlocked_by(number),
            status=InstallmentStatus.PENDING,
        )
        booking.installments.append(installment)
        invoice = Invoice(
            id=uuid4(),
            booking=booking,
            installment=installment,
            lesson_id=booking.lesson_id,
            student_id=booking.student_id,
            teacher_id=booking.teacher_id,
            amount=draft.amount,
            payment_method=draft.payment_method,
            status=InvoiceStatus.PAID if draft.payment_method.is_instant else InvoiceStatus.PENDING,
            is_initiating=False,
            payment_receipt_url=draft.payment_receipt_url,
            external_payment_id=draft.external_payment_id,
        )
        db.add(installment)
        db.add(invoice)

        if draft.payment_method.is_instant:
            _confirm_installment(db, booking, installment, now)
        return ReconciliationResult(booking=booking, invoice=invoice, installment=installment)

    @staticmethod
    async def approve_invoice(
        db: AsyncSession,
        invoice_id: UUID,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        """
        Administrator confirms a manual-review payment.

        The initiating invoice accepts the booking (a course moves on to
        scheduled) and grants the first block of sessions; an installment
        invoice unlocks its block. Approving twice is a no-op.
        """
        now = now or get_utc_now()
        invoice = await InvoiceService.get_invoice(db, invoice_id, for_update=True)
        booking = await BookingService.get_booking(db, invoice.booking_id, for_update=True)
        if not invoice_state.mark_paid(invoice, admin_notes):
            return ReconciliationResult(booking, invoice, invoice.installment, replayed=True)

        if invoice.is_initiating:
            if booking_state.accept(booking):
                EventService.emit(
                    db,
                    BookingEventType.BOOKING_ACCEPTED,
                    booking_id=booking.id,
                    lesson_id=booking.lesson_id,
                    **EventService.booking_payload(booking),
                )
            if booking.lesson is not None and booking.lesson.is_course:
                booking_state.start_course(booking)
            _grant_initial_sessions(db, booking)
        elif invoice.installment is not None:
            _confirm_installment(db, booking, invoice.installment, now)

        await flush_versioned(db, booking)
        logger.info("Invoice approved", extra={"invoice_id": invoice.id, "booking_id": booking.id})
        return ReconciliationResult(booking, invoice, invoice.installment)

    @staticmethod
    async def reject_invoice(
        db: AsyncSession,
        invoice_id: UUID,
        admin_notes: Optional[str],
    ) -> ReconciliationResult:
        """
        Administrator rejects a manual-review payment with a reason.

        Rejecting the initiating invoice cancels the booking. Rejecting a later
        installment only marks that installment rejected: the course stays
        active with the sessions already unlocked and the installment can be
        paid again.
        """
        invoice = await InvoiceService.get_invoice(db, invoice_id, for_update=True)
        booking = await BookingService.get_booking(db, invoice.booking_id, for_update=True)
        if not invoice_state.mark_rejected(invoice, admin_notes):
            return ReconciliationResult(booking, invoice, invoice.installment, replayed=True)

        if invoice.is_initiating:
            if booking_state.cancel(booking):
                EventService.emit(
                    db,
                    BookingEventType.BOOKING_CANCELLED,
                    booking_id=booking.id,
                    lesson_id=booking.lesson_id,
                    reason=invoice.admin_notes,
                    **EventService.booking_payload(booking),
                )
        elif invoice.installment is not None:
            invoice.installment.status = InstallmentStatus.REJECTED

        EventService.emit(
            db,
            BookingEventType.INVOICE_REJECTED,
            booking_id=booking.id,
            lesson_id=booking.lesson_id,
            invoice_id=invoice.id,
            reason=invoice.admin_notes,
            **EventService.booking_payload(booking),
        )
        await flush_versioned(db, booking)
        logger.info("Invoice rejected", extra={"invoice_id": invoice.id, "booking_id": booking.id})
        return ReconciliationResult(booking, invoice, invoice.installment)
