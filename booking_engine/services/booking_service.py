"""Booking Service - teacher and student actions on individual bookings"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from booking_engine.core.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
)
from booking_engine.domain import booking_state
from booking_engine.models.booking import Booking
from booking_engine.models.enums import BookingEventType, BookingStatus
from booking_engine.services import meeting_service
from booking_engine.services.conflict_service import ConflictValidator, lesson_duration
from booking_engine.services.event_service import EventService
from booking_engine.utils.time import to_utc_naive

logger = logging.getLogger(__name__)


async def flush_versioned(db: AsyncSession, booking: Booking) -> None:
    """Flush pending changes; a lost optimistic-version race becomes ConcurrentModificationError."""
    try:
        await db.flush()
    except StaleDataError as e:
        raise ConcurrentModificationError("Booking", booking.id) from e


class BookingService:
    @staticmethod
    async def get_booking(
        db: AsyncSession,
        booking_id: UUID,
        for_update: bool = False,
    ) -> Booking:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.lesson), selectinload(Booking.installments))
            .where(Booking.id == booking_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    @staticmethod
    async def get_active_booking(
        db: AsyncSession,
        student_id: UUID,
        lesson_id: UUID,
    ) -> Optional[Booking]:
        """The student's non-terminal booking for a lesson, if any."""
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.lesson), selectinload(Booking.installments))
            .where(
                Booking.student_id == student_id,
                Booking.lesson_id == lesson_id,
                Booking.status.not_in(booking_state.TERMINAL_STATUSES),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_teacher_bookings(
        db: AsyncSession,
        teacher_id: UUID,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        stmt = select(Booking).where(Booking.teacher_id == teacher_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        result = await db.execute(stmt.order_by(Booking.scheduled_at, Booking.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def _provision_meeting(booking: Booking) -> None:
        lesson = booking.lesson
        credentials = await meeting_service.try_create_meeting(
            lesson.title if lesson else "Lesson",
            lesson_duration(lesson),
            booking.scheduled_at,
        )
        if credentials is not None:
            booking.set_meeting(credentials)

    @staticmethod
    def _assert_individual(booking: Booking, target: BookingStatus) -> None:
        # Course enrollments follow the course calendar, never a booking time
        if booking.lesson is not None and booking.lesson.is_course:
            raise InvalidTransitionError("booking", booking.status.value, target.value)

    @staticmethod
    async def schedule_booking(
        db: AsyncSession,
        booking_id: UUID,
        scheduled_at: datetime,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Teacher assigns a start time to an accepted individual booking.

        The slot is validated under the teacher's schedule lock; a meeting is
        provisioned afterwards and its failure does not undo the scheduling.
        """
        booking = await BookingService.get_booking(db, booking_id, for_update=True)
        BookingService._assert_individual(booking, BookingStatus.SCHEDULED)
        booking_state.assert_transition(booking.status, BookingStatus.SCHEDULED)

        start = to_utc_naive(scheduled_at)
        await ConflictValidator.ensure_slot_available(
            db,
            booking.teacher_id,
            start,
            lesson_duration(booking.lesson),
            exclude_booking_id=booking.id,
            now=now,
        )
        booking_state.schedule(booking, start)
        await BookingService._provision_meeting(booking)
        EventService.emit(
            db,
            BookingEventType.BOOKING_SCHEDULED,
            booking_id=booking.id,
            lesson_id=booking.lesson_id,
            scheduled_at=start,
            **EventService.booking_payload(booking),
        )
        await flush_versioned(db, booking)
        return booking

    @staticmethod
    async def reschedule_booking(
        db: AsyncSession,
        booking_id: UUID,
        scheduled_at: datetime,
        now: Optional[datetime] = None,
    ) -> Booking:
        """Move a scheduled individual booking; its old meeting is replaced."""
        booking = await BookingService.get_booking(db, booking_id, for_update=True)
        BookingService._assert_individual(booking, BookingStatus.SCHEDULED)
        if booking.status != BookingStatus.SCHEDULED:
            raise InvalidTransitionError("booking", booking.status.value, BookingStatus.SCHEDULED.value)

        start = to_utc_naive(scheduled_at)
        await ConflictValidator.ensure_slot_available(
            db,
            booking.teacher_id,
            start,
            lesson_duration(booking.lesson),
            exclude_booking_id=booking.id,
            now=now,
        )
        booking_state.reschedule(booking, start)
        await BookingService._provision_meeting(booking)
        EventService.emit(
            db,
            BookingEventType.BOOKING_SCHEDULED,
            booking_id=booking.id,
            lesson_id=booking.lesson_id,
            scheduled_at=start,
            rescheduled=True,
            **EventService.booking_payload(booking),
        )
        await flush_versioned(db, booking)
        return booking

    @staticmethod
    async def complete_booking(db: AsyncSession, booking_id: UUID) -> Booking:
        booking = await BookingService.get_booking(db, booking_id, for_update=True)
        if booking_state.complete(booking):
            EventService.emit(
                db,
                BookingEventType.BOOKING_COMPLETED,
                booking_id=booking.id,
                lesson_id=booking.lesson_id,
                **EventService.booking_payload(booking),
            )
            await flush_versioned(db, booking)
        return booking

    @staticmethod
    async def cancel_booking(
        db: AsyncSession,
        booking_id: UUID,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Cancel on student request or when the external scheduler's payment
        timeout elapses. Cancelling twice is a no-op.
        """
        booking = await BookingService.get_booking(db, booking_id, for_update=True)
        if booking_state.cancel(booking):
            if reason:
                booking.notes = reason
            EventService.emit(
                db,
                BookingEventType.BOOKING_CANCELLED,
                booking_id=booking.id,
                lesson_id=booking.lesson_id,
                reason=reason,
                **EventService.booking_payload(booking),
            )
            await flush_versioned(db, booking)
        return booking
