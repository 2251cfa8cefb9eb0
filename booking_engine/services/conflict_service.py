"""Conflict Validator - keeps a teacher from being double-booked"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.config import settings
from booking_engine.core.exceptions import SchedulingError
from booking_engine.domain.booking_state import COMMITTED_STATUSES
from booking_engine.domain.conflicts import (
    CommittedSlot,
    GROUP_LABEL,
    INDIVIDUAL_LABEL,
    check_proposed_slot,
)
from booking_engine.domain.session_state import COMMITTED_SESSION_STATUSES
from booking_engine.domain.time_slot import TimeSlot
from booking_engine.models.booking import Booking
from booking_engine.models.catalog import Lesson
from booking_engine.models.course import GroupCourseSchedule
from booking_engine.models.enums import LessonType
from booking_engine.utils.time import get_utc_now, to_utc_naive

logger = logging.getLogger(__name__)


def lesson_duration(lesson: Optional[Lesson]) -> int:
    if lesson is not None and lesson.duration_minutes:
        return lesson.duration_minutes
    return settings.DEFAULT_LESSON_DURATION_MINUTES


def _advisory_key(teacher_id: UUID) -> int:
    # pg_advisory_xact_lock takes a signed bigint
    return (teacher_id.int & 0xFFFFFFFFFFFFFFFF) - (1 << 63)


class ConflictValidator:
    @staticmethod
    async def load_committed_slots(db: AsyncSession, teacher_id: UUID) -> List[CommittedSlot]:
        """Every dated individual booking and course session currently holding the teacher's time."""
        slots: List[CommittedSlot] = []

        result = await db.execute(
            select(Booking, Lesson)
            .join(Lesson, Booking.lesson_id == Lesson.id)
            .where(
                Booking.teacher_id == teacher_id,
                Booking.status.in_(COMMITTED_STATUSES),
                Booking.scheduled_at.is_not(None),
            )
            .order_by(Booking.scheduled_at)
        )
        for booking, lesson in result.all():
            slots.append(CommittedSlot(
                slot=TimeSlot(booking.scheduled_at, lesson_duration(lesson)),
                label=lesson.title or INDIVIDUAL_LABEL,
                booking_id=booking.id,
            ))

        result = await db.execute(
            select(GroupCourseSchedule, Lesson)
            .join(Lesson, GroupCourseSchedule.lesson_id == Lesson.id)
            .where(
                Lesson.teacher_id == teacher_id,
                Lesson.lesson_type == LessonType.GROUP,
                Lesson.is_active.is_(True),
                GroupCourseSchedule.status.in_(COMMITTED_SESSION_STATUSES),
                GroupCourseSchedule.scheduled_at.is_not(None),
            )
            .order_by(GroupCourseSchedule.scheduled_at)
        )
        for session, lesson in result.all():
            slots.append(CommittedSlot(
                slot=TimeSlot(session.scheduled_at, lesson_duration(lesson)),
                label=session.title or lesson.title or GROUP_LABEL,
                session_id=session.id,
            ))
        return slots

    @staticmethod
    async def validate_slot(
        db: AsyncSession,
        teacher_id: UUID,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[UUID] = None,
        exclude_session_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> Optional[SchedulingError]:
        """
        Check a proposed start time against the teacher's committed slots.

        Read-only; returns the error instead of raising so callers can show
        it as-is. Writers should use `ensure_slot_available`.
        """
        now = now or get_utc_now()
        proposed = TimeSlot(to_utc_naive(proposed_start), duration_minutes)
        if proposed.start < now:
            return check_proposed_slot(proposed, [], now)

        committed = await ConflictValidator.load_committed_slots(db, teacher_id)
        error = check_proposed_slot(
            proposed,
            committed,
            now,
            exclude_booking_id=exclude_booking_id,
            exclude_session_id=exclude_session_id,
        )
        if error is not None:
            logger.info(
                "Rejected slot %s: %s",
                proposed,
                error.message,
                extra={"teacher_id": teacher_id},
            )
        return error

    @staticmethod
    async def lock_teacher_schedule(db: AsyncSession, teacher_id: UUID) -> None:
        """
        Serialize schedule writes for one teacher until the transaction ends.

        Two requests can each pass validation before either commits; holding
        this lock across check-then-write makes the second one see the first.
        """
        await db.execute(select(func.pg_advisory_xact_lock(_advisory_key(teacher_id))))

    @staticmethod
    async def ensure_slot_available(
        db: AsyncSession,
        teacher_id: UUID,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[UUID] = None,
        exclude_session_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Lock the teacher's schedule, validate, and raise the conflict if there is one."""
        await ConflictValidator.lock_teacher_schedule(db, teacher_id)
        error = await ConflictValidator.validate_slot(
            db,
            teacher_id,
            proposed_start,
            duration_minutes,
            exclude_booking_id=exclude_booking_id,
            exclude_session_id=exclude_session_id,
            now=now,
        )
        if error is not None:
            raise error
