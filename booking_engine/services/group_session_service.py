"""Group Session Service - course calendars, live sessions and the visibility gate"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking_engine.config import settings
from booking_engine.core.exceptions import (
    DomainError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from booking_engine.domain import session_state
from booking_engine.domain.session_state import StudentSessionView
from booking_engine.models.booking import Booking
from booking_engine.models.catalog import Lesson
from booking_engine.models.communication import BookingEvent
from booking_engine.models.course import GroupCourseSchedule
from booking_engine.models.enums import BookingEventType, BookingStatus, LessonType, SessionStatus
from booking_engine.services import meeting_service, storage_service
from booking_engine.services.conflict_service import ConflictValidator, lesson_duration
from booking_engine.services.event_service import EventService
from booking_engine.utils.time import get_utc_now, to_utc_naive

logger = logging.getLogger(__name__)

# Enrollment states that still give a student a view of the course
ENROLLED_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.ACCEPTED,
    BookingStatus.SCHEDULED,
    BookingStatus.COMPLETED,
)


@dataclass(frozen=True)
class IncompleteSchedule:
    lesson_id: UUID
    teacher_id: UUID
    title: str
    filled: int
    total: int
    reminded: bool


class GroupSessionService:
    @staticmethod
    async def get_course(db: AsyncSession, lesson_id: UUID) -> Lesson:
        lesson = await db.get(Lesson, lesson_id)
        if lesson is None or not lesson.is_course:
            raise NotFoundError("Course", lesson_id)
        return lesson

    @staticmethod
    async def get_session(
        db: AsyncSession,
        session_id: UUID,
        for_update: bool = False,
    ) -> GroupCourseSchedule:
        stmt = (
            select(GroupCourseSchedule)
            .options(selectinload(GroupCourseSchedule.lesson))
            .where(GroupCourseSchedule.id == session_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    @staticmethod
    async def list_sessions(db: AsyncSession, lesson_id: UUID) -> List[GroupCourseSchedule]:
        result = await db.execute(
            select(GroupCourseSchedule)
            .where(GroupCourseSchedule.lesson_id == lesson_id)
            .order_by(GroupCourseSchedule.session_number)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_course_schedule(db: AsyncSession, lesson_id: UUID) -> List[GroupCourseSchedule]:
        """
        Make sure the course has one row per session, numbered 1..total_sessions.
        Existing rows are kept; only missing numbers are added.
        """
        lesson = await GroupSessionService.get_course(db, lesson_id)
        if not lesson.total_sessions or lesson.total_sessions < 1:
            raise DomainError(
                f"Course {lesson.title} has no session count",
                details={"lesson_id": str(lesson_id)},
            )

        existing = await GroupSessionService.list_sessions(db, lesson_id)
        numbers = {s.session_number for s in existing}
        for number in range(1, lesson.total_sessions + 1):
            if number not in numbers:
                db.add(GroupCourseSchedule(
                    lesson_id=lesson_id,
                    session_number=number,
                    status=SessionStatus.PENDING,
                ))
        await db.flush()
        return await GroupSessionService.list_sessions(db, lesson_id)

    @staticmethod
    async def schedule_session(
        db: AsyncSession,
        session_id: UUID,
        scheduled_at: datetime,
        title: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GroupCourseSchedule:
        """Teacher sets or moves the start of a pending session."""
        session = await GroupSessionService.get_session(db, session_id, for_update=True)
        session_state.assert_can_reschedule(session)

        start = to_utc_naive(scheduled_at)
        await ConflictValidator.ensure_slot_available(
            db,
            session.lesson.teacher_id,
            start,
            lesson_duration(session.lesson),
            exclude_session_id=session.id,
            now=now,
        )
        session.scheduled_at = start
        if title is not None:
            session.title = title
        await db.flush()
        logger.info(
            "Session %s scheduled at %s",
            session.session_number,
            start.isoformat(),
            extra={"session_id": session.id},
        )
        return session

    @staticmethod
    async def start_session(
        db: AsyncSession,
        session_id: UUID,
        now: Optional[datetime] = None,
    ) -> GroupCourseSchedule:
        """
        pending -> active. A meeting is provisioned first; if the provider
        fails the session still goes live without links. Starting an
        already active session changes nothing.
        """
        session = await GroupSessionService.get_session(db, session_id, for_update=True)
        if session.status == SessionStatus.ACTIVE:
            return session

        now = now or get_utc_now()
        session_state.assert_can_start(session, now, settings.SESSION_START_GRACE_MINUTES)

        lesson = session.lesson
        credentials = await meeting_service.try_create_meeting(
            session.title or f"{lesson.title} - session {session.session_number}",
            lesson_duration(lesson),
            session.scheduled_at,
        )
        session_state.activate(session, credentials)
        EventService.emit(
            db,
            BookingEventType.SESSION_STARTED,
            lesson_id=session.lesson_id,
            session_id=session.id,
            session_number=session.session_number,
            has_meeting=credentials is not None,
        )
        await db.flush()
        return session

    @staticmethod
    async def end_session(db: AsyncSession, session_id: UUID) -> GroupCourseSchedule:
        session = await GroupSessionService.get_session(db, session_id, for_update=True)
        if session_state.end(session):
            EventService.emit(
                db,
                BookingEventType.SESSION_ENDED,
                lesson_id=session.lesson_id,
                session_id=session.id,
                session_number=session.session_number,
            )
            await db.flush()
        return session

    @staticmethod
    async def attach_recording(
        db: AsyncSession,
        session_id: UUID,
        recording_url: str,
    ) -> GroupCourseSchedule:
        session = await GroupSessionService.get_session(db, session_id, for_update=True)
        session_state.attach_recording(session, recording_url)
        await db.flush()
        return session

    @staticmethod
    async def upload_recording(
        db: AsyncSession,
        session_id: UUID,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> GroupCourseSchedule:
        """Store a recording file and attach its public URL to a completed session."""
        session = await GroupSessionService.get_session(db, session_id, for_update=True)
        if session.status != SessionStatus.COMPLETED:
            raise InvalidTransitionError("session", session.status.value, "recording_attached")

        url = await storage_service.upload(
            f"recordings/{session.lesson_id}",
            filename,
            content,
            content_type,
        )
        session_state.attach_recording(session, url)
        await db.flush()
        return session

    @staticmethod
    async def _get_enrollment(db: AsyncSession, student_id: UUID, lesson_id: UUID) -> Booking:
        result = await db.execute(
            select(Booking)
            .where(
                Booking.student_id == student_id,
                Booking.lesson_id == lesson_id,
                Booking.status.in_(ENROLLED_STATUSES),
            )
            .order_by(Booking.created_at.desc())
            .limit(1)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise PermissionDeniedError(
                "Student is not enrolled in this course",
                details={"lesson_id": str(lesson_id)},
            )
        return booking

    @staticmethod
    async def list_student_sessions(
        db: AsyncSession,
        student_id: UUID,
        lesson_id: UUID,
    ) -> List[StudentSessionView]:
        """
        The enrolled student's view of a course calendar.

        The booking's paid_sessions and the session rows are read in one
        REPEATABLE READ snapshot, so a concurrent rejection can never leave
        a just-locked session visible.
        """
        await db.connection(execution_options={"isolation_level": "REPEATABLE READ"})
        booking = await GroupSessionService._get_enrollment(db, student_id, lesson_id)
        sessions = await GroupSessionService.list_sessions(db, lesson_id)
        return [session_state.student_view(s, booking.paid_sessions) for s in sessions]

    @staticmethod
    async def get_student_join_url(
        db: AsyncSession,
        student_id: UUID,
        session_id: UUID,
    ) -> Optional[str]:
        """Join link for one session; raises SessionLockedError past the paid sessions."""
        await db.connection(execution_options={"isolation_level": "REPEATABLE READ"})
        session = await GroupSessionService.get_session(db, session_id)
        booking = await GroupSessionService._get_enrollment(db, student_id, session.lesson_id)
        session_state.assert_unlocked(session.session_number, booking.paid_sessions)
        return session_state.student_view(session, booking.paid_sessions).join_url

    @staticmethod
    async def find_incomplete_schedules(
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> List[IncompleteSchedule]:
        """
        Active courses whose sessions are not all dated yet.

        Each such course gets at most one schedule_reminder event per day for
        its teacher; the external notifier turns it into a push message.
        """
        now = now or get_utc_now()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

        result = await db.execute(
            select(Lesson).where(
                Lesson.lesson_type == LessonType.GROUP,
                Lesson.is_active.is_(True),
                Lesson.total_sessions.is_not(None),
            )
        )
        incomplete: List[IncompleteSchedule] = []
        for lesson in result.scalars().all():
            filled = await db.scalar(
                select(func.count()).select_from(GroupCourseSchedule).where(
                    GroupCourseSchedule.lesson_id == lesson.id,
                    GroupCourseSchedule.scheduled_at.is_not(None),
                )
            ) or 0
            if filled >= lesson.total_sessions:
                continue

            already = await db.scalar(
                select(func.count()).select_from(BookingEvent).where(
                    BookingEvent.event_type == BookingEventType.SCHEDULE_REMINDER,
                    BookingEvent.lesson_id == lesson.id,
                    BookingEvent.created_at >= day_start,
                    BookingEvent.created_at < day_start + timedelta(days=1),
                )
            )
            if not already:
                EventService.emit(
                    db,
                    BookingEventType.SCHEDULE_REMINDER,
                    lesson_id=lesson.id,
                    teacher_id=lesson.teacher_id,
                    filled=filled,
                    total=lesson.total_sessions,
                )
            incomplete.append(IncompleteSchedule(
                lesson_id=lesson.id,
                teacher_id=lesson.teacher_id,
                title=lesson.title,
                filled=filled,
                total=lesson.total_sessions,
                reminded=not already,
            ))
        if incomplete:
            await db.flush()
        return incomplete
