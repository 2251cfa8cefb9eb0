"""Unit tests for GroupSessionService."""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.exceptions import (
    InvalidTransitionError,
    OverlapError,
    SchedulingError,
    SessionLockedError,
)
from booking_engine.models.communication import BookingEvent
from booking_engine.models.course import GroupCourseSchedule
from booking_engine.models.enums import BookingEventType, BookingStatus, SessionStatus
from booking_engine.services.group_session_service import GroupSessionService
from booking_engine.services.meeting_service import MeetingCredentials

from conftest import make_booking, make_session

NOW = datetime(2026, 3, 2, 9, 0)
SERVICE = "booking_engine.services.group_session_service"
CREDS = MeetingCredentials(join_url="https://zoom/j/5", host_url="https://zoom/s/5", meeting_id="5")


@pytest.fixture
def db():
    return AsyncMock(spec=AsyncSession)


def _get_session(session):
    return patch(f"{SERVICE}.GroupSessionService.get_session", new_callable=AsyncMock, return_value=session)


@pytest.mark.asyncio
async def test_create_course_schedule_fills_missing_numbers(db, group_course):
    existing = [make_session(group_course, 1), make_session(group_course, 4)]
    with patch(f"{SERVICE}.GroupSessionService.get_course", new_callable=AsyncMock, return_value=group_course):
        with patch(f"{SERVICE}.GroupSessionService.list_sessions", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = existing
            await GroupSessionService.create_course_schedule(db, group_course.id)

    added = [c.args[0] for c in db.add.call_args_list]
    assert all(isinstance(s, GroupCourseSchedule) for s in added)
    assert sorted(s.session_number for s in added) == [2, 3] + list(range(5, 13))
    assert all(s.status == SessionStatus.PENDING for s in added)


@pytest.mark.asyncio
async def test_schedule_session_checks_conflicts(db, group_course):
    session = make_session(group_course, 2)
    start = NOW + timedelta(days=2)
    with _get_session(session):
        with patch(f"{SERVICE}.ConflictValidator.ensure_slot_available", new_callable=AsyncMock) as mock_slot:
            await GroupSessionService.schedule_session(db, session.id, start, title="Past tenses", now=NOW)

    assert session.scheduled_at == start
    assert session.title == "Past tenses"
    mock_slot.assert_awaited_once_with(
        db, group_course.teacher_id, start, 60, exclude_session_id=session.id, now=NOW
    )


@pytest.mark.asyncio
async def test_schedule_session_conflict(db, group_course):
    session = make_session(group_course, 2)
    with _get_session(session):
        with patch(f"{SERVICE}.ConflictValidator.ensure_slot_available", new_callable=AsyncMock) as mock_slot:
            mock_slot.side_effect = OverlapError("Algebra", NOW + timedelta(days=2))
            with pytest.raises(OverlapError):
                await GroupSessionService.schedule_session(db, session.id, NOW + timedelta(days=2), now=NOW)
    assert session.scheduled_at is None


@pytest.mark.asyncio
async def test_active_session_cannot_be_moved(db, group_course):
    session = make_session(group_course, 2, status=SessionStatus.ACTIVE, scheduled_at=NOW)
    with _get_session(session):
        with pytest.raises(InvalidTransitionError):
            await GroupSessionService.schedule_session(db, session.id, NOW + timedelta(days=1), now=NOW)


@pytest.mark.asyncio
async def test_start_session_with_meeting(db, group_course):
    session = make_session(group_course, 1, scheduled_at=NOW + timedelta(minutes=5))
    with _get_session(session):
        with patch(f"{SERVICE}.meeting_service.try_create_meeting", new_callable=AsyncMock, return_value=CREDS):
            await GroupSessionService.start_session(db, session.id, now=NOW)

    assert session.status == SessionStatus.ACTIVE
    assert session.meeting_join_url == CREDS.join_url
    events = [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], BookingEvent)]
    assert [e.event_type for e in events] == [BookingEventType.SESSION_STARTED]
    assert events[0].payload["has_meeting"] is True


@pytest.mark.asyncio
async def test_start_session_without_meeting(db, group_course):
    session = make_session(group_course, 1, scheduled_at=NOW)
    with _get_session(session):
        with patch(f"{SERVICE}.meeting_service.try_create_meeting", new_callable=AsyncMock, return_value=None):
            await GroupSessionService.start_session(db, session.id, now=NOW)

    assert session.status == SessionStatus.ACTIVE
    assert not session.has_meeting


@pytest.mark.asyncio
async def test_start_session_in_the_past(db, group_course):
    session = make_session(group_course, 1, scheduled_at=NOW - timedelta(hours=1))
    with _get_session(session):
        with patch(f"{SERVICE}.meeting_service.try_create_meeting", new_callable=AsyncMock) as mock_meeting:
            with pytest.raises(SchedulingError):
                await GroupSessionService.start_session(db, session.id, now=NOW)
    assert session.status == SessionStatus.PENDING
    assert not mock_meeting.called


@pytest.mark.asyncio
async def test_start_active_session_is_noop(db, group_course):
    session = make_session(group_course, 1, status=SessionStatus.ACTIVE, scheduled_at=NOW)
    with _get_session(session):
        with patch(f"{SERVICE}.meeting_service.try_create_meeting", new_callable=AsyncMock) as mock_meeting:
            await GroupSessionService.start_session(db, session.id, now=NOW)
    assert not mock_meeting.called
    assert not db.add.called


@pytest.mark.asyncio
async def test_end_session(db, group_course):
    session = make_session(group_course, 1, scheduled_at=NOW)
    session.status = SessionStatus.ACTIVE
    session.set_meeting(CREDS)
    with _get_session(session):
        await GroupSessionService.end_session(db, session.id)
        await GroupSessionService.end_session(db, session.id)

    assert session.status == SessionStatus.COMPLETED
    assert not session.has_meeting
    assert db.add.call_count == 1


@pytest.mark.asyncio
async def test_upload_recording(db, group_course):
    session = make_session(group_course, 1, status=SessionStatus.COMPLETED, scheduled_at=NOW)
    with _get_session(session):
        with patch(f"{SERVICE}.storage_service.upload", new_callable=AsyncMock) as mock_upload:
            mock_upload.return_value = "https://cdn/recordings/x.mp4"
            await GroupSessionService.upload_recording(db, session.id, "class.mp4", b"data", "video/mp4")

    assert session.recording_url == "https://cdn/recordings/x.mp4"
    mock_upload.assert_awaited_once_with(
        f"recordings/{group_course.id}", "class.mp4", b"data", "video/mp4"
    )


@pytest.mark.asyncio
async def test_upload_recording_requires_completed_session(db, group_course):
    session = make_session(group_course, 1, status=SessionStatus.ACTIVE, scheduled_at=NOW)
    with _get_session(session):
        with patch(f"{SERVICE}.storage_service.upload", new_callable=AsyncMock) as mock_upload:
            with pytest.raises(InvalidTransitionError):
                await GroupSessionService.upload_recording(db, session.id, "class.mp4", b"data")
    assert not mock_upload.called


@pytest.mark.asyncio
async def test_student_sessions_are_gated(db, group_course, student_id):
    booking = make_booking(group_course, student_id, status=BookingStatus.SCHEDULED)
    booking.paid_sessions = 3
    sessions = [make_session(group_course, n, scheduled_at=NOW + timedelta(days=n)) for n in range(1, 7)]
    for s in sessions[:4]:
        s.status = SessionStatus.ACTIVE
        s.set_meeting(CREDS)

    with patch(f"{SERVICE}.GroupSessionService._get_enrollment", new_callable=AsyncMock, return_value=booking):
        with patch(f"{SERVICE}.GroupSessionService.list_sessions", new_callable=AsyncMock, return_value=sessions):
            views = await GroupSessionService.list_student_sessions(db, student_id, group_course.id)

    db.connection.assert_awaited_once_with(execution_options={"isolation_level": "REPEATABLE READ"})
    assert [v.locked for v in views] == [False, False, False, True, True, True]
    assert views[2].join_url == CREDS.join_url
    assert views[3].join_url is None


@pytest.mark.asyncio
async def test_join_url_for_locked_session(db, group_course, student_id):
    booking = make_booking(group_course, student_id, status=BookingStatus.SCHEDULED)
    booking.paid_sessions = 3
    session = make_session(group_course, 4, status=SessionStatus.ACTIVE, scheduled_at=NOW)
    session.set_meeting(CREDS)

    with _get_session(session):
        with patch(f"{SERVICE}.GroupSessionService._get_enrollment", new_callable=AsyncMock, return_value=booking):
            with pytest.raises(SessionLockedError):
                await GroupSessionService.get_student_join_url(db, student_id, session.id)

            booking.paid_sessions = 6
            join_url = await GroupSessionService.get_student_join_url(db, student_id, session.id)
    assert join_url == CREDS.join_url


@pytest.mark.asyncio
async def test_incomplete_schedules_remind_once_per_day(db, group_course):
    lessons = MagicMock()
    lessons.scalars.return_value.all.return_value = [group_course]
    db.execute.return_value = lessons
    # filled sessions, then reminders already sent today
    db.scalar.side_effect = [5, 0, 5, 1]

    first = await GroupSessionService.find_incomplete_schedules(db, now=NOW)
    second = await GroupSessionService.find_incomplete_schedules(db, now=NOW)

    assert first[0].filled == 5 and first[0].total == 12
    assert first[0].reminded is True
    assert second[0].reminded is False
    reminders = [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], BookingEvent)]
    assert len(reminders) == 1
    assert reminders[0].event_type == BookingEventType.SCHEDULE_REMINDER


@pytest.mark.asyncio
async def test_fully_dated_course_is_skipped(db, group_course):
    lessons = MagicMock()
    lessons.scalars.return_value.all.return_value = [group_course]
    db.execute.return_value = lessons
    db.scalar.side_effect = [12]

    assert await GroupSessionService.find_incomplete_schedules(db, now=NOW) == []
    assert not db.add.called
