"""Group course session state machine and the session visibility gate."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional
from uuid import UUID

from booking_engine.core.exceptions import InvalidTransitionError, SchedulingError, SessionLockedError
from booking_engine.models.enums import SessionStatus

logger = logging.getLogger(__name__)

SESSION_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.ACTIVE}),
    SessionStatus.ACTIVE: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
}

# Session statuses that hold the teacher's time
COMMITTED_SESSION_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.ACTIVE})


def assert_transition(current: SessionStatus, target: SessionStatus) -> None:
    if target not in SESSION_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError("session", current.value, target.value)


def assert_can_start(session, now: datetime, grace_minutes: int = 0) -> None:
    """
    A pending session may go live only once it has a start time that is
    now or later (widened by `grace_minutes`).
    """
    assert_transition(session.status, SessionStatus.ACTIVE)
    if session.scheduled_at is None:
        raise SchedulingError(
            f"Session {session.session_number} has no scheduled time",
            details={"session_number": session.session_number},
        )
    if session.scheduled_at < now - timedelta(minutes=grace_minutes):
        raise SchedulingError(
            f"Session {session.session_number} start time has already passed",
            details={
                "session_number": session.session_number,
                "scheduled_at": session.scheduled_at.isoformat(),
            },
        )


def assert_can_reschedule(session) -> None:
    if session.status != SessionStatus.PENDING:
        raise InvalidTransitionError("session", session.status.value, "rescheduled")


def activate(session, credentials=None) -> None:
    """pending -> active. Missing credentials mean provisioning failed; the session goes live anyway."""
    assert_transition(session.status, SessionStatus.ACTIVE)
    session.status = SessionStatus.ACTIVE
    if credentials is not None:
        session.set_meeting(credentials)
    logger.info(
        "Session %s started (meeting=%s)",
        session.session_number,
        session.meeting_id,
        extra={"session_id": session.id},
    )


def end(session) -> bool:
    """active -> completed; meeting links are cleared. Ending a completed session is a no-op."""
    if session.status == SessionStatus.COMPLETED:
        return False
    assert_transition(session.status, SessionStatus.COMPLETED)
    session.status = SessionStatus.COMPLETED
    session.clear_meeting()
    logger.info("Session %s ended", session.session_number, extra={"session_id": session.id})
    return True


def attach_recording(session, recording_url: str) -> None:
    """Recordings exist only for completed sessions; a new upload replaces the old one."""
    if session.status != SessionStatus.COMPLETED:
        raise InvalidTransitionError("session", session.status.value, "recording_attached")
    session.recording_url = recording_url


def is_unlocked(session_number: int, paid_sessions: Optional[int]) -> bool:
    return session_number <= (paid_sessions or 0)


@dataclass(frozen=True)
class StudentSessionView:
    """What an enrolled student may see of one course session."""
    id: UUID
    session_number: int
    title: Optional[str]
    scheduled_at: Optional[datetime]
    status: SessionStatus
    locked: bool
    join_url: Optional[str] = None
    recording_url: Optional[str] = None


def student_view(session, paid_sessions: Optional[int]) -> StudentSessionView:
    """
    Apply the visibility gate to one session.

    Locked sessions never expose a join link or recording whatever their
    status; the host link is never exposed to students.
    """
    locked = not is_unlocked(session.session_number, paid_sessions)
    join_url = None
    recording_url = None
    if not locked:
        if session.status == SessionStatus.ACTIVE:
            join_url = session.meeting_join_url
        elif session.status == SessionStatus.COMPLETED:
            recording_url = session.recording_url
    return StudentSessionView(
        id=session.id,
        session_number=session.session_number,
        title=session.title,
        scheduled_at=session.scheduled_at,
        status=session.status,
        locked=locked,
        join_url=join_url,
        recording_url=recording_url,
    )


def assert_unlocked(session_number: int, paid_sessions: Optional[int]) -> None:
    if not is_unlocked(session_number, paid_sessions):
        raise SessionLockedError(session_number, paid_sessions or 0)
