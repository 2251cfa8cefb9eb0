"""Booking state machine."""

import logging
from datetime import datetime
from typing import Dict, FrozenSet

from booking_engine.core.exceptions import InvalidTransitionError
from booking_engine.models.enums import BookingStatus, PaymentMethod

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.ACCEPTED, BookingStatus.CANCELLED}),
    BookingStatus.ACCEPTED: frozenset({BookingStatus.SCHEDULED, BookingStatus.CANCELLED}),
    BookingStatus.SCHEDULED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# Statuses whose scheduled_at holds the teacher's time
COMMITTED_STATUSES = frozenset({BookingStatus.ACCEPTED, BookingStatus.SCHEDULED})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, frozenset())


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError("booking", current.value, target.value)


def transition(booking, target: BookingStatus) -> bool:
    """
    Move a booking to `target`.

    Returns False without touching the booking when it is already in `target`,
    so a replayed event has no effect. Raises InvalidTransitionError, leaving
    the booking unchanged, for any move not in BOOKING_TRANSITIONS.
    """
    if booking.status == target:
        return False
    assert_transition(booking.status, target)
    logger.info(
        "Booking transition %s -> %s",
        booking.status.value,
        target.value,
        extra={"booking_id": booking.id},
    )
    booking.status = target
    return True


def initial_status(is_course: bool, payment_method: PaymentMethod) -> BookingStatus:
    """
    Status of a freshly purchased booking.

    Manual-review payments wait for an administrator. Instant payments are
    accepted at once; a course goes straight to scheduled because its own
    session calendar governs timing.
    """
    if not payment_method.is_instant:
        return BookingStatus.PENDING
    return BookingStatus.SCHEDULED if is_course else BookingStatus.ACCEPTED


def accept(booking) -> bool:
    return transition(booking, BookingStatus.ACCEPTED)


def schedule(booking, scheduled_at: datetime) -> None:
    """Assign a concrete start time to an accepted individual booking."""
    assert_transition(booking.status, BookingStatus.SCHEDULED)
    transition(booking, BookingStatus.SCHEDULED)
    booking.scheduled_at = scheduled_at


def reschedule(booking, scheduled_at: datetime) -> None:
    """Move an already scheduled individual booking to a new start time."""
    if booking.status != BookingStatus.SCHEDULED:
        raise InvalidTransitionError("booking", booking.status.value, BookingStatus.SCHEDULED.value)
    booking.scheduled_at = scheduled_at
    booking.clear_meeting()


def start_course(booking) -> bool:
    """Accepted course enrollments move on to scheduled; the course calendar sets times."""
    return transition(booking, BookingStatus.SCHEDULED)


def complete(booking) -> bool:
    """Finish a scheduled booking; live meeting links stop being served."""
    changed = transition(booking, BookingStatus.COMPLETED)
    if changed:
        booking.clear_meeting()
    return changed


def cancel(booking) -> bool:
    """Cancel a non-terminal booking and release any time it was holding."""
    changed = transition(booking, BookingStatus.CANCELLED)
    if changed:
        booking.clear_meeting()
        booking.scheduled_at = None
    return changed


def attach_recording(booking, recording_url: str) -> None:
    """A lesson that took place (scheduled or completed) can carry its recording; a newer one replaces it."""
    if booking.status not in (BookingStatus.SCHEDULED, BookingStatus.COMPLETED):
        raise InvalidTransitionError("booking", booking.status.value, "recording_attached")
    booking.recording_url = recording_url
