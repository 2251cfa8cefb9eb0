"""Overlap detection between a proposed slot and a teacher's committed slots."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from booking_engine.core.exceptions import OverlapError, PastDateError, SchedulingError
from booking_engine.domain.time_slot import TimeSlot

INDIVIDUAL_LABEL = "Individual lesson"
GROUP_LABEL = "Group session"


@dataclass(frozen=True)
class CommittedSlot:
    """A slot already holding the teacher's time: an individual booking or a course session."""
    slot: TimeSlot
    label: str
    booking_id: Optional[UUID] = None
    session_id: Optional[UUID] = None


def find_overlap(proposed: TimeSlot, committed: Iterable[CommittedSlot]) -> Optional[CommittedSlot]:
    """Return the first committed slot overlapping `proposed`, in iteration order."""
    for existing in committed:
        if proposed.overlaps(existing.slot):
            return existing
    return None


def check_proposed_slot(
    proposed: TimeSlot,
    committed: Iterable[CommittedSlot],
    now: datetime,
    exclude_booking_id: Optional[UUID] = None,
    exclude_session_id: Optional[UUID] = None,
) -> Optional[SchedulingError]:
    """
    Validate a proposed start against the committed slots.

    Returns PastDateError when the slot starts before `now`, OverlapError for
    the first overlap found, or None. The record being edited is skipped so
    re-scheduling a booking or session never conflicts with itself.
    """
    if proposed.start < now:
        return PastDateError(proposed.start, now)

    candidates = (
        c for c in committed
        if not (exclude_booking_id is not None and c.booking_id == exclude_booking_id)
        and not (exclude_session_id is not None and c.session_id == exclude_session_id)
    )
    conflict = find_overlap(proposed, candidates)
    if conflict is not None:
        return OverlapError(conflict.label, conflict.slot.start)
    return None
