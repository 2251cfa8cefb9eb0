"""Lifecycle event outbox"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.models.communication import BookingEvent
from booking_engine.models.enums import BookingEventType

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class EventService:
    @staticmethod
    def emit(
        db: AsyncSession,
        event_type: BookingEventType,
        booking_id: Optional[UUID] = None,
        lesson_id: Optional[UUID] = None,
        **payload: Any,
    ) -> BookingEvent:
        """
        Queue a lifecycle event in the caller's transaction.

        The event is committed together with the state change, so subscribers
        never see an event for a change that was rolled back.
        """
        event = BookingEvent(
            event_type=event_type,
            booking_id=booking_id,
            lesson_id=lesson_id,
            payload={k: _jsonable(v) for k, v in payload.items()},
        )
        db.add(event)
        logger.info(
            "Lifecycle event %s",
            event_type.value,
            extra={"booking_id": booking_id},
        )
        return event

    @staticmethod
    def booking_payload(booking) -> Dict[str, Any]:
        return {
            "student_id": booking.student_id,
            "teacher_id": booking.teacher_id,
            "status": booking.status.value,
        }
