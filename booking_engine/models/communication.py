"""Lifecycle Event Outbox"""

from sqlalchemy import Column, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, ENUM, JSONB

from booking_engine.models.base import BaseModel
from booking_engine.models.enums import BookingEventType


class BookingEvent(BaseModel):
    """
    Append-only lifecycle event, written in the same transaction as the
    state change it describes. External notifiers (chat opening, push,
    email) consume these rows; the engine never delivers messages itself.
    """
    __tablename__ = "booking_events"

    event_type = Column(
        ENUM(BookingEventType, name="booking_event_type", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True)
    lesson_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    payload = Column(JSONB, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<BookingEvent {self.event_type}>"
