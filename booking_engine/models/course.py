"""Group Course Session Model"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from booking_engine.models.base import BaseModel, MeetingCredentialsMixin
from booking_engine.models.enums import SessionStatus


class GroupCourseSchedule(BaseModel, MeetingCredentialsMixin):
    """
    One planned occurrence of a multi-session course.
    Moves pending -> active -> completed; the recording is attached after completion.
    """
    __tablename__ = "group_session_schedules"

    lesson_id = Column(UUID(as_uuid=True), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
    session_number = Column(Integer, nullable=False)
    title = Column(String(255), nullable=True)
    scheduled_at = Column(DateTime, nullable=True, index=True)
    status = Column(
        ENUM(SessionStatus, name="session_status", values_callable=lambda x: [e.value for e in x]),
        default=SessionStatus.PENDING,
        nullable=False,
        index=True,
    )
    recording_url = Column(String(1024), nullable=True)

    # Relationships
    lesson = relationship("Lesson", back_populates="sessions")

    __table_args__ = (
        UniqueConstraint("lesson_id", "session_number", name="uq_group_session_number"),
    )

    def __repr__(self) -> str:
        return f"<GroupCourseSchedule #{self.session_number} - {self.status}>"
