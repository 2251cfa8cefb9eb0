"""Lesson Catalogue Model"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from booking_engine.models.base import BaseModel
from booking_engine.models.enums import LessonType


class Lesson(BaseModel):
    """
    A purchasable lesson product offered by one teacher.
    Group lessons are multi-session courses with a session calendar.
    """
    __tablename__ = "lessons"

    teacher_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    lesson_type = Column(
        ENUM(LessonType, name="lesson_type", values_callable=lambda x: [e.value for e in x]),
        default=LessonType.TUTORING,
        nullable=False,
        index=True,
    )
    duration_minutes = Column(Integer, default=60, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total_sessions = Column(Integer, nullable=True)  # group courses only
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    bookings = relationship("Booking", back_populates="lesson")
    sessions = relationship(
        "GroupCourseSchedule",
        back_populates="lesson",
        order_by="GroupCourseSchedule.session_number",
        cascade="all, delete-orphan",
    )

    @property
    def is_course(self) -> bool:
        return self.lesson_type == LessonType.GROUP

    def __repr__(self) -> str:
        return f"<Lesson {self.title} ({self.lesson_type})>"
