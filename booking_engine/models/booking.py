"""Booking Model"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from booking_engine.models.base import BaseModel, MeetingCredentialsMixin
from booking_engine.models.enums import BookingStatus, PaymentMethod


class Booking(BaseModel, MeetingCredentialsMixin):
    """
    One student's purchase of a single lesson or a course enrollment.

    Never deleted; only moved to a terminal state. For courses the installment
    plan chosen at first purchase is pinned here and `paid_sessions` is the
    fold of the installment ledger (see domain.installments).
    """
    __tablename__ = "bookings"

    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    teacher_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    lesson_id = Column(UUID(as_uuid=True), ForeignKey("lessons.id", ondelete="RESTRICT"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(
        ENUM(PaymentMethod, name="payment_method", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status = Column(
        ENUM(BookingStatus, name="booking_status", values_callable=lambda x: [e.value for e in x]),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    scheduled_at = Column(DateTime, nullable=True, index=True)  # individual lessons only
    notes = Column(Text, nullable=True)
    recording_url = Column(String(1024), nullable=True)

    # Installment plan, pinned at first purchase
    is_installment = Column(Boolean, default=False, nullable=False)
    total_installments = Column(Integer, nullable=True)
    total_sessions = Column(Integer, nullable=True)
    sessions_per_installment = Column(Integer, nullable=True)
    installment_amount = Column(Numeric(10, 2), nullable=True)

    # Session unlock ledger
    initial_sessions_unlocked = Column(Integer, default=0, nullable=False)
    paid_sessions = Column(Integer, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    lesson = relationship("Lesson", back_populates="bookings")
    invoices = relationship("Invoice", back_populates="booking", order_by="Invoice.created_at")
    installments = relationship(
        "Installment",
        back_populates="booking",
        order_by="Installment.installment_number",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # One live purchase per (student, lesson)
        Index(
            "uq_bookings_active_student_lesson",
            "student_id",
            "lesson_id",
            unique=True,
            postgresql_where=text("status NOT IN ('completed', 'cancelled')"),
        ),
        Index("ix_bookings_teacher_status", "teacher_id", "status"),
        # Individual bookings carry a start once scheduled; courses use their session calendar
        CheckConstraint(
            "status <> 'scheduled' OR scheduled_at IS NOT NULL OR total_sessions IS NOT NULL",
            name="ck_bookings_scheduled_has_start",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking {self.id} - {self.status}>"
