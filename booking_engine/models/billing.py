"""Billing Models (Invoices & Course Installments)"""

from sqlalchemy import Column, String, Text, Integer, Numeric, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from booking_engine.models.base import BaseModel
from booking_engine.models.enums import InvoiceStatus, InstallmentStatus, PaymentMethod


class Invoice(BaseModel):
    """
    Financial record of one payment towards a booking.
    Courses paid in installments carry one invoice per installment.
    """
    __tablename__ = "invoices"

    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("course_installments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    lesson_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    teacher_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(
        ENUM(PaymentMethod, name="payment_method", values_callable=lambda x: [e.value for e in x], create_type=False),
        nullable=False,
    )
    status = Column(
        ENUM(InvoiceStatus, name="invoice_status", values_callable=lambda x: [e.value for e in x]),
        default=InvoiceStatus.PENDING,
        nullable=False,
        index=True,
    )
    is_initiating = Column(Boolean, default=False, nullable=False)
    admin_notes = Column(Text, nullable=True)
    payment_receipt_url = Column(String(1024), nullable=True)
    external_payment_id = Column(String(255), nullable=True, unique=True)

    # Relationships
    booking = relationship("Booking", back_populates="invoices")
    installment = relationship("Installment")

    def __repr__(self) -> str:
        return f"<Invoice {self.amount} - {self.status}>"


class Installment(BaseModel):
    """
    One payment milestone of a course purchase after the first.

    Installment #1 is the initiating purchase itself and has no row. Rows
    are append-only: a rejected installment stays rejected and a retry is a
    new row with the same number.
    """
    __tablename__ = "course_installments"

    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    sessions_unlocked = Column(Integer, default=0, nullable=False)
    status = Column(
        ENUM(InstallmentStatus, name="installment_status", values_callable=lambda x: [e.value for e in x]),
        default=InstallmentStatus.PENDING,
        nullable=False,
        index=True,
    )
    paid_at = Column(DateTime, nullable=True)

    # Relationships
    booking = relationship("Booking", back_populates="installments")

    __table_args__ = (
        Index(
            "uq_course_installments_live_number",
            "booking_id",
            "installment_number",
            unique=True,
            postgresql_where=text("status <> 'rejected'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Installment #{self.installment_number} - {self.status}>"
