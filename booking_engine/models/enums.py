"""Centralized Enum Definitions"""

import enum


# Identity (decoded from the identity provider's token)
class ActorRole(str, enum.Enum):
    """Roles allowed to drive booking actions"""
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


# Catalogue
class LessonType(str, enum.Enum):
    """Lesson product types; only GROUP is a multi-session course"""
    TUTORING = "tutoring"
    BAG_REVIEW = "bag_review"
    SKILLS = "skills"
    GROUP = "group"


# Bookings
class BookingStatus(str, enum.Enum):
    """Booking lifecycle states"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    """Payment methods accepted at purchase"""
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"

    @property
    def is_instant(self) -> bool:
        """Instantly confirmed methods skip administrator review"""
        return self is PaymentMethod.PAYPAL


# Billing
class InvoiceStatus(str, enum.Enum):
    """Invoice review status"""
    PENDING = "pending"
    PAID = "paid"
    REJECTED = "rejected"


class InstallmentStatus(str, enum.Enum):
    """Course installment status"""
    PENDING = "pending"
    PAID = "paid"
    REJECTED = "rejected"


# Group courses
class SessionStatus(str, enum.Enum):
    """Group course session status"""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


# Outbox
class BookingEventType(str, enum.Enum):
    """Lifecycle events published to external subscribers"""
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_SCHEDULED = "booking_scheduled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    SESSION_UNLOCKED = "session_unlocked"
    INVOICE_REJECTED = "invoice_rejected"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    SCHEDULE_REMINDER = "schedule_reminder"
    RECORDING_AVAILABLE = "recording_available"
