"""Models Package - Export all models for easy imports"""

from booking_engine.models.base import BaseModel, MeetingCredentialsMixin
from booking_engine.models.enums import *
from booking_engine.models.catalog import Lesson
from booking_engine.models.booking import Booking
from booking_engine.models.billing import Invoice, Installment
from booking_engine.models.course import GroupCourseSchedule
from booking_engine.models.communication import BookingEvent


__all__ = [
    # Base classes
    "BaseModel",
    "MeetingCredentialsMixin",

    # Catalogue
    "Lesson",

    # Bookings
    "Booking",

    # Billing
    "Invoice",
    "Installment",

    # Group courses
    "GroupCourseSchedule",

    # Outbox
    "BookingEvent",
]
