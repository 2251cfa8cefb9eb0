from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from booking_engine.models.enums import BookingStatus, PaymentMethod


class BookingResponse(BaseModel):
    id: UUID
    student_id: UUID
    teacher_id: UUID
    lesson_id: UUID
    amount: Decimal
    payment_method: PaymentMethod
    status: BookingStatus
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None
    meeting_join_url: Optional[str] = None
    recording_url: Optional[str] = None
    is_installment: bool
    total_installments: Optional[int] = None
    total_sessions: Optional[int] = None
    installment_amount: Optional[Decimal] = None
    paid_sessions: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingSchedule(BaseModel):
    scheduled_at: datetime


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class SlotValidationRequest(BaseModel):
    """Preview whether a start time is free for a teacher."""
    teacher_id: UUID
    proposed_start: datetime
    duration_minutes: int = Field(60, gt=0, le=24 * 60)
    exclude_booking_id: Optional[UUID] = None
    exclude_session_id: Optional[UUID] = None


class SlotValidationResponse(BaseModel):
    available: bool
    code: Optional[str] = None
    message: Optional[str] = None
    conflicting_label: Optional[str] = None
    conflicting_start: Optional[datetime] = None
