from typing import Any, List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from booking_engine.api import deps
from booking_engine.core.exceptions import OverlapError
from booking_engine.models.enums import BookingStatus
from booking_engine.schemas.booking import (
    BookingCancel,
    BookingResponse,
    BookingSchedule,
    SlotValidationRequest,
    SlotValidationResponse,
)
from booking_engine.schemas.responses import SuccessResponse
from booking_engine.services.booking_service import BookingService
from booking_engine.services.conflict_service import ConflictValidator

router = APIRouter()


@router.get("/teacher/{teacher_id}", response_model=SuccessResponse[List[BookingResponse]])
async def list_teacher_bookings(
    teacher_id: UUID,
    status: Optional[BookingStatus] = None,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    List a teacher's bookings, optionally filtered by status.
    """
    deps.assert_teacher_of(actor, teacher_id)
    bookings = await BookingService.list_teacher_bookings(db, teacher_id, status)
    return SuccessResponse(data=bookings)


@router.post("/validate-slot", response_model=SuccessResponse[SlotValidationResponse])
async def validate_slot(
    slot_in: SlotValidationRequest,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Check a proposed start time against the teacher's own calendar without writing anything.
    """
    deps.assert_teacher_of(actor, slot_in.teacher_id)
    error = await ConflictValidator.validate_slot(
        db,
        slot_in.teacher_id,
        slot_in.proposed_start,
        slot_in.duration_minutes,
        exclude_booking_id=slot_in.exclude_booking_id,
        exclude_session_id=slot_in.exclude_session_id,
    )
    if error is None:
        return SuccessResponse(data=SlotValidationResponse(available=True), message="Slot available")

    data = SlotValidationResponse(available=False, code=error.code, message=error.message)
    if isinstance(error, OverlapError):
        data.conflicting_label = error.label
        data.conflicting_start = error.conflicting_start
    return SuccessResponse(data=data, message="Slot unavailable")


@router.get("/{booking_id}", response_model=SuccessResponse[BookingResponse])
async def get_booking(
    booking_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    booking = await BookingService.get_booking(db, booking_id)
    deps.assert_booking_participant(actor, booking)
    return SuccessResponse(data=booking)


@router.post("/{booking_id}/schedule", response_model=SuccessResponse[BookingResponse])
async def schedule_booking(
    booking_id: UUID,
    schedule_in: BookingSchedule,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Give an accepted individual booking its start time.
    """
    booking = await BookingService.get_booking(db, booking_id)
    deps.assert_teacher_of(actor, booking.teacher_id)
    booking = await BookingService.schedule_booking(db, booking_id, schedule_in.scheduled_at)
    return SuccessResponse(data=booking, message="Booking scheduled")


@router.post("/{booking_id}/reschedule", response_model=SuccessResponse[BookingResponse])
async def reschedule_booking(
    booking_id: UUID,
    schedule_in: BookingSchedule,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    booking = await BookingService.get_booking(db, booking_id)
    deps.assert_teacher_of(actor, booking.teacher_id)
    booking = await BookingService.reschedule_booking(db, booking_id, schedule_in.scheduled_at)
    return SuccessResponse(data=booking, message="Booking rescheduled")


@router.post("/{booking_id}/complete", response_model=SuccessResponse[BookingResponse])
async def complete_booking(
    booking_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Mark a scheduled lesson finished; either the student or the teacher may do it.
    """
    booking = await BookingService.get_booking(db, booking_id)
    deps.assert_booking_participant(actor, booking)
    booking = await BookingService.complete_booking(db, booking_id)
    return SuccessResponse(data=booking, message="Booking completed")


@router.post("/{booking_id}/cancel", response_model=SuccessResponse[BookingResponse])
async def cancel_booking(
    booking_id: UUID,
    cancel_in: BookingCancel,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Cancel a booking on behalf of its student, its teacher, or an admin.
    """
    booking = await BookingService.get_booking(db, booking_id)
    deps.assert_booking_participant(actor, booking)
    booking = await BookingService.cancel_booking(db, booking_id, cancel_in.reason)
    return SuccessResponse(data=booking, message="Booking cancelled")
