from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from booking_engine.api import deps
from booking_engine.schemas.billing import (
    InstallmentHistory,
    InstallmentResponse,
    InvoiceApprove,
    InvoiceReject,
    InvoiceResponse,
    PaymentCreate,
    PaymentDraft,
    ReconciliationResponse,
)
from booking_engine.schemas.responses import SuccessResponse
from booking_engine.services.booking_service import BookingService
from booking_engine.services.invoice_service import InvoiceService, ReconciliationResult

router = APIRouter()


def _reconciliation_response(result: ReconciliationResult) -> ReconciliationResponse:
    return ReconciliationResponse(
        booking_id=result.booking.id,
        invoice=InvoiceResponse.model_validate(result.invoice),
        installment=InstallmentResponse.model_validate(result.installment) if result.installment else None,
        paid_sessions=result.booking.paid_sessions,
        replayed=result.replayed,
    )


@router.post("/payments", response_model=SuccessResponse[ReconciliationResponse])
async def record_payment(
    payment_in: PaymentCreate,
    actor: deps.Actor = Depends(deps.require_student),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Record a purchase or the next course installment.
    Resubmitting the same external_payment_id returns the original records.
    """
    draft = PaymentDraft(student_id=actor.id, **payment_in.model_dump())
    result = await InvoiceService.record_payment(db, draft)
    message = "Payment already recorded" if result.replayed else "Payment recorded"
    return SuccessResponse(data=_reconciliation_response(result), message=message)


@router.get("/invoices/{invoice_id}", response_model=SuccessResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    invoice = await InvoiceService.get_invoice(db, invoice_id)
    deps.assert_booking_participant(actor, invoice.booking)
    return SuccessResponse(data=invoice)


@router.post("/invoices/{invoice_id}/approve", response_model=SuccessResponse[ReconciliationResponse])
async def approve_invoice(
    invoice_id: UUID,
    approve_in: InvoiceApprove,
    actor: deps.Actor = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Confirm a manual-review payment.
    """
    result = await InvoiceService.approve_invoice(db, invoice_id, approve_in.admin_notes)
    return SuccessResponse(data=_reconciliation_response(result), message="Invoice approved")


@router.post("/invoices/{invoice_id}/reject", response_model=SuccessResponse[ReconciliationResponse])
async def reject_invoice(
    invoice_id: UUID,
    reject_in: InvoiceReject,
    actor: deps.Actor = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Reject a manual-review payment with a reason.
    """
    result = await InvoiceService.reject_invoice(db, invoice_id, reject_in.admin_notes)
    return SuccessResponse(data=_reconciliation_response(result), message="Invoice rejected")


@router.get("/bookings/{booking_id}/installments", response_model=SuccessResponse[InstallmentHistory])
async def list_installments(
    booking_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Installment ledger of a course booking.
    """
    booking = await BookingService.get_booking(db, booking_id)
    deps.assert_booking_participant(actor, booking)
    return SuccessResponse(
        data=InstallmentHistory(
            booking_id=booking.id,
            paid_sessions=booking.paid_sessions,
            installments=[InstallmentResponse.model_validate(i) for i in booking.installments],
        )
    )
