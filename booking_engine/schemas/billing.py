from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, model_validator
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from booking_engine.models.enums import InvoiceStatus, InstallmentStatus, PaymentMethod


class PaymentDraft(BaseModel):
    """
    A payment outcome reported by the purchase flow.
    Without booking_id it is a new purchase; with it, a later installment.
    """
    student_id: UUID
    lesson_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    pay_in_installments: bool = False
    booking_id: Optional[UUID] = None
    payment_receipt_url: Optional[str] = None
    external_payment_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def receipt_required_for_manual_review(self) -> "PaymentDraft":
        if not self.payment_method.is_instant and not self.payment_receipt_url:
            raise ValueError("payment_receipt_url is required for bank transfers")
        return self


class PaymentCreate(BaseModel):
    """Payment submitted through the API; the student comes from the token."""
    lesson_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    pay_in_installments: bool = False
    booking_id: Optional[UUID] = None
    payment_receipt_url: Optional[str] = None
    external_payment_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class InvoiceApprove(BaseModel):
    admin_notes: Optional[str] = None


class InvoiceReject(BaseModel):
    admin_notes: str = Field(..., min_length=1)


class InstallmentPlanResponse(BaseModel):
    total_sessions: int
    total_price: Decimal
    num_installments: int
    sessions_per_installment: int
    amount_per_installment: Decimal
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class InvoiceResponse(BaseModel):
    id: UUID
    booking_id: UUID
    installment_id: Optional[UUID] = None
    amount: Decimal
    payment_method: PaymentMethod
    status: InvoiceStatus
    is_initiating: bool
    admin_notes: Optional[str] = None
    payment_receipt_url: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InstallmentResponse(BaseModel):
    id: UUID
    booking_id: UUID
    installment_number: int
    amount: Decimal
    sessions_unlocked: int
    status: InstallmentStatus
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReconciliationResponse(BaseModel):
    booking_id: UUID
    invoice: InvoiceResponse
    installment: Optional[InstallmentResponse] = None
    paid_sessions: Optional[int] = None
    replayed: bool = False


class InstallmentHistory(BaseModel):
    booking_id: UUID
    paid_sessions: Optional[int] = None
    installments: List[InstallmentResponse] = []
