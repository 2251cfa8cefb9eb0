from typing import Any
from decimal import Decimal
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from booking_engine.api import deps
from booking_engine.core.exceptions import DomainError
from booking_engine.domain import installments
from booking_engine.schemas.billing import InstallmentPlanResponse
from booking_engine.schemas.responses import SuccessResponse
from booking_engine.services.group_session_service import GroupSessionService

router = APIRouter()


def _plan_response(total_sessions: int, total_price: Decimal) -> SuccessResponse:
    plan = installments.plan(total_sessions, total_price)
    if plan is None:
        raise DomainError(
            f"Courses of {total_sessions} sessions are paid in full",
            code="InstallmentsUnavailable",
            details={"total_sessions": total_sessions},
        )
    return SuccessResponse(
        data=InstallmentPlanResponse(
            total_sessions=plan.total_sessions,
            total_price=plan.total_price,
            num_installments=plan.num_installments,
            sessions_per_installment=plan.sessions_per_installment,
            amount_per_installment=plan.amount_per_installment,
            total_amount=plan.total_amount,
        )
    )


@router.get("/plan", response_model=SuccessResponse[InstallmentPlanResponse])
async def preview_plan(
    total_sessions: int = Query(..., ge=1),
    total_price: Decimal = Query(..., gt=0),
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    """
    Preview the installment schedule for a session count and price.
    """
    return _plan_response(total_sessions, total_price)


@router.get("/plan/{lesson_id}", response_model=SuccessResponse[InstallmentPlanResponse])
async def preview_course_plan(
    lesson_id: UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Installment schedule a student would get for a course today.
    """
    lesson = await GroupSessionService.get_course(db, lesson_id)
    return _plan_response(lesson.total_sessions or 0, lesson.price)
