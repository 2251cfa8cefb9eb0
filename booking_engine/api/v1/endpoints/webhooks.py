import json
from typing import Any
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api import deps
from booking_engine.core.exceptions import DomainError
from booking_engine.services import recording_service
from booking_engine.services.recording_service import RecordingService

router = APIRouter()


@router.post("/zoom/recordings")
async def zoom_recording_webhook(
    request: Request,
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Zoom event notifications: URL validation and `recording.completed`.
    Authenticated by the provider signature, not a bearer token.
    """
    body = await request.body()
    recording_service.verify_signature(
        body,
        request.headers.get("x-zm-request-timestamp"),
        request.headers.get("x-zm-signature"),
    )
    try:
        event = json.loads(body)
    except ValueError:
        raise DomainError("Webhook body is not JSON", code="InvalidWebhookBody")
    if not isinstance(event, dict):
        raise DomainError("Webhook body must be a JSON object", code="InvalidWebhookBody")
    return await RecordingService.handle_event(db, event)
