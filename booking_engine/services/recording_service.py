"""
Provider recording notifications.

Zoom posts `recording.completed` once a cloud recording is processed. The
notification is matched to a booking or a group session by the provider
meeting id, which is kept after live links are cleared.
"""

import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.config import settings
from booking_engine.core.exceptions import InvalidTransitionError, WebhookSignatureError
from booking_engine.domain import booking_state, session_state
from booking_engine.models.booking import Booking
from booking_engine.models.course import GroupCourseSchedule
from booking_engine.models.enums import BookingEventType
from booking_engine.services.booking_service import flush_versioned
from booking_engine.services.event_service import EventService

logger = logging.getLogger(__name__)

SIGNATURE_VERSION = "v0"
URL_VALIDATION_EVENT = "endpoint.url_validation"
RECORDING_COMPLETED_EVENT = "recording.completed"


def _hmac_hex(message: str) -> str:
    return hmac.new(
        settings.ZOOM_WEBHOOK_SECRET_TOKEN.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign(body: bytes, timestamp: str) -> str:
    """Signature header value Zoom sends for this body and timestamp."""
    message = f"{SIGNATURE_VERSION}:{timestamp}:{body.decode('utf-8')}"
    return f"{SIGNATURE_VERSION}={_hmac_hex(message)}"


def verify_signature(
    body: bytes,
    timestamp: Optional[str],
    signature: Optional[str],
    now: Optional[float] = None,
) -> None:
    if not settings.ZOOM_WEBHOOK_SECRET_TOKEN:
        logger.error("Zoom webhook secret is not configured")
        raise WebhookSignatureError("Webhook verification is not configured")
    if not timestamp or not signature:
        raise WebhookSignatureError("Missing webhook signature headers")
    try:
        sent_at = int(timestamp)
    except ValueError:
        raise WebhookSignatureError("Malformed webhook timestamp")
    now = time.time() if now is None else now
    if abs(now - sent_at) > settings.ZOOM_WEBHOOK_TOLERANCE_SECONDS:
        raise WebhookSignatureError("Webhook timestamp outside the accepted window")
    try:
        expected = sign(body, timestamp)
    except UnicodeDecodeError:
        raise WebhookSignatureError("Webhook body is not UTF-8")
    if not hmac.compare_digest(expected, signature):
        logger.warning("Zoom webhook signature mismatch")
        raise WebhookSignatureError("Webhook signature mismatch")


def url_validation_response(plain_token: str) -> Dict[str, str]:
    return {"plainToken": plain_token, "encryptedToken": _hmac_hex(plain_token)}


def pick_recording_url(recording: Dict[str, Any]) -> Optional[str]:
    """Playback link of the first completed MP4 file, falling back to its download link."""
    for item in recording.get("recording_files") or []:
        if not isinstance(item, dict):
            continue
        if item.get("file_type") == "MP4" and item.get("status") == "completed":
            return item.get("play_url") or item.get("download_url")
    return None


class RecordingService:
    @staticmethod
    async def handle_event(db: AsyncSession, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get("event")
        payload = event.get("payload") or {}

        if event_type == URL_VALIDATION_EVENT:
            plain_token = payload.get("plainToken")
            if not plain_token:
                return {"status": "skipped"}
            return url_validation_response(plain_token)

        if event_type != RECORDING_COMPLETED_EVENT:
            return {"status": "ignored"}

        recording = payload.get("object") or {}
        meeting_id = recording.get("id")
        url = pick_recording_url(recording)
        if meeting_id is None or not url:
            logger.info("Recording notification without a usable MP4", extra={"meeting_id": meeting_id})
            return {"status": "skipped"}

        status = await RecordingService.attach_provider_recording(db, str(meeting_id), url)
        return {"status": status}

    @staticmethod
    async def attach_provider_recording(db: AsyncSession, meeting_id: str, recording_url: str) -> str:
        """
        Store a provider recording on the booking or session that owns the meeting.

        Returns "saved", "skipped" (owner not in a state that takes
        recordings) or "unmatched".
        """
        result = await db.execute(
            select(Booking)
            .where(Booking.provider_meeting_id == meeting_id)
            .order_by(Booking.created_at.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if booking is not None:
            try:
                booking_state.attach_recording(booking, recording_url)
            except InvalidTransitionError:
                logger.warning(
                    "Recording for booking in status %s ignored",
                    booking.status.value,
                    extra={"booking_id": booking.id, "meeting_id": meeting_id},
                )
                return "skipped"
            EventService.emit(
                db,
                BookingEventType.RECORDING_AVAILABLE,
                booking_id=booking.id,
                lesson_id=booking.lesson_id,
                recording_url=recording_url,
                **EventService.booking_payload(booking),
            )
            await flush_versioned(db, booking)
            return "saved"

        result = await db.execute(
            select(GroupCourseSchedule)
            .where(GroupCourseSchedule.provider_meeting_id == meeting_id)
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        if session is None:
            logger.info("Recording for unknown meeting", extra={"meeting_id": meeting_id})
            return "unmatched"

        try:
            session_state.attach_recording(session, recording_url)
        except InvalidTransitionError:
            # Teacher has not ended the session yet; the recording can be attached manually later
            logger.warning(
                "Recording for session in status %s ignored",
                session.status.value,
                extra={"session_id": session.id, "meeting_id": meeting_id},
            )
            return "skipped"
        EventService.emit(
            db,
            BookingEventType.RECORDING_AVAILABLE,
            lesson_id=session.lesson_id,
            session_id=session.id,
            session_number=session.session_number,
            recording_url=recording_url,
        )
        await db.flush()
        return "saved"
