"""
Video meeting provisioning (Zoom server-to-server OAuth).

Only called on pending -> live transitions. A provider failure never blocks
the transition: callers use `try_create_meeting`, which logs and returns None.
"""

import logging
from datetime import datetime
from typing import Optional

import httpx
from pydantic import BaseModel

from booking_engine.config import settings
from booking_engine.core.exceptions import MeetingProvisioningError

logger = logging.getLogger(__name__)


class MeetingCredentials(BaseModel):
    join_url: str
    host_url: str
    meeting_id: str


def _decode(resp: httpx.Response) -> dict:
    """Parse a provider response body that must be a JSON object."""
    try:
        data = resp.json()
    except ValueError as e:
        raise MeetingProvisioningError(f"Zoom returned a non-JSON body ({resp.status_code})") from e
    if not isinstance(data, dict):
        raise MeetingProvisioningError(f"Zoom returned an unexpected {type(data).__name__} body")
    return data


async def _get_access_token(client: httpx.AsyncClient) -> str:
    resp = await client.post(
        settings.ZOOM_OAUTH_URL,
        params={"grant_type": "account_credentials", "account_id": settings.ZOOM_ACCOUNT_ID},
        auth=(settings.ZOOM_CLIENT_ID, settings.ZOOM_CLIENT_SECRET),
    )
    resp.raise_for_status()
    token = _decode(resp).get("access_token")
    if not token:
        raise MeetingProvisioningError("Zoom did not return an access token")
    return token


async def create_meeting(topic: str, duration_minutes: int, start_time: datetime) -> MeetingCredentials:
    """
    Create a scheduled meeting and return its join/host links.

    Raises MeetingProvisioningError when credentials are missing or the
    provider call fails.
    """
    if not settings.zoom_configured:
        raise MeetingProvisioningError("Zoom credentials not configured")

    body = {
        "topic": topic or "Lesson",
        "type": 2,  # scheduled meeting
        "start_time": start_time.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "duration": duration_minutes,
        "timezone": settings.ZOOM_TIMEZONE,
        "settings": {
            "host_video": True,
            "participant_video": True,
            "join_before_host": False,
            "waiting_room": True,
            "auto_recording": "cloud",
        },
    }
    try:
        async with httpx.AsyncClient(timeout=settings.ZOOM_TIMEOUT_SECONDS) as client:
            token = await _get_access_token(client)
            resp = await client.post(
                f"{settings.ZOOM_API_BASE_URL.rstrip('/')}/users/me/meetings",
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            resp.raise_for_status()
            data = _decode(resp)
    except httpx.HTTPError as e:
        raise MeetingProvisioningError(f"Zoom request failed: {e}") from e

    try:
        return MeetingCredentials(
            join_url=data["join_url"],
            host_url=data["start_url"],
            meeting_id=str(data["id"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MeetingProvisioningError(f"Zoom response missing or malformed field: {e}") from e


async def try_create_meeting(
    topic: str,
    duration_minutes: int,
    start_time: datetime,
) -> Optional[MeetingCredentials]:
    """Create a meeting, or log a warning and return None if the provider fails."""
    try:
        return await create_meeting(topic, duration_minutes, start_time)
    except MeetingProvisioningError as e:
        logger.warning(
            "Meeting provisioning failed, continuing without meeting link: %s",
            e,
            extra={"topic": topic, "start_time": start_time.isoformat()},
        )
        return None
