from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime

from booking_engine.models.enums import SessionStatus


class SessionResponse(BaseModel):
    """Teacher's view of a course session, host link included."""
    id: UUID
    lesson_id: UUID
    session_number: int
    title: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: SessionStatus
    meeting_join_url: Optional[str] = None
    meeting_host_url: Optional[str] = None
    recording_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StudentSessionResponse(BaseModel):
    id: UUID
    session_number: int
    title: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: SessionStatus
    locked: bool
    join_url: Optional[str] = None
    recording_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SessionSchedule(BaseModel):
    scheduled_at: datetime
    title: Optional[str] = Field(None, max_length=255)


class RecordingAttach(BaseModel):
    recording_url: str = Field(..., min_length=1, max_length=1024)


class JoinLinkResponse(BaseModel):
    session_id: UUID
    join_url: Optional[str] = None


class IncompleteScheduleResponse(BaseModel):
    lesson_id: UUID
    teacher_id: UUID
    title: str
    filled: int
    total: int
    reminded: bool

    model_config = ConfigDict(from_attributes=True)
