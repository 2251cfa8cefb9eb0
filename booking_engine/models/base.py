"""Base Models and Mixins"""

import uuid
from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from booking_engine.database import Base
from booking_engine.utils.time import get_utc_now


class BaseModel(Base):
    """
    Base model class with common fields for all models.

    Provides:
    - UUID primary key
    - created_at timestamp
    - updated_at timestamp
    """
    __abstract__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)


class MeetingCredentialsMixin:
    """
    Video meeting credentials for a live lesson.

    Present only while the lesson is live; cleared when it ends so the
    links cannot be used afterwards. `provider_meeting_id` keeps the last
    provisioned meeting id after clearing so provider recording
    notifications can still be matched.
    """
    meeting_join_url = Column(String(1024), nullable=True)
    meeting_host_url = Column(String(2048), nullable=True)
    meeting_id = Column(String(64), nullable=True, index=True)
    provider_meeting_id = Column(String(64), nullable=True, index=True)

    def set_meeting(self, credentials) -> None:
        self.meeting_join_url = credentials.join_url
        self.meeting_host_url = credentials.host_url
        self.meeting_id = credentials.meeting_id
        self.provider_meeting_id = credentials.meeting_id

    def clear_meeting(self) -> None:
        self.meeting_join_url = None
        self.meeting_host_url = None
        self.meeting_id = None

    @property
    def has_meeting(self) -> bool:
        return self.meeting_id is not None
