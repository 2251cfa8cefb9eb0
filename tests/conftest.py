"""Shared pytest fixtures for unit and integration tests."""

import os
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from dotenv import load_dotenv

# Load .env so DATABASE_URL, SECRET_KEY available for requires_db check
load_dotenv()
# In-process API tests share one client address
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from httpx import ASGITransport, AsyncClient

from booking_engine.main import app
from booking_engine.config import settings
from booking_engine.core.security import create_access_token
from booking_engine.models.booking import Booking
from booking_engine.models.catalog import Lesson
from booking_engine.models.course import GroupCourseSchedule
from booking_engine.models.enums import (
    ActorRole,
    BookingStatus,
    LessonType,
    PaymentMethod,
    SessionStatus,
)

# Skip integration tests if DATABASE_URL or SECRET_KEY not set
requires_db = pytest.mark.skipif(
    not os.getenv("DATABASE_URL") or not os.getenv("SECRET_KEY"),
    reason="DATABASE_URL and SECRET_KEY must be set",
)

NOW = datetime(2026, 3, 2, 9, 0, 0)


def _get_api_base() -> str:
    """API base URL. In CI (TEST_USE_LIVE_SERVER=true), hit running server to avoid async teardown issues."""
    if os.getenv("TEST_USE_LIVE_SERVER", "").lower() == "true":
        base = os.getenv("LIVE_SERVER_URL", "http://localhost:8000")
        return f"{base}{settings.API_V1_PREFIX}"
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return _get_api_base()


@pytest.fixture
async def async_client(api_base: str):
    """Async HTTP client. Uses live server in CI to avoid RuntimeError: Task pending during teardown."""
    use_live = os.getenv("TEST_USE_LIVE_SERVER", "").lower() == "true"
    if use_live:
        client = AsyncClient(base_url=api_base, timeout=30.0)
    else:
        transport = ASGITransport(app=app)
        client = AsyncClient(transport=transport, base_url=api_base, timeout=30.0)
    yield client
    await client.aclose()


def auth_headers(actor_id: uuid.UUID, role: ActorRole) -> dict:
    """Bearer headers for an actor, signed with the shared SECRET_KEY."""
    token = create_access_token({"sub": str(actor_id), "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def teacher_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def student_id() -> uuid.UUID:
    return uuid.uuid4()


def make_lesson(
    teacher_id: uuid.UUID,
    lesson_type: LessonType = LessonType.TUTORING,
    price: str = "40.00",
    total_sessions=None,
    duration_minutes: int = 60,
    title: str = "Algebra",
) -> Lesson:
    return Lesson(
        id=uuid.uuid4(),
        teacher_id=teacher_id,
        title=title,
        lesson_type=lesson_type,
        duration_minutes=duration_minutes,
        price=Decimal(price),
        total_sessions=total_sessions,
        is_active=True,
    )


def make_booking(
    lesson: Lesson,
    student_id: uuid.UUID,
    status: BookingStatus = BookingStatus.ACCEPTED,
    payment_method: PaymentMethod = PaymentMethod.PAYPAL,
    scheduled_at=None,
) -> Booking:
    booking = Booking(
        id=uuid.uuid4(),
        student_id=student_id,
        teacher_id=lesson.teacher_id,
        lesson_id=lesson.id,
        amount=lesson.price,
        payment_method=payment_method,
        status=status,
        scheduled_at=scheduled_at,
        is_installment=False,
        initial_sessions_unlocked=0,
        paid_sessions=0 if lesson.is_course else None,
        total_sessions=lesson.total_sessions,
    )
    booking.lesson = lesson
    booking.installments = []
    return booking


def make_session(
    lesson: Lesson,
    session_number: int,
    status: SessionStatus = SessionStatus.PENDING,
    scheduled_at=None,
) -> GroupCourseSchedule:
    session = GroupCourseSchedule(
        id=uuid.uuid4(),
        lesson_id=lesson.id,
        session_number=session_number,
        status=status,
        scheduled_at=scheduled_at,
    )
    session.lesson = lesson
    return session


@pytest.fixture
def tutoring_lesson(teacher_id) -> Lesson:
    return make_lesson(teacher_id)


@pytest.fixture
def group_course(teacher_id) -> Lesson:
    """12-session group course priced at 240.00."""
    return make_lesson(
        teacher_id,
        lesson_type=LessonType.GROUP,
        price="240.00",
        total_sessions=12,
        title="Conversation Club",
    )


def in_hours(hours: float) -> datetime:
    return NOW + timedelta(hours=hours)
