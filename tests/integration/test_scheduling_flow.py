"""Integration tests: booking and course flows against a real database."""

import pytest
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from booking_engine.database import AsyncSessionLocal, close_db, init_db
from booking_engine.models.catalog import Lesson
from booking_engine.models.enums import ActorRole, LessonType
from booking_engine.utils.time import get_utc_now

from conftest import auth_headers, requires_db

pytestmark = requires_db


@pytest.fixture
async def database():
    await init_db()
    yield
    # New event loop per test; drop pooled connections bound to this one
    await close_db()


async def _create_lesson(teacher_id, **kwargs) -> Lesson:
    async with AsyncSessionLocal() as session:
        lesson = Lesson(
            teacher_id=teacher_id,
            title=kwargs.pop("title", "Algebra"),
            lesson_type=kwargs.pop("lesson_type", LessonType.TUTORING),
            duration_minutes=kwargs.pop("duration_minutes", 60),
            price=kwargs.pop("price", Decimal("40.00")),
            is_active=True,
            **kwargs,
        )
        session.add(lesson)
        await session.commit()
        return lesson


def _slot(days: int, hour: int) -> str:
    start = (get_utc_now() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)
    return start.isoformat()


@pytest.mark.asyncio
async def test_individual_booking_flow(database, async_client, api_base):
    teacher_id = uuid4()
    teacher = auth_headers(teacher_id, ActorRole.TEACHER)
    lesson = await _create_lesson(teacher_id)

    student_a, student_b = uuid4(), uuid4()
    bookings = []
    for student_id in (student_a, student_b):
        resp = await async_client.post(
            f"{api_base}/payments",
            json={
                "lesson_id": str(lesson.id),
                "amount": "40.00",
                "payment_method": "paypal",
                "external_payment_id": f"pp-{uuid4()}",
            },
            headers=auth_headers(student_id, ActorRole.STUDENT),
        )
        assert resp.status_code == 200, resp.text
        bookings.append(resp.json()["data"]["booking_id"])

    # Same student cannot buy the lesson twice while a booking is active
    resp = await async_client.post(
        f"{api_base}/payments",
        json={"lesson_id": str(lesson.id), "amount": "40.00", "payment_method": "paypal"},
        headers=auth_headers(student_a, ActorRole.STUDENT),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DuplicateBookingError"

    resp = await async_client.post(
        f"{api_base}/bookings/{bookings[0]}/schedule",
        json={"scheduled_at": _slot(2, 10)},
        headers=teacher,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["status"] == "scheduled"

    # Overlapping start for the same teacher is refused
    resp = await async_client.post(
        f"{api_base}/bookings/{bookings[1]}/schedule",
        json={"scheduled_at": _slot(2, 10).replace(":00:00", ":30:00")},
        headers=teacher,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "OverlapError"

    # Back-to-back is fine
    resp = await async_client.post(
        f"{api_base}/bookings/{bookings[1]}/schedule",
        json={"scheduled_at": _slot(2, 11)},
        headers=teacher,
    )
    assert resp.status_code == 200, resp.text

    resp = await async_client.post(
        f"{api_base}/bookings/{bookings[0]}/cancel",
        json={"reason": "student unavailable"},
        headers=auth_headers(student_a, ActorRole.STUDENT),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["scheduled_at"] is None


@pytest.mark.asyncio
async def test_replayed_payment(database, async_client, api_base):
    teacher_id = uuid4()
    lesson = await _create_lesson(teacher_id)
    headers = auth_headers(uuid4(), ActorRole.STUDENT)
    payload = {
        "lesson_id": str(lesson.id),
        "amount": "40.00",
        "payment_method": "paypal",
        "external_payment_id": f"pp-{uuid4()}",
    }

    first = await async_client.post(f"{api_base}/payments", json=payload, headers=headers)
    second = await async_client.post(f"{api_base}/payments", json=payload, headers=headers)

    assert first.status_code == 200 and second.status_code == 200
    assert second.json()["data"]["replayed"] is True
    assert second.json()["data"]["booking_id"] == first.json()["data"]["booking_id"]


@pytest.mark.asyncio
async def test_course_installments_and_visibility(database, async_client, api_base):
    teacher_id = uuid4()
    teacher = auth_headers(teacher_id, ActorRole.TEACHER)
    admin = auth_headers(uuid4(), ActorRole.ADMIN)
    student = auth_headers(uuid4(), ActorRole.STUDENT)
    course = await _create_lesson(
        teacher_id,
        title="Conversation Club",
        lesson_type=LessonType.GROUP,
        price=Decimal("240.00"),
        total_sessions=12,
    )

    resp = await async_client.post(f"{api_base}/courses/{course.id}/sessions", headers=teacher)
    assert resp.status_code == 200, resp.text
    sessions = resp.json()["data"]
    assert [s["session_number"] for s in sessions] == list(range(1, 13))

    resp = await async_client.put(
        f"{api_base}/courses/sessions/{sessions[0]['id']}/schedule",
        json={"scheduled_at": _slot(3, 15)},
        headers=teacher,
    )
    assert resp.status_code == 200, resp.text

    resp = await async_client.post(
        f"{api_base}/payments",
        json={
            "lesson_id": str(course.id),
            "amount": "60.00",
            "payment_method": "bank_transfer",
            "pay_in_installments": True,
            "payment_receipt_url": "https://cdn/receipt.png",
        },
        headers=student,
    )
    assert resp.status_code == 200, resp.text
    booking_id = resp.json()["data"]["booking_id"]
    invoice_id = resp.json()["data"]["invoice"]["id"]

    resp = await async_client.get(f"{api_base}/courses/{course.id}/my-sessions", headers=student)
    assert all(s["locked"] for s in resp.json()["data"])

    resp = await async_client.post(f"{api_base}/invoices/{invoice_id}/approve", json={}, headers=admin)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["paid_sessions"] == 3

    resp = await async_client.get(f"{api_base}/courses/{course.id}/my-sessions", headers=student)
    locked = [s["locked"] for s in resp.json()["data"]]
    assert locked == [False] * 3 + [True] * 9

    resp = await async_client.post(
        f"{api_base}/payments",
        json={
            "lesson_id": str(course.id),
            "booking_id": booking_id,
            "amount": "60.00",
            "payment_method": "paypal",
        },
        headers=student,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["installment"]["installment_number"] == 2
    assert resp.json()["data"]["paid_sessions"] == 6

    resp = await async_client.get(f"{api_base}/bookings/{booking_id}/installments", headers=student)
    assert resp.json()["data"]["paid_sessions"] == 6
