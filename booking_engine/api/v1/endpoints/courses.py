from typing import Any, List
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from booking_engine.api import deps
from booking_engine.schemas.course import (
    IncompleteScheduleResponse,
    JoinLinkResponse,
    RecordingAttach,
    SessionResponse,
    SessionSchedule,
    StudentSessionResponse,
)
from booking_engine.schemas.responses import SuccessResponse
from booking_engine.services.group_session_service import GroupSessionService

router = APIRouter()


async def _owned_session(db: AsyncSession, actor: deps.Actor, session_id: UUID):
    session = await GroupSessionService.get_session(db, session_id)
    deps.assert_teacher_of(actor, session.lesson.teacher_id)
    return session


@router.get("/schedule-reminders", response_model=SuccessResponse[List[IncompleteScheduleResponse]])
async def run_schedule_reminders(
    actor: deps.Actor = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Daily check for courses with undated sessions; queues one reminder per course per day.
    """
    incomplete = await GroupSessionService.find_incomplete_schedules(db)
    return SuccessResponse(data=incomplete)


@router.post("/{lesson_id}/sessions", response_model=SuccessResponse[List[SessionResponse]])
async def create_course_schedule(
    lesson_id: UUID,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Create the course calendar, one undated session per course session.
    """
    lesson = await GroupSessionService.get_course(db, lesson_id)
    deps.assert_teacher_of(actor, lesson.teacher_id)
    sessions = await GroupSessionService.create_course_schedule(db, lesson_id)
    return SuccessResponse(data=sessions, message="Course calendar created")


@router.get("/{lesson_id}/sessions", response_model=SuccessResponse[List[SessionResponse]])
async def list_course_sessions(
    lesson_id: UUID,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    lesson = await GroupSessionService.get_course(db, lesson_id)
    deps.assert_teacher_of(actor, lesson.teacher_id)
    sessions = await GroupSessionService.list_sessions(db, lesson_id)
    return SuccessResponse(data=sessions)


@router.get("/{lesson_id}/my-sessions", response_model=SuccessResponse[List[StudentSessionResponse]])
async def list_my_sessions(
    lesson_id: UUID,
    actor: deps.Actor = Depends(deps.require_student),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Enrolled student's calendar; sessions beyond the paid ones are locked.
    """
    views = await GroupSessionService.list_student_sessions(db, actor.id, lesson_id)
    return SuccessResponse(data=[StudentSessionResponse.model_validate(v) for v in views])


@router.put("/sessions/{session_id}/schedule", response_model=SuccessResponse[SessionResponse])
async def schedule_session(
    session_id: UUID,
    schedule_in: SessionSchedule,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    await _owned_session(db, actor, session_id)
    session = await GroupSessionService.schedule_session(
        db, session_id, schedule_in.scheduled_at, schedule_in.title
    )
    return SuccessResponse(data=session, message="Session scheduled")


@router.post("/sessions/{session_id}/start", response_model=SuccessResponse[SessionResponse])
async def start_session(
    session_id: UUID,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Take a session live. The meeting link may be missing if provisioning failed.
    """
    await _owned_session(db, actor, session_id)
    session = await GroupSessionService.start_session(db, session_id)
    return SuccessResponse(data=session, message="Session started")


@router.post("/sessions/{session_id}/end", response_model=SuccessResponse[SessionResponse])
async def end_session(
    session_id: UUID,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    await _owned_session(db, actor, session_id)
    session = await GroupSessionService.end_session(db, session_id)
    return SuccessResponse(data=session, message="Session ended")


@router.put("/sessions/{session_id}/recording", response_model=SuccessResponse[SessionResponse])
async def attach_recording(
    session_id: UUID,
    recording_in: RecordingAttach,
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    await _owned_session(db, actor, session_id)
    session = await GroupSessionService.attach_recording(db, session_id, recording_in.recording_url)
    return SuccessResponse(data=session, message="Recording attached")


@router.post("/sessions/{session_id}/recording/upload", response_model=SuccessResponse[SessionResponse])
async def upload_recording(
    session_id: UUID,
    file: UploadFile = File(...),
    actor: deps.Actor = Depends(deps.require_teacher),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Upload a recording file for a completed session.
    """
    await _owned_session(db, actor, session_id)
    content = await file.read()
    session = await GroupSessionService.upload_recording(
        db, session_id, file.filename or "recording", content, file.content_type
    )
    return SuccessResponse(data=session, message="Recording uploaded")


@router.get("/sessions/{session_id}/join", response_model=SuccessResponse[JoinLinkResponse])
async def get_join_link(
    session_id: UUID,
    actor: deps.Actor = Depends(deps.require_student),
    db: AsyncSession = Depends(deps.get_db)
) -> Any:
    """
    Join link for an unlocked live session.
    """
    join_url = await GroupSessionService.get_student_join_url(db, actor.id, session_id)
    return SuccessResponse(data=JoinLinkResponse(session_id=session_id, join_url=join_url))
