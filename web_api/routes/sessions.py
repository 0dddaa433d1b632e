# web_api/routes/sessions.py
"""Lesson session routes.

Endpoints:
- POST /api/courses/{course_id}/lessons/{lesson_id}/session - Resolve the visit context
- WS   /ws/courses/{course_id}/lessons/{lesson_id}          - Live learning session
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from learning_core.attempts import get_answered_question_ids
from learning_core.config import is_evaluation_enabled
from learning_core.database import get_transaction
from learning_core.evaluation import LLMAnswerEvaluator
from learning_core.messages import get_or_create_conversation
from learning_core.orchestrator import LearningSession
from learning_core.question_bank import load_question_bank
from learning_core.session_context import (
    LessonNotFoundError,
    LessonNotInCourseError,
    get_lesson,
    resolve_session,
)
from learning_core.store import DatabaseSessionStore
from learning_core.types import Session
from web_api.auth import get_current_user, get_websocket_user
from web_api.realtime import SocketBridge, run_socket_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])

# Application-defined WebSocket close codes
WS_UNAUTHORIZED = 4401
WS_NOT_FOUND = 4404


class CourseProgressResponse(BaseModel):
    completed_lessons: int
    total_lessons: int
    last_lesson_title: str | None


class LessonProgressResponse(BaseModel):
    completion_percentage: int
    last_position_s: int
    status: str


class SessionResponse(BaseModel):
    user_id: int
    course_id: UUID
    lesson_id: UUID
    conversation_id: int
    session_type: str
    is_first_course_visit: bool
    is_intro_lesson: bool
    is_first_lesson_visit: bool
    is_returning: bool
    lesson_number: int
    prev_lesson_title: str | None
    course_progress: CourseProgressResponse | None
    lesson_progress: LessonProgressResponse | None


def _session_response(session: Session, conversation_id: int) -> SessionResponse:
    course = session.course_progress
    lesson = session.lesson_progress
    return SessionResponse(
        user_id=session.user_id,
        course_id=session.course_id,
        lesson_id=session.lesson_id,
        conversation_id=conversation_id,
        session_type=session.session_type.value,
        is_first_course_visit=session.is_first_course_visit,
        is_intro_lesson=session.is_intro_lesson,
        is_first_lesson_visit=session.is_first_lesson_visit,
        is_returning=session.is_returning,
        lesson_number=session.lesson_number,
        prev_lesson_title=session.prev_lesson_title,
        course_progress=(
            CourseProgressResponse(
                completed_lessons=course.completed_lessons,
                total_lessons=course.total_lessons,
                last_lesson_title=course.last_lesson_title,
            )
            if course
            else None
        ),
        lesson_progress=(
            LessonProgressResponse(
                completion_percentage=lesson.completion_percentage,
                last_position_s=lesson.last_position_s,
                status=lesson.status.value,
            )
            if lesson
            else None
        ),
    )


@router.post(
    "/api/courses/{course_id}/lessons/{lesson_id}/session",
    response_model=SessionResponse,
)
async def create_lesson_session(
    course_id: UUID,
    lesson_id: UUID,
    user_id: int = Depends(get_current_user),
):
    """Resolve the welcome context for entering a lesson and record the visit."""
    try:
        async with get_transaction() as conn:
            session = await resolve_session(
                conn, user_id=user_id, course_id=course_id, lesson_id=lesson_id
            )
            conversation = await get_or_create_conversation(
                conn, user_id=user_id, course_id=course_id
            )
    except (LessonNotFoundError, LessonNotInCourseError) as e:
        raise HTTPException(status_code=404, detail=str(e))

    return _session_response(session, conversation["conversation_id"])


@router.websocket("/ws/courses/{course_id}/lessons/{lesson_id}")
async def lesson_session_socket(websocket: WebSocket, course_id: UUID, lesson_id: UUID):
    user_id = await get_websocket_user(websocket)
    if user_id is None:
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    try:
        async with get_transaction() as conn:
            session = await resolve_session(
                conn, user_id=user_id, course_id=course_id, lesson_id=lesson_id
            )
            conversation = await get_or_create_conversation(
                conn, user_id=user_id, course_id=course_id
            )
            lesson = await get_lesson(conn, lesson_id)
            answered = await get_answered_question_ids(
                conn, user_id=user_id, lesson_id=lesson_id
            )
    except (LessonNotFoundError, LessonNotInCourseError) as e:
        logger.warning("Refusing session socket: %s", e)
        await websocket.close(code=WS_NOT_FOUND)
        return

    await websocket.accept()

    bridge = SocketBridge()
    learning_session = LearningSession(
        session,
        conversation_id=conversation["conversation_id"],
        question_bank=load_question_bank(lesson),
        store=DatabaseSessionStore(),
        agent=bridge,
        player=bridge,
        evaluator=LLMAnswerEvaluator() if is_evaluation_enabled() else None,
        answered_question_ids=answered,
    )

    ready = _session_response(session, conversation["conversation_id"])
    await websocket.send_json(
        {"type": "session.ready", "session": jsonable_encoder(ready)}
    )
    await run_socket_session(websocket, learning_session, bridge)
