"""
Session context resolution.

Runs once per lesson entry. Works out whether the learner is new to the
course, whether this is the course's intro lesson, and whether they have
been in this lesson before, then records the visit.
"""

import logging
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncConnection

from .enums import LessonStatus, SessionType
from .progress import (
    count_course_progress,
    ensure_enrollment,
    get_course_progress,
    get_lesson_progress,
    touch_lesson_progress,
)
from .tables import lessons, modules
from .types import LessonProgressSnapshot, Session

logger = logging.getLogger(__name__)


class LessonNotFoundError(Exception):
    """Raised when no lesson exists with the requested id."""

    def __init__(self, lesson_id: UUID):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson not found: {lesson_id}")


class LessonNotInCourseError(Exception):
    """Raised when a lesson exists but is not a published lesson of the course."""

    def __init__(self, lesson_id: UUID, course_id: UUID):
        self.lesson_id = lesson_id
        self.course_id = course_id
        super().__init__(f"Lesson {lesson_id} is not published in course {course_id}")


def decide_session_type(
    *,
    is_intro_lesson: bool,
    is_first_course_visit: bool,
    is_first_lesson_visit: bool,
) -> SessionType:
    """Pick the welcome variant.

    The intro lesson always gets a course-level welcome; every other
    lesson gets a lesson-level one.
    """
    if is_intro_lesson:
        if is_first_course_visit:
            return SessionType.course_welcome
        return SessionType.course_welcome_back
    if is_first_lesson_visit:
        return SessionType.lesson_welcome
    return SessionType.lesson_welcome_back


async def get_lesson(conn: AsyncConnection, lesson_id: UUID) -> dict | None:
    result = await conn.execute(select(lessons).where(lessons.c.lesson_id == lesson_id))
    row = result.fetchone()
    return dict(row._mapping) if row else None


async def get_published_lesson_order(
    conn: AsyncConnection, course_id: UUID
) -> list[dict]:
    """Published lessons of a course in reading order (module, then lesson)."""
    result = await conn.execute(
        select(lessons.c.lesson_id, lessons.c.title)
        .select_from(lessons.join(modules))
        .where(
            and_(
                lessons.c.course_id == course_id,
                lessons.c.is_published.is_(True),
            )
        )
        .order_by(modules.c.order_index, lessons.c.order_index)
    )
    return [dict(row._mapping) for row in result.fetchall()]


async def get_first_module_id(conn: AsyncConnection, course_id: UUID) -> UUID | None:
    result = await conn.execute(
        select(modules.c.module_id)
        .where(
            and_(modules.c.course_id == course_id, modules.c.is_published.is_(True))
        )
        .order_by(modules.c.order_index)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_session(
    conn: AsyncConnection,
    *,
    user_id: int,
    course_id: UUID,
    lesson_id: UUID,
) -> Session:
    """
    Resolve the Session for a learner entering a lesson.

    Side effects (in the caller's transaction): enrolls the user in the
    course if needed and creates/touches the lesson-progress row.

    Raises:
        LessonNotFoundError: If the lesson does not exist
        LessonNotInCourseError: If the lesson is not among the course's
            published lessons
    """
    lesson = await get_lesson(conn, lesson_id)
    if lesson is None:
        raise LessonNotFoundError(lesson_id)

    ordering = await get_published_lesson_order(conn, course_id)
    position = next(
        (i for i, row in enumerate(ordering) if row["lesson_id"] == lesson_id), None
    )
    if position is None:
        raise LessonNotInCourseError(lesson_id, course_id)

    # Counted before the visit is recorded below
    progress_count = await count_course_progress(
        conn, user_id=user_id, course_id=course_id
    )
    is_first_course_visit = progress_count == 0

    first_module_id = await get_first_module_id(conn, course_id)
    is_intro_lesson = (
        lesson["order_index"] == 0 and lesson["module_id"] == first_module_id
    )

    existing = await get_lesson_progress(conn, user_id=user_id, lesson_id=lesson_id)
    is_first_lesson_visit = (
        existing is None or existing["status"] == LessonStatus.not_started
    )
    lesson_progress = None
    if existing is not None:
        lesson_progress = LessonProgressSnapshot(
            completion_percentage=existing["completion_percentage"],
            last_position_s=existing["last_position_s"],
            status=LessonStatus(existing["status"]),
        )

    course_progress = await get_course_progress(
        conn, user_id=user_id, course_id=course_id
    )

    session_type = decide_session_type(
        is_intro_lesson=is_intro_lesson,
        is_first_course_visit=is_first_course_visit,
        is_first_lesson_visit=is_first_lesson_visit,
    )

    await ensure_enrollment(conn, user_id=user_id, course_id=course_id)
    await touch_lesson_progress(conn, user_id=user_id, lesson_id=lesson_id)

    logger.info(
        "Resolved session for user %s lesson %s: %s",
        user_id,
        lesson_id,
        session_type.value,
    )

    return Session(
        user_id=user_id,
        course_id=course_id,
        lesson_id=lesson_id,
        session_type=session_type,
        is_first_course_visit=is_first_course_visit,
        is_intro_lesson=is_intro_lesson,
        is_first_lesson_visit=is_first_lesson_visit,
        lesson_number=position + 1,
        prev_lesson_title=ordering[position - 1]["title"] if position > 0 else None,
        course_progress=course_progress,
        lesson_progress=lesson_progress,
    )
