"""Lesson progress and enrollment persistence.

Progress rows are keyed by (user_id, lesson_id). All writes use
INSERT ... ON CONFLICT so concurrent requests for the same lesson never
race into a unique violation.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from .config import LESSON_COMPLETE_PERCENT
from .enums import LessonStatus
from .tables import enrollments, lesson_progress, lessons
from .types import CourseProgress


def lesson_status_for(completion_percentage: int, video_ended: bool) -> LessonStatus:
    """Status implied by a watch-progress report."""
    if video_ended or completion_percentage >= LESSON_COMPLETE_PERCENT:
        return LessonStatus.completed
    return LessonStatus.in_progress


async def get_lesson_progress(
    conn: AsyncConnection, *, user_id: int, lesson_id: UUID
) -> dict | None:
    result = await conn.execute(
        select(lesson_progress).where(
            and_(
                lesson_progress.c.user_id == user_id,
                lesson_progress.c.lesson_id == lesson_id,
            )
        )
    )
    row = result.fetchone()
    return dict(row._mapping) if row else None


async def count_course_progress(
    conn: AsyncConnection, *, user_id: int, course_id: UUID
) -> int:
    """Number of lesson-progress rows this user has anywhere in the course."""
    result = await conn.execute(
        select(func.count())
        .select_from(lesson_progress.join(lessons))
        .where(
            and_(
                lesson_progress.c.user_id == user_id,
                lessons.c.course_id == course_id,
            )
        )
    )
    return result.scalar_one()


async def get_course_progress(
    conn: AsyncConnection, *, user_id: int, course_id: UUID
) -> CourseProgress:
    """Completed/total published lessons plus the last lesson touched."""
    total = await conn.execute(
        select(func.count()).where(
            and_(lessons.c.course_id == course_id, lessons.c.is_published.is_(True))
        )
    )
    completed = await conn.execute(
        select(func.count())
        .select_from(lesson_progress.join(lessons))
        .where(
            and_(
                lesson_progress.c.user_id == user_id,
                lessons.c.course_id == course_id,
                lesson_progress.c.status == LessonStatus.completed,
            )
        )
    )
    last = await conn.execute(
        select(lessons.c.title)
        .select_from(lesson_progress.join(lessons))
        .where(
            and_(
                lesson_progress.c.user_id == user_id,
                lessons.c.course_id == course_id,
            )
        )
        .order_by(lesson_progress.c.last_accessed_at.desc())
        .limit(1)
    )
    return CourseProgress(
        completed_lessons=completed.scalar_one(),
        total_lessons=total.scalar_one(),
        last_lesson_title=last.scalar_one_or_none(),
    )


async def ensure_enrollment(
    conn: AsyncConnection, *, user_id: int, course_id: UUID
) -> None:
    """Auto-enroll the user in the course if they are not enrolled yet."""
    stmt = (
        pg_insert(enrollments)
        .values(user_id=user_id, course_id=course_id)
        .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
    )
    await conn.execute(stmt)


async def touch_lesson_progress(
    conn: AsyncConnection, *, user_id: int, lesson_id: UUID
) -> dict:
    """Record a lesson visit.

    Creates the row if absent, always bumps last_accessed_at, and moves
    not_started to in_progress. Completed lessons stay completed.
    """
    now = datetime.now(timezone.utc)
    stmt = pg_insert(lesson_progress).values(
        user_id=user_id,
        lesson_id=lesson_id,
        status=LessonStatus.in_progress,
        last_accessed_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "lesson_id"],
        set_={
            "last_accessed_at": now,
            "status": case(
                (
                    lesson_progress.c.status == LessonStatus.not_started,
                    LessonStatus.in_progress,
                ),
                else_=lesson_progress.c.status,
            ),
        },
    ).returning(lesson_progress)

    result = await conn.execute(stmt)
    row = result.fetchone()
    # No explicit commit - let the caller's transaction context handle it
    return dict(row._mapping)


async def update_lesson_progress(
    conn: AsyncConnection,
    *,
    user_id: int,
    lesson_id: UUID,
    last_position_s: int,
    completion_percentage: int,
    video_ended: bool = False,
) -> dict:
    """Upsert watch progress for a lesson.

    The lesson becomes completed when the video ended or the watched
    percentage reaches LESSON_COMPLETE_PERCENT. A completed lesson is never
    moved back to in_progress by a later, shorter report.
    """
    completion_percentage = max(0, min(100, int(completion_percentage)))
    status = lesson_status_for(completion_percentage, video_ended)
    now = datetime.now(timezone.utc)
    completed_at = now if status == LessonStatus.completed else None

    stmt = pg_insert(lesson_progress).values(
        user_id=user_id,
        lesson_id=lesson_id,
        status=status,
        last_position_s=last_position_s,
        completion_percentage=completion_percentage,
        last_accessed_at=now,
        completed_at=completed_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "lesson_id"],
        set_={
            "last_position_s": stmt.excluded.last_position_s,
            "completion_percentage": stmt.excluded.completion_percentage,
            "last_accessed_at": now,
            "status": case(
                (
                    lesson_progress.c.status == LessonStatus.completed,
                    LessonStatus.completed,
                ),
                else_=stmt.excluded.status,
            ),
            "completed_at": func.coalesce(
                lesson_progress.c.completed_at, stmt.excluded.completed_at
            ),
        },
    ).returning(lesson_progress)

    result = await conn.execute(stmt)
    row = result.fetchone()
    return dict(row._mapping)
