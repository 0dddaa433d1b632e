"""Assessment attempt persistence.

Agent-hosted (formative assessment) attempts are upserted on
(user_id, question_id) because the agent may re-grade an answer; local
warmup/in-lesson attempts are plain inserts, one row per answer.
"""

from uuid import UUID

from sqlalchemy import and_, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql import func

from .enums import CampaignType
from .tables import assessment_attempts
from .types import Attempt


def build_attempt_statement(attempt: Attempt):
    """INSERT (or INSERT ... ON CONFLICT for agent-hosted types) for an attempt."""
    values = {
        "user_id": attempt.user_id,
        "lesson_id": attempt.lesson_id,
        "assessment_type": attempt.assessment_type,
        "question_id": attempt.question_id,
        "answer": attempt.answer,
        "is_correct": attempt.is_correct,
        "is_skipped": attempt.is_skipped,
        "feedback": attempt.feedback,
    }
    stmt = pg_insert(assessment_attempts).values(**values)

    if attempt.is_agent_hosted:
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "question_id"],
            index_where=text("assessment_type = 'fa'"),
            set_={
                "lesson_id": stmt.excluded.lesson_id,
                "answer": func.coalesce(
                    stmt.excluded.answer, assessment_attempts.c.answer
                ),
                "is_correct": func.coalesce(
                    stmt.excluded.is_correct, assessment_attempts.c.is_correct
                ),
                "is_skipped": stmt.excluded.is_skipped,
                "feedback": func.coalesce(
                    stmt.excluded.feedback, assessment_attempts.c.feedback
                ),
                "updated_at": func.now(),
            },
        )

    return stmt.returning(assessment_attempts)


async def record_attempt(conn: AsyncConnection, attempt: Attempt) -> dict:
    """Persist an attempt. Returns the stored row as a dict."""
    result = await conn.execute(build_attempt_statement(attempt))
    row = result.fetchone()
    return dict(row._mapping)


async def get_answered_question_ids(
    conn: AsyncConnection,
    *,
    user_id: int,
    lesson_id: UUID,
    assessment_type: CampaignType = CampaignType.inlesson,
) -> set[str]:
    """Question ids this user already has an attempt for in the lesson."""
    result = await conn.execute(
        select(assessment_attempts.c.question_id)
        .where(
            and_(
                assessment_attempts.c.user_id == user_id,
                assessment_attempts.c.lesson_id == lesson_id,
                assessment_attempts.c.assessment_type == assessment_type,
            )
        )
        .distinct()
    )
    return {row.question_id for row in result.fetchall()}
