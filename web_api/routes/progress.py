"""Lesson progress API routes.

Endpoints:
- POST /api/progress/lesson - Save watch progress (periodic, on pause, on end)
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from learning_core.database import get_transaction
from learning_core.progress import update_lesson_progress
from web_api.auth import get_current_user

router = APIRouter(prefix="/api/progress", tags=["progress"])


class LessonProgressRequest(BaseModel):
    lesson_id: UUID
    last_position_s: int = Field(ge=0)
    completion_percentage: int = Field(ge=0, le=100)
    video_ended: bool = False


class LessonProgressResponse(BaseModel):
    lesson_id: UUID
    status: str
    last_position_s: int
    completion_percentage: int
    completed_at: datetime | None


@router.post("/lesson", response_model=LessonProgressResponse)
async def save_lesson_progress(
    body: LessonProgressRequest,
    user_id: int = Depends(get_current_user),
):
    """Upsert progress. Reaching the end or 90% marks the lesson completed."""
    async with get_transaction() as conn:
        row = await update_lesson_progress(
            conn,
            user_id=user_id,
            lesson_id=body.lesson_id,
            last_position_s=body.last_position_s,
            completion_percentage=body.completion_percentage,
            video_ended=body.video_ended,
        )

    return LessonProgressResponse(
        lesson_id=row["lesson_id"],
        status=str(getattr(row["status"], "value", row["status"])),
        last_position_s=row["last_position_s"],
        completion_percentage=row["completion_percentage"],
        completed_at=row["completed_at"],
    )
