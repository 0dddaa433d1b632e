"""SessionStore backed by the application database.

Each call runs in its own transaction.
"""

from uuid import UUID

from .attempts import record_attempt
from .database import get_transaction
from .enums import InputType, MessageRole, MessageType
from .messages import create_message
from .progress import update_lesson_progress
from .session_context import resolve_session
from .types import Attempt, Session


class DatabaseSessionStore:
    async def create_message(
        self,
        conversation_id: int,
        role: MessageRole,
        content: str,
        *,
        input_type: InputType = InputType.text,
        message_type: MessageType = MessageType.general,
        client_seq: int | None = None,
    ) -> dict:
        async with get_transaction() as conn:
            return await create_message(
                conn,
                conversation_id=conversation_id,
                role=role,
                content=content,
                message_type=message_type,
                input_type=input_type,
                client_seq=client_seq,
            )

    async def upsert_attempt(self, attempt: Attempt) -> dict:
        async with get_transaction() as conn:
            return await record_attempt(conn, attempt)

    async def update_lesson_progress(
        self,
        *,
        user_id: int,
        lesson_id: UUID,
        last_position_s: int,
        completion_percentage: int,
        video_ended: bool,
    ) -> dict:
        async with get_transaction() as conn:
            return await update_lesson_progress(
                conn,
                user_id=user_id,
                lesson_id=lesson_id,
                last_position_s=last_position_s,
                completion_percentage=completion_percentage,
                video_ended=video_ended,
            )

    async def get_session_context(
        self, user_id: int, course_id: UUID, lesson_id: UUID
    ) -> Session:
        async with get_transaction() as conn:
            return await resolve_session(
                conn, user_id=user_id, course_id=course_id, lesson_id=lesson_id
            )
