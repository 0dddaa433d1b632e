"""Conversation and message persistence.

One conversation per (user, course). Messages are append-only; display
order is created_at then message_id.
"""

from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql import func

from .enums import InputType, MessageRole, MessageType
from .tables import conversations, messages


async def get_or_create_conversation(
    conn: AsyncConnection, *, user_id: int, course_id: UUID
) -> dict:
    """Get the learner's conversation for a course, creating it if absent."""
    conditions = and_(
        conversations.c.user_id == user_id,
        conversations.c.course_id == course_id,
    )

    result = await conn.execute(select(conversations).where(conditions))
    row = result.fetchone()
    if row:
        return dict(row._mapping)

    try:
        result = await conn.execute(
            conversations.insert()
            .values(user_id=user_id, course_id=course_id)
            .returning(conversations)
        )
        return dict(result.fetchone()._mapping)
    except IntegrityError:
        # Race condition: another request created the conversation first
        await conn.rollback()
        result = await conn.execute(select(conversations).where(conditions))
        row = result.fetchone()
        if row:
            return dict(row._mapping)
        raise


async def get_conversation(
    conn: AsyncConnection, conversation_id: int
) -> dict | None:
    result = await conn.execute(
        select(conversations).where(
            conversations.c.conversation_id == conversation_id
        )
    )
    row = result.fetchone()
    return dict(row._mapping) if row else None


async def create_message(
    conn: AsyncConnection,
    *,
    conversation_id: int,
    role: MessageRole,
    content: str,
    message_type: MessageType = MessageType.general,
    input_type: InputType = InputType.text,
    client_seq: int | None = None,
) -> dict:
    """Append a message and bump the conversation's last_active_at.

    Returns the created row as a dict (message_id and created_at are
    assigned by the database).
    """
    result = await conn.execute(
        messages.insert()
        .values(
            conversation_id=conversation_id,
            role=role,
            content=content,
            message_type=MessageType(message_type).value,
            input_type=InputType(input_type).value,
            client_seq=client_seq,
        )
        .returning(messages)
    )
    row = result.fetchone()

    await conn.execute(
        update(conversations)
        .where(conversations.c.conversation_id == conversation_id)
        .values(last_active_at=func.now())
    )
    return dict(row._mapping)


async def list_messages(
    conn: AsyncConnection, *, conversation_id: int, limit: int | None = None
) -> list[dict]:
    """Conversation history, oldest first."""
    stmt = (
        select(messages)
        .where(messages.c.conversation_id == conversation_id)
        .order_by(messages.c.created_at, messages.c.message_id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)

    result = await conn.execute(stmt)
    return [dict(row._mapping) for row in result.fetchall()]
