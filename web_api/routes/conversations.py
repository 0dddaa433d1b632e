"""Conversation history routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from learning_core.database import get_connection
from learning_core.messages import get_conversation, list_messages
from web_api.auth import get_current_user

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


class MessageResponse(BaseModel):
    message_id: int
    role: str
    content: str
    message_type: str
    input_type: str
    created_at: datetime | None


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def get_conversation_messages(
    conversation_id: int,
    limit: int | None = Query(None, ge=1, le=1000),
    user_id: int = Depends(get_current_user),
):
    """Stored messages of one of the learner's conversations, oldest first."""
    async with get_connection() as conn:
        conversation = await get_conversation(conn, conversation_id)
        # Someone else's conversation looks the same as a missing one
        if conversation is None or conversation["user_id"] != user_id:
            raise HTTPException(status_code=404, detail="Conversation not found")
        rows = await list_messages(conn, conversation_id=conversation_id, limit=limit)

    return [
        MessageResponse(
            message_id=row["message_id"],
            role=str(getattr(row["role"], "value", row["role"])),
            content=row["content"],
            message_type=row["message_type"],
            input_type=row["input_type"],
            created_at=row["created_at"],
        )
        for row in rows
    ]
