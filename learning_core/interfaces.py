"""Collaborators a LearningSession talks to.

The session only depends on these protocols; web_api supplies socket
and database backed implementations, tests supply mocks.
"""

from typing import Protocol
from uuid import UUID

from .enums import InputType, MessageRole, MessageType
from .types import Attempt, EvaluationRequest, EvaluationResult, Session


class SessionStore(Protocol):
    async def create_message(
        self,
        conversation_id: int,
        role: MessageRole,
        content: str,
        *,
        input_type: InputType = InputType.text,
        message_type: MessageType = MessageType.general,
        client_seq: int | None = None,
    ) -> dict: ...

    async def upsert_attempt(self, attempt: Attempt) -> dict: ...

    async def update_lesson_progress(
        self,
        *,
        user_id: int,
        lesson_id: UUID,
        last_position_s: int,
        completion_percentage: int,
        video_ended: bool,
    ) -> dict: ...

    async def get_session_context(
        self, user_id: int, course_id: UUID, lesson_id: UUID
    ) -> Session: ...


class AgentChannel(Protocol):
    """Text channel to the remote conversational agent."""

    async def send_text(self, text: str) -> None: ...


class PlayerControl(Protocol):
    """Commands to the video player. Fire-and-forget."""

    def pause(self) -> None: ...

    def play(self) -> None: ...

    def seek(self, position_ms: int) -> None: ...


class AnswerEvaluator(Protocol):
    """Grades free-text answers."""

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult: ...
