"""Shared fixtures for learning_core tests."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from learning_core.enums import QuestionType, SessionType
from learning_core.types import Question, QuizOption, Session


def _mcq(question_id: str, correct: str = "a", feedback: str | None = None) -> Question:
    """Multiple-choice question with options a/b/c."""
    return Question(
        id=question_id,
        text=f"Question {question_id}?",
        type=QuestionType.multiple_choice,
        options=[QuizOption("a", "Alpha"), QuizOption("b", "Beta"), QuizOption("c", "Gamma")],
        correct_option=correct,
        custom_feedback=feedback,
    )


def _free_text(question_id: str) -> Question:
    return Question(
        id=question_id,
        text=f"Explain {question_id} in your own words.",
        type=QuestionType.free_text,
    )


def _make_session(
    session_type: SessionType = SessionType.lesson_welcome, **overrides
) -> Session:
    values = {
        "user_id": 7,
        "course_id": uuid.UUID("00000000-0000-0000-0000-0000000000c1"),
        "lesson_id": uuid.UUID("00000000-0000-0000-0000-0000000000a1"),
        "session_type": session_type,
        "is_first_course_visit": session_type == SessionType.course_welcome,
        "is_intro_lesson": session_type
        in (SessionType.course_welcome, SessionType.course_welcome_back),
        "is_first_lesson_visit": session_type == SessionType.lesson_welcome,
        "lesson_number": 2,
    }
    values.update(overrides)
    return Session(**values)


@pytest.fixture
def make_mcq():
    return _mcq


@pytest.fixture
def make_free_text():
    return _free_text


@pytest.fixture
def make_session():
    return _make_session


@pytest.fixture
def lesson_id():
    return uuid.UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture
def course_id():
    return uuid.UUID("00000000-0000-0000-0000-0000000000c1")


@pytest.fixture
def mock_conn():
    """Create a mock async database connection."""
    return AsyncMock()


@pytest.fixture
def store():
    """SessionStore double; create_message hands out increasing ids."""
    store = MagicMock()
    counter = iter(range(100, 10_000))

    async def create_message(conversation_id, role, content, **kwargs):
        return {"message_id": next(counter), "created_at": None}

    store.create_message = AsyncMock(side_effect=create_message)
    store.upsert_attempt = AsyncMock(return_value={})
    store.update_lesson_progress = AsyncMock(return_value={})
    store.get_session_context = AsyncMock()
    return store


@pytest.fixture
def agent():
    agent = MagicMock()
    agent.send_text = AsyncMock(return_value=None)
    return agent


@pytest.fixture
def player():
    return MagicMock()
