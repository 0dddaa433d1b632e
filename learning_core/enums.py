"""Enum definitions shared by the session components and the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class SessionType(str, enum.Enum):
    course_welcome = "course_welcome"
    course_welcome_back = "course_welcome_back"
    lesson_welcome = "lesson_welcome"
    lesson_welcome_back = "lesson_welcome_back"


class LessonStatus(str, enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"


class CampaignType(str, enum.Enum):
    warmup = "warmup"
    inlesson = "inlesson"
    formative_assessment = "fa"


class QuestionType(str, enum.Enum):
    multiple_choice = "mcq"
    free_text = "text"


class QuestionStatus(str, enum.Enum):
    pending = "pending"
    answered = "answered"
    skipped = "skipped"


class MessageRole(str, enum.Enum):
    user = "user"
    assistant = "assistant"


class MessageType(str, enum.Enum):
    general = "general"
    fa = "fa"
    fa_intro = "fa-intro"
    warmup = "warmup"
    inlesson = "inlesson"


class InputType(str, enum.Enum):
    text = "text"
    voice = "voice"


class PlayerState(enum.IntEnum):
    """Play states reported by the embedded video player."""

    unstarted = -1
    ended = 0
    playing = 1
    paused = 2
    buffering = 3
    replaying = 5


# =====================================================
# SQLAlchemy Enum Types
# These reference PostgreSQL types created by migration 001
# =====================================================

lesson_status_enum = SQLEnum(
    LessonStatus,
    name="lesson_status",
    create_type=False,
    native_enum=True,
    values_callable=lambda e: [m.value for m in e],
)
message_role_enum = SQLEnum(
    MessageRole,
    name="message_role",
    create_type=False,
    native_enum=True,
    values_callable=lambda e: [m.value for m in e],
)
assessment_type_enum = SQLEnum(
    CampaignType,
    name="assessment_type",
    create_type=False,
    native_enum=True,
    values_callable=lambda e: [m.value for m in e],
)
