"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

from .enums import assessment_type_enum, lesson_status_enum, message_role_enum

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. USERS
# =====================================================
users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", Text),
    Column("name", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_users_email", "email"),
)


# =====================================================
# 2. COURSE STRUCTURE (authored elsewhere, read-only here)
# =====================================================
courses = Table(
    "courses",
    metadata,
    Column("course_id", UUID(as_uuid=True), primary_key=True),
    Column("title", Text, nullable=False),
    Column("slug", Text),
    Column("is_published", Boolean, server_default="false"),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)

modules = Table(
    "modules",
    metadata,
    Column("module_id", UUID(as_uuid=True), primary_key=True),
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("order_index", Integer, nullable=False),
    Column("is_published", Boolean, server_default="false"),
    Index("idx_modules_course_order", "course_id", "order_index"),
)

lessons = Table(
    "lessons",
    metadata,
    Column("lesson_id", UUID(as_uuid=True), primary_key=True),
    Column(
        "module_id",
        UUID(as_uuid=True),
        ForeignKey("modules.module_id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Denormalized for course-wide queries
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("order_index", Integer, nullable=False),
    Column("is_published", Boolean, server_default="false"),
    Column("video_id", Text),
    Column("duration_s", Integer),
    # {warmup: [...], inlesson: [...], chapters: [...]}
    Column("quiz", JSONB),
    Index("idx_lessons_module_order", "module_id", "order_index"),
    Index("idx_lessons_course_id", "course_id"),
)


# =====================================================
# 3. ENROLLMENT & PROGRESS
# =====================================================
enrollments = Table(
    "enrollments",
    metadata,
    Column("enrollment_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("enrolled_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
)

lesson_progress = Table(
    "lesson_progress",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "lesson_id",
        UUID(as_uuid=True),
        ForeignKey("lessons.lesson_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", lesson_status_enum, nullable=False, server_default="not_started"),
    Column("last_position_s", Integer, nullable=False, server_default="0"),
    Column("completion_percentage", Integer, nullable=False, server_default="0"),
    Column("last_accessed_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("completed_at", TIMESTAMP(timezone=True)),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),
    Index("idx_lesson_progress_user_id", "user_id"),
)


# =====================================================
# 4. CONVERSATIONS & MESSAGES
# =====================================================
conversations = Table(
    "conversations",
    metadata,
    Column("conversation_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "course_id",
        UUID(as_uuid=True),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("last_active_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "course_id", name="uq_conversations_user_course"),
)

messages = Table(
    "messages",
    metadata,
    Column("message_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "conversation_id",
        Integer,
        ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("role", message_role_enum, nullable=False),
    Column("content", Text, nullable=False),
    Column("message_type", Text, nullable=False, server_default="general"),
    Column("input_type", Text, nullable=False, server_default="text"),
    # Client-side submission order within one lesson visit
    Column("client_seq", Integer),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_messages_conversation_created", "conversation_id", "created_at"),
)


# =====================================================
# 5. ASSESSMENT ATTEMPTS
# =====================================================
assessment_attempts = Table(
    "assessment_attempts",
    metadata,
    Column("attempt_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "lesson_id",
        UUID(as_uuid=True),
        ForeignKey("lessons.lesson_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("assessment_type", assessment_type_enum, nullable=False),
    Column("question_id", Text, nullable=False),
    Column("answer", Text),
    Column("is_correct", Boolean),
    Column("is_skipped", Boolean, nullable=False, server_default="false"),
    Column("feedback", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_assessment_attempts_user_lesson", "user_id", "lesson_id"),
    # Agent-hosted questions are upserted: one row per user/question
    Index(
        "uq_assessment_attempts_user_question_fa",
        "user_id",
        "question_id",
        unique=True,
        postgresql_where=text("assessment_type = 'fa'"),
    ),
)
