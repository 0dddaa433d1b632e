"""Learning session schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the course structure, progress, conversation and assessment
attempt tables used by lesson sessions.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

lesson_status = ENUM(
    "not_started", "in_progress", "completed", name="lesson_status", create_type=False
)
message_role = ENUM("user", "assistant", name="message_role", create_type=False)
assessment_type = ENUM("warmup", "inlesson", "fa", name="assessment_type", create_type=False)


def _timestamp(name: str, **kwargs) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), **kwargs
    )


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (lesson_status, message_role, assessment_type):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("user_id", name="pk_users"),
    )
    op.create_index("idx_users_email", "users", ["email"])

    op.create_table(
        "courses",
        sa.Column("course_id", UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=True),
        sa.Column("is_published", sa.Boolean(), server_default="false"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("course_id", name="pk_courses"),
    )

    op.create_table(
        "modules",
        sa.Column("module_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), server_default="false"),
        sa.PrimaryKeyConstraint("module_id", name="pk_modules"),
    )
    op.create_index("idx_modules_course_order", "modules", ["course_id", "order_index"])

    op.create_table(
        "lessons",
        sa.Column("lesson_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "module_id",
            UUID(as_uuid=True),
            sa.ForeignKey("modules.module_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), server_default="false"),
        sa.Column("video_id", sa.Text(), nullable=True),
        sa.Column("duration_s", sa.Integer(), nullable=True),
        sa.Column("quiz", JSONB(), nullable=True),
        sa.PrimaryKeyConstraint("lesson_id", name="pk_lessons"),
    )
    op.create_index("idx_lessons_module_order", "lessons", ["module_id", "order_index"])
    op.create_index("idx_lessons_course_id", "lessons", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("enrollment_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("enrolled_at"),
        sa.PrimaryKeyConstraint("enrollment_id", name="pk_enrollments"),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
    )

    op.create_table(
        "lesson_progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lesson_id",
            UUID(as_uuid=True),
            sa.ForeignKey("lessons.lesson_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", lesson_status, nullable=False, server_default="not_started"),
        sa.Column("last_position_s", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "completion_percentage", sa.Integer(), nullable=False, server_default="0"
        ),
        _timestamp("last_accessed_at"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_lesson_progress"),
        sa.UniqueConstraint(
            "user_id", "lesson_id", name="uq_lesson_progress_user_lesson"
        ),
    )
    op.create_index("idx_lesson_progress_user_id", "lesson_progress", ["user_id"])

    op.create_table(
        "conversations",
        sa.Column("conversation_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        _timestamp("last_active_at"),
        sa.PrimaryKeyConstraint("conversation_id", name="pk_conversations"),
        sa.UniqueConstraint("user_id", "course_id", name="uq_conversations_user_course"),
    )

    op.create_table(
        "messages",
        sa.Column("message_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "conversation_id",
            sa.Integer(),
            sa.ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", message_role, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.Text(), nullable=False, server_default="general"),
        sa.Column("input_type", sa.Text(), nullable=False, server_default="text"),
        sa.Column("client_seq", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("message_id", name="pk_messages"),
    )
    op.create_index(
        "idx_messages_conversation_created",
        "messages",
        ["conversation_id", "created_at"],
    )

    op.create_table(
        "assessment_attempts",
        sa.Column("attempt_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lesson_id",
            UUID(as_uuid=True),
            sa.ForeignKey("lessons.lesson_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assessment_type", assessment_type, nullable=False),
        sa.Column("question_id", sa.Text(), nullable=False),
        sa.Column("answer", sa.Text(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("is_skipped", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("feedback", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("attempt_id", name="pk_assessment_attempts"),
    )
    op.create_index(
        "idx_assessment_attempts_user_lesson",
        "assessment_attempts",
        ["user_id", "lesson_id"],
    )
    # Agent-hosted attempts are upserted on (user_id, question_id)
    op.create_index(
        "uq_assessment_attempts_user_question_fa",
        "assessment_attempts",
        ["user_id", "question_id"],
        unique=True,
        postgresql_where=sa.text("assessment_type = 'fa'"),
    )


def downgrade() -> None:
    op.drop_table("assessment_attempts")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("lesson_progress")
    op.drop_table("enrollments")
    op.drop_table("lessons")
    op.drop_table("modules")
    op.drop_table("courses")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (assessment_type, message_role, lesson_status):
        enum_type.drop(bind, checkfirst=True)
