"""
Type definitions for a learner's in-lesson session.

Immutable records (Session, transcript segments, agent responses) are
frozen dataclasses. Question and QuizCampaign are mutable and owned by
QuizEngine; Trigger is mutable and owned by VideoTriggerEngine.
"""

from dataclasses import dataclass, field
from uuid import UUID

from .enums import (
    CampaignType,
    InputType,
    LessonStatus,
    QuestionStatus,
    QuestionType,
    SessionType,
)


# --- Session context ---


@dataclass(frozen=True)
class CourseProgress:
    completed_lessons: int
    total_lessons: int
    last_lesson_title: str | None = None


@dataclass(frozen=True)
class LessonProgressSnapshot:
    completion_percentage: int
    last_position_s: int
    status: LessonStatus


@dataclass(frozen=True)
class Session:
    """Resolved welcome/visit context for one learner entering one lesson."""

    user_id: int
    course_id: UUID
    lesson_id: UUID
    session_type: SessionType
    is_first_course_visit: bool
    is_intro_lesson: bool
    is_first_lesson_visit: bool
    lesson_number: int
    prev_lesson_title: str | None = None
    course_progress: CourseProgress | None = None
    lesson_progress: LessonProgressSnapshot | None = None

    @property
    def is_returning(self) -> bool:
        return self.session_type in (
            SessionType.course_welcome_back,
            SessionType.lesson_welcome_back,
        )


# --- Quiz ---


@dataclass(frozen=True)
class QuizOption:
    id: str
    text: str


@dataclass
class Question:
    id: str
    text: str
    type: QuestionType
    options: list[QuizOption] = field(default_factory=list)
    correct_option: str | None = None  # Only when gradable locally
    custom_feedback: str | None = None  # Authored feedback overriding the template
    status: QuestionStatus = QuestionStatus.pending
    user_answer: str | None = None
    is_correct: bool | None = None
    feedback: str | None = None

    @property
    def is_locally_gradable(self) -> bool:
        return (
            self.type == QuestionType.multiple_choice
            and self.correct_option is not None
        )


@dataclass
class CampaignStats:
    correct: int = 0
    incorrect: int = 0
    skipped: int = 0

    def copy(self) -> "CampaignStats":
        return CampaignStats(self.correct, self.incorrect, self.skipped)


@dataclass
class QuizCampaign:
    id: str
    type: CampaignType
    questions: list[Question]
    current_index: int = 0
    stats: CampaignStats = field(default_factory=CampaignStats)
    trigger_id: str | None = None
    topic: str | None = None

    @property
    def current(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None


@dataclass(frozen=True)
class Attempt:
    user_id: int
    lesson_id: UUID
    assessment_type: CampaignType
    question_id: str
    answer: str | None
    is_correct: bool | None
    is_skipped: bool
    feedback: str | None

    @property
    def is_agent_hosted(self) -> bool:
        return self.assessment_type == CampaignType.formative_assessment


# --- Agent / evaluator payloads ---


@dataclass(frozen=True)
class TranscriptSegment:
    id: str
    text: str
    is_final: bool
    is_agent_originated: bool = True


@dataclass(frozen=True)
class UserTranscription:
    text: str
    is_final: bool
    input_type: InputType = InputType.voice


@dataclass(frozen=True)
class FAResponse:
    """Structured formative-assessment event sent by the agent."""

    question_number: int | None = None
    question_text: str | None = None
    options: tuple[str, ...] = ()
    is_mcq: bool = False
    feedback_type: str | None = None  # "correct" | "incorrect" | "partial"
    is_complete: bool = False
    completion_summary: str | None = None


@dataclass(frozen=True)
class EvaluationRequest:
    question_id: str
    question_text: str
    answer: str


@dataclass(frozen=True)
class EvaluationResult:
    question_id: str
    is_correct: bool
    feedback: str


# --- Video ---


@dataclass
class Trigger:
    """A bookmark or timed in-lesson question on the video timeline."""

    id: str
    offset_ms: int
    topic: str | None = None
    question_id: str | None = None  # Set for in-lesson question triggers
    triggered: bool = False

    @property
    def is_inlesson(self) -> bool:
        return self.question_id is not None


# --- UI offers ---


@dataclass(frozen=True)
class ActionOffer:
    type: str
    metadata: dict = field(default_factory=dict)
    anchor_message_id: str | int | None = None
    buttons: tuple[dict, ...] = ()
