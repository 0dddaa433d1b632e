"""
Learning session core - platform-agnostic.
Used by the web API's REST and WebSocket routes.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, close_engine, is_configured

# Enums and types
from .enums import (
    SessionType, LessonStatus, CampaignType, QuestionType, QuestionStatus,
    MessageRole, MessageType, InputType, PlayerState,
)
from .types import (
    Session, CourseProgress, LessonProgressSnapshot,
    Question, QuizOption, QuizCampaign, CampaignStats, Attempt,
    TranscriptSegment, UserTranscription, FAResponse,
    EvaluationRequest, EvaluationResult, Trigger, ActionOffer,
)

# Session context (async functions - must be awaited)
from .session_context import (
    resolve_session, decide_session_type,
    LessonNotFoundError, LessonNotInCourseError,
)

# Progress, messages, attempts (async functions)
from .progress import update_lesson_progress, get_lesson_progress, get_course_progress
from .messages import get_or_create_conversation, get_conversation, create_message, list_messages
from .attempts import record_attempt, get_answered_question_ids

# Session components
from .question_bank import QuestionBank, load_question_bank
from .quiz_engine import QuizEngine
from .transcript_sync import TranscriptSynchronizer
from .video_triggers import VideoTriggerEngine
from .message_log import MessageLog
from .orchestrator import LearningSession

# Collaborators
from .store import DatabaseSessionStore
from .evaluation import LLMAnswerEvaluator

# Config
from .config import is_dev_mode, is_production, get_allowed_origins, check_required_env_vars

__all__ = [
    # Database
    'get_connection', 'get_transaction', 'close_engine', 'is_configured',
    # Enums and types
    'SessionType', 'LessonStatus', 'CampaignType', 'QuestionType', 'QuestionStatus',
    'MessageRole', 'MessageType', 'InputType', 'PlayerState',
    'Session', 'CourseProgress', 'LessonProgressSnapshot',
    'Question', 'QuizOption', 'QuizCampaign', 'CampaignStats', 'Attempt',
    'TranscriptSegment', 'UserTranscription', 'FAResponse',
    'EvaluationRequest', 'EvaluationResult', 'Trigger', 'ActionOffer',
    # Session context
    'resolve_session', 'decide_session_type',
    'LessonNotFoundError', 'LessonNotInCourseError',
    # Persistence
    'update_lesson_progress', 'get_lesson_progress', 'get_course_progress',
    'get_or_create_conversation', 'get_conversation', 'create_message', 'list_messages',
    'record_attempt', 'get_answered_question_ids',
    # Components
    'QuestionBank', 'load_question_bank', 'QuizEngine', 'TranscriptSynchronizer', 'VideoTriggerEngine',
    'MessageLog', 'LearningSession',
    # Collaborators
    'DatabaseSessionStore', 'LLMAnswerEvaluator',
    # Config
    'is_dev_mode', 'is_production', 'get_allowed_origins', 'check_required_env_vars',
]
