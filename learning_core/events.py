"""
Events flowing into and out of a LearningSession.

Components never call into each other. Each one consumes inbound events
and appends effects to its own outbox; LearningSession routes effects to
other components, to collaborators (store, agent, player, evaluator) or
up to the UI.

Every class carries a ``kind`` used as the ``type`` field on the wire.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from .enums import CampaignType, InputType, MessageRole, MessageType, PlayerState
from .types import (
    ActionOffer,
    Attempt,
    CampaignStats,
    EvaluationResult,
    FAResponse,
    Question,
    TranscriptSegment,
    UserTranscription,
)


class AgentPurpose(str, enum.Enum):
    """Why a text is being sent to the agent; drives failure recovery."""

    chat = "chat"
    fa_intro = "fa_intro"
    fa_start = "fa_start"
    fa_answer = "fa_answer"
    inlesson_answer = "inlesson_answer"


# =====================================================
# Inbound events
# =====================================================


@dataclass(frozen=True)
class AgentTranscriptReceived:
    kind: ClassVar[str] = "agent.transcript"
    segment: TranscriptSegment


@dataclass(frozen=True)
class UserTranscriptReceived:
    kind: ClassVar[str] = "user.transcript"
    transcription: UserTranscription


@dataclass(frozen=True)
class UserMessageSent:
    """Typed chat input from the learner."""

    kind: ClassVar[str] = "user.message"
    text: str
    message_type: MessageType = MessageType.general


@dataclass(frozen=True)
class FAIntroCompleted:
    kind: ClassVar[str] = "agent.fa_intro_complete"
    topic: str
    intro_text: str = ""


@dataclass(frozen=True)
class FAResponseReceived:
    kind: ClassVar[str] = "agent.fa_response"
    response: FAResponse


@dataclass(frozen=True)
class PlayerStarted:
    kind: ClassVar[str] = "player.started"
    bookmarks: tuple[dict, ...] = ()
    duration_ms: int | None = None


@dataclass(frozen=True)
class PlayerTimeUpdated:
    kind: ClassVar[str] = "player.time_update"
    current_time_ms: int


@dataclass(frozen=True)
class PlayerStateChanged:
    kind: ClassVar[str] = "player.state_change"
    state: PlayerState


@dataclass(frozen=True)
class ActionClicked:
    kind: ClassVar[str] = "action.click"
    action_type: str
    button_id: str
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AnswerSubmitted:
    kind: ClassVar[str] = "quiz.answer"
    question_id: str
    answer: str


@dataclass(frozen=True)
class QuestionSkipped:
    kind: ClassVar[str] = "quiz.skip"
    question_id: str


@dataclass(frozen=True)
class CampaignCancelRequested:
    kind: ClassVar[str] = "quiz.cancel"


@dataclass(frozen=True)
class EvaluationCompleted:
    kind: ClassVar[str] = "evaluation.completed"
    result: EvaluationResult


@dataclass(frozen=True)
class EvaluationFailed:
    kind: ClassVar[str] = "evaluation.failed"
    question_id: str
    reason: str


@dataclass(frozen=True)
class MessageWriteSucceeded:
    kind: ClassVar[str] = "message.persisted"
    local_id: str
    message_id: int
    created_at: datetime | None = None


@dataclass(frozen=True)
class MessageWriteFailed:
    kind: ClassVar[str] = "message.write_failed"
    local_id: str
    reason: str


@dataclass(frozen=True)
class AgentSendFailed:
    kind: ClassVar[str] = "agent.send_failed"
    text: str
    purpose: AgentPurpose
    trigger_id: str | None = None
    reason: str = ""


@dataclass(frozen=True)
class ConnectivityChanged:
    kind: ClassVar[str] = "connectivity"
    online: bool


# =====================================================
# Effects
# =====================================================


@dataclass(frozen=True)
class OfferSpec:
    """An action offer to anchor on a message that does not exist yet."""

    action_type: str
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AppendMessage:
    kind: ClassVar[str] = "append_message"
    role: MessageRole
    content: str
    message_type: MessageType = MessageType.general
    input_type: InputType = InputType.text
    offer: OfferSpec | None = None


@dataclass(frozen=True)
class ShowAction:
    """Offer anchored to an existing message (None = last assistant message)."""

    kind: ClassVar[str] = "show_action"
    action_type: str
    metadata: dict = field(default_factory=dict)
    anchor_message_id: str | int | None = None


@dataclass(frozen=True)
class ShowTransientWelcome:
    """Welcome-back text rendered in the UI but never stored."""

    kind: ClassVar[str] = "transient_welcome"
    text: str
    offer: OfferSpec | None = None


@dataclass(frozen=True)
class TranscriptPreview:
    kind: ClassVar[str] = "transcript_preview"
    text: str
    is_agent: bool


@dataclass(frozen=True)
class PausePlayer:
    kind: ClassVar[str] = "player.pause"
    trigger_id: str | None = None


@dataclass(frozen=True)
class ResumePlayer:
    kind: ClassVar[str] = "player.play"
    trigger_id: str | None = None


@dataclass(frozen=True)
class SeekPlayer:
    kind: ClassVar[str] = "player.seek"
    position_ms: int


@dataclass(frozen=True)
class RequestCampaign:
    """VideoTriggerEngine asking for a campaign; it never starts one itself."""

    kind: ClassVar[str] = "request_campaign"
    campaign_type: CampaignType
    trigger_id: str
    topic: str | None = None
    question_id: str | None = None


@dataclass(frozen=True)
class SendToAgent:
    kind: ClassVar[str] = "agent.send_text"
    text: str
    purpose: AgentPurpose = AgentPurpose.chat
    trigger_id: str | None = None


@dataclass(frozen=True)
class RequestEvaluation:
    kind: ClassVar[str] = "request_evaluation"
    question_id: str
    question_text: str
    answer: str


@dataclass(frozen=True)
class RecordAttempt:
    kind: ClassVar[str] = "record_attempt"
    attempt: Attempt


@dataclass(frozen=True)
class ReportProgress:
    kind: ClassVar[str] = "report_progress"
    last_position_s: int
    completion_percentage: int
    video_ended: bool = False


@dataclass(frozen=True)
class CampaignStarted:
    kind: ClassVar[str] = "campaign.started"
    campaign_id: str
    campaign_type: CampaignType
    total_questions: int


@dataclass(frozen=True)
class CampaignRejected:
    kind: ClassVar[str] = "campaign.rejected"
    campaign_type: CampaignType
    reason: str
    trigger_id: str | None = None


@dataclass(frozen=True)
class CampaignFinished:
    kind: ClassVar[str] = "campaign.finished"
    campaign_id: str
    campaign_type: CampaignType
    stats: CampaignStats
    completed: bool  # False when cancelled or aborted
    trigger_id: str | None = None


@dataclass(frozen=True)
class QuestionPresented:
    kind: ClassVar[str] = "question.presented"
    campaign_id: str
    campaign_type: CampaignType
    question: Question
    index: int


@dataclass(frozen=True)
class QuestionUpdated:
    kind: ClassVar[str] = "question.updated"
    campaign_id: str
    question: Question


@dataclass(frozen=True)
class Notice:
    kind: ClassVar[str] = "notice"
    text: str
    level: str = "info"


# =====================================================
# UI updates emitted by LearningSession itself
# =====================================================


@dataclass(frozen=True)
class MessageAppended:
    kind: ClassVar[str] = "message.appended"
    local_id: str
    seq: int
    role: MessageRole
    content: str
    message_type: MessageType
    input_type: InputType
    created_at: datetime


@dataclass(frozen=True)
class MessageConfirmed:
    kind: ClassVar[str] = "message.confirmed"
    local_id: str
    message_id: int


@dataclass(frozen=True)
class MessageUnsynced:
    kind: ClassVar[str] = "message.unsynced"
    local_id: str
    reason: str


@dataclass(frozen=True)
class ActionOffered:
    kind: ClassVar[str] = "action.offered"
    offer: ActionOffer


InboundEvent = (
    AgentTranscriptReceived
    | UserTranscriptReceived
    | UserMessageSent
    | FAIntroCompleted
    | FAResponseReceived
    | PlayerStarted
    | PlayerTimeUpdated
    | PlayerStateChanged
    | ActionClicked
    | AnswerSubmitted
    | QuestionSkipped
    | CampaignCancelRequested
    | EvaluationCompleted
    | EvaluationFailed
    | MessageWriteSucceeded
    | MessageWriteFailed
    | AgentSendFailed
    | ConnectivityChanged
)
