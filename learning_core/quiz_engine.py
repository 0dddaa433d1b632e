"""
Quiz campaigns: warmup, in-lesson and agent-hosted formative assessment.

At most one campaign is active per session. Starting another while one
is running is rejected (CampaignRejected), never queued.

Grading:
- Multiple choice with a known correct option is graded here.
- Free text is marked answered straight away and graded by a remote
  evaluator; the verdict arrives later via handle_remote_evaluation and
  the campaign does not wait for it.
- Formative assessment is hosted by the agent. Answers and skips are
  forwarded; questions, verdicts and completion arrive as FAResponses.

Answers or skips for anything other than the current pending question
are ignored with a warning. The UI renders asynchronously, so those
races are expected.
"""

import logging
import re
from dataclasses import replace
from uuid import UUID

from .actions import ActionType
from .enums import (
    CampaignType,
    MessageRole,
    MessageType,
    QuestionStatus,
    QuestionType,
)
from .events import (
    AgentPurpose,
    AppendMessage,
    CampaignFinished,
    CampaignRejected,
    CampaignStarted,
    OfferSpec,
    QuestionPresented,
    QuestionUpdated,
    RecordAttempt,
    RequestEvaluation,
    SendToAgent,
    ShowAction,
)
from .types import Attempt, CampaignStats, FAResponse, Question, QuizCampaign, QuizOption

logger = logging.getLogger(__name__)

CORRECT_FEEDBACK = "Great job! You got it right."
INCORRECT_FEEDBACK = "Not quite right, but don't worry - keep learning!"
INLESSON_SKIPPED_MESSAGE = "Question skipped. Let's continue with the video."

FA_START_PREFIX = "FA_START:"
FA_SKIP_COMMAND = "FA_SKIP"


def performance_tier(stats: CampaignStats, total: int) -> str:
    """Classify a finished campaign: all_correct, partial, all_skipped or mixed."""
    if total > 0 and stats.correct == total:
        return "all_correct"
    if stats.correct > 0:
        return "partial"
    if total > 0 and stats.skipped == total:
        return "all_skipped"
    return "mixed"


def warmup_closing_message(stats: CampaignStats, total: int) -> str:
    tier = performance_tier(stats, total)
    if tier == "all_correct":
        return (
            f"Amazing! You got all {total} questions right! "
            "You're ready to dive into the lesson."
        )
    if tier == "partial":
        skipped = f" ({stats.skipped} skipped)" if stats.skipped else ""
        return (
            f"Nice effort! You got {stats.correct} out of {total} correct{skipped}. "
            "Let's watch the lesson to strengthen your understanding."
        )
    if tier == "all_skipped":
        return (
            "No problem! Let's watch the lesson and you can always "
            "try the warmup questions later."
        )
    return (
        "No worries! The warmup helps identify areas to focus on. "
        "Let's watch the lesson together."
    )


def _snapshot(question: Question) -> Question:
    return replace(question, options=list(question.options))


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "topic"


class QuizEngine:
    """Owns the active QuizCampaign and every Question's mutable state."""

    def __init__(self, user_id: int, lesson_id: UUID):
        self.user_id = user_id
        self.lesson_id = lesson_id
        self._campaign: QuizCampaign | None = None
        self._campaign_count = 0
        # Free-text answers waiting for a verdict: question_id -> (campaign, question)
        self._awaiting_evaluation: dict[str, tuple[QuizCampaign, Question]] = {}
        self._outbox: list = []

    def drain(self) -> list:
        effects, self._outbox = self._outbox, []
        return effects

    @property
    def active_campaign(self) -> QuizCampaign | None:
        return self._campaign

    @property
    def current_question(self) -> Question | None:
        return self._campaign.current if self._campaign else None

    # --- Campaign lifecycle ---

    def start_campaign(
        self,
        campaign_type: CampaignType,
        questions: list[Question] | None = None,
        *,
        trigger_id: str | None = None,
        topic: str | None = None,
    ) -> str | None:
        """Start a campaign. Returns its id, or None if rejected."""
        campaign_type = CampaignType(campaign_type)
        questions = list(questions or [])

        if self._campaign is not None:
            logger.warning(
                "Rejecting %s campaign: %s campaign %s is still active",
                campaign_type.value,
                self._campaign.type.value,
                self._campaign.id,
            )
            self._outbox.append(
                CampaignRejected(campaign_type, "campaign_active", trigger_id)
            )
            return None

        is_agent_hosted = campaign_type == CampaignType.formative_assessment
        if not is_agent_hosted and not questions:
            logger.warning("Rejecting %s campaign: no questions", campaign_type.value)
            self._outbox.append(
                CampaignRejected(campaign_type, "no_questions", trigger_id)
            )
            return None

        self._campaign_count += 1
        campaign = QuizCampaign(
            id=f"{campaign_type.value}-{self._campaign_count}",
            type=campaign_type,
            questions=questions,
            trigger_id=trigger_id,
            topic=topic,
        )
        self._campaign = campaign
        logger.info(
            "Started %s campaign %s with %d question(s)",
            campaign_type.value,
            campaign.id,
            len(questions),
        )
        self._outbox.append(
            CampaignStarted(campaign.id, campaign_type, len(questions))
        )

        if is_agent_hosted:
            self._outbox.append(
                SendToAgent(
                    f"{FA_START_PREFIX}{topic or ''}",
                    AgentPurpose.fa_start,
                    trigger_id,
                )
            )
        else:
            self._present_current()
        return campaign.id

    def cancel(self) -> bool:
        """Abandon the active campaign. Returns False if none was active."""
        if self._campaign is None:
            return False
        logger.info("Cancelling %s campaign %s", self._campaign.type.value, self._campaign.id)
        self._finish(completed=False)
        return True

    # --- Learner input ---

    def submit_answer(self, question_id: str, answer: str) -> bool:
        question = self._current_pending(question_id, "answer")
        if question is None:
            return False
        campaign = self._campaign

        question.user_answer = answer
        question.status = QuestionStatus.answered

        if campaign.type == CampaignType.formative_assessment:
            # Graded by the agent; the verdict and next question come back
            # as FAResponses.
            self._outbox.append(
                AppendMessage(MessageRole.user, answer, MessageType.fa)
            )
            self._outbox.append(SendToAgent(answer, AgentPurpose.fa_answer))
            self._outbox.append(QuestionUpdated(campaign.id, _snapshot(question)))
            return True

        if question.is_locally_gradable:
            is_correct = answer == question.correct_option
            question.is_correct = is_correct
            question.feedback = question.custom_feedback or (
                CORRECT_FEEDBACK if is_correct else INCORRECT_FEEDBACK
            )
            if is_correct:
                campaign.stats.correct += 1
            else:
                campaign.stats.incorrect += 1
            self._outbox.append(QuestionUpdated(campaign.id, _snapshot(question)))
            self._record(campaign.type, question)
        else:
            self._awaiting_evaluation[question.id] = (campaign, question)
            self._outbox.append(QuestionUpdated(campaign.id, _snapshot(question)))
            self._outbox.append(
                RequestEvaluation(question.id, question.text, answer)
            )

        self._advance()
        return True

    def skip(self, question_id: str) -> bool:
        question = self._current_pending(question_id, "skip")
        if question is None:
            return False
        campaign = self._campaign

        question.status = QuestionStatus.skipped
        campaign.stats.skipped += 1
        self._outbox.append(QuestionUpdated(campaign.id, _snapshot(question)))
        self._record(campaign.type, question)

        if campaign.type == CampaignType.formative_assessment:
            self._outbox.append(SendToAgent(FA_SKIP_COMMAND, AgentPurpose.fa_answer))
            return True

        self._advance()
        return True

    # --- Asynchronous results ---

    def handle_remote_evaluation(
        self, question_id: str, is_correct: bool, feedback: str
    ) -> bool:
        pending = self._awaiting_evaluation.pop(question_id, None)
        if pending is None:
            logger.warning("Evaluation for %s arrived but nothing is waiting for it", question_id)
            return False
        campaign, question = pending

        question.is_correct = is_correct
        question.feedback = feedback or (
            CORRECT_FEEDBACK if is_correct else INCORRECT_FEEDBACK
        )
        if campaign is self._campaign:
            if is_correct:
                campaign.stats.correct += 1
            else:
                campaign.stats.incorrect += 1
        self._outbox.append(QuestionUpdated(campaign.id, _snapshot(question)))
        self._record(campaign.type, question)
        return True

    def handle_evaluation_failure(self, question_id: str, reason: str) -> bool:
        """Keep the answer ungraded (is_correct stays None) and record it."""
        pending = self._awaiting_evaluation.pop(question_id, None)
        if pending is None:
            return False
        campaign, question = pending
        logger.warning("Answer to %s left ungraded: %s", question_id, reason)
        self._record(campaign.type, question)
        return True

    def handle_fa_response(self, response: FAResponse) -> bool:
        campaign = self._campaign
        if campaign is None or campaign.type != CampaignType.formative_assessment:
            logger.warning("FA response received with no formative assessment running")
            return False

        if response.feedback_type:
            self._grade_last_fa_answer(campaign, response.feedback_type)

        if response.question_text:
            self._add_fa_question(campaign, response)

        if response.is_complete:
            self._outbox.append(
                ShowAction(
                    ActionType.assessment_complete.value,
                    {
                        "topic": campaign.topic,
                        "summary": response.completion_summary,
                        "correct": campaign.stats.correct,
                        "total": len(campaign.questions),
                    },
                )
            )
            self._finish(completed=True)
        return True

    # --- Internals ---

    def _add_fa_question(self, campaign: QuizCampaign, response: FAResponse) -> None:
        number = response.question_number or len(campaign.questions) + 1
        question_id = f"fa:{_slug(campaign.topic or '')}:{number}"
        if any(q.id == question_id for q in campaign.questions):
            logger.debug("FA question %s already presented", question_id)
            return

        current = campaign.current
        if current is not None and current.status == QuestionStatus.pending:
            # Agent moved on without an answer
            current.status = QuestionStatus.skipped
            campaign.stats.skipped += 1
            self._outbox.append(QuestionUpdated(campaign.id, _snapshot(current)))

        question = Question(
            id=question_id,
            text=response.question_text,
            type=(
                QuestionType.multiple_choice
                if response.is_mcq
                else QuestionType.free_text
            ),
            options=[
                QuizOption(id=str(i), text=text)
                for i, text in enumerate(response.options)
            ],
        )
        campaign.questions.append(question)
        campaign.current_index = len(campaign.questions) - 1
        self._present_current()

    def _current_pending(self, question_id: str, action: str) -> Question | None:
        campaign = self._campaign
        if campaign is None:
            logger.warning("Ignoring %s for %s: no active campaign", action, question_id)
            return None
        current = campaign.current
        if current is None or current.status != QuestionStatus.pending:
            logger.warning(
                "Ignoring %s for %s: no question is pending in %s",
                action,
                question_id,
                campaign.id,
            )
            return None
        if current.id != question_id:
            logger.warning(
                "Ignoring %s for %s: current pending question is %s",
                action,
                question_id,
                current.id,
            )
            return None
        return current

    def _grade_last_fa_answer(self, campaign: QuizCampaign, feedback_type: str) -> None:
        for question in reversed(campaign.questions):
            if question.status == QuestionStatus.answered and question.is_correct is None:
                break
        else:
            logger.warning("FA feedback %r with no answered question to grade", feedback_type)
            return

        is_correct = feedback_type == "correct"
        question.is_correct = is_correct
        question.feedback = feedback_type
        if is_correct:
            campaign.stats.correct += 1
        else:
            campaign.stats.incorrect += 1
        self._outbox.append(QuestionUpdated(campaign.id, _snapshot(question)))
        self._record(campaign.type, question)

    def _record(self, campaign_type: CampaignType, question: Question) -> None:
        skipped = question.status == QuestionStatus.skipped
        self._outbox.append(
            RecordAttempt(
                Attempt(
                    user_id=self.user_id,
                    lesson_id=self.lesson_id,
                    assessment_type=campaign_type,
                    question_id=question.id,
                    answer=None if skipped else question.user_answer,
                    is_correct=question.is_correct,
                    is_skipped=skipped,
                    feedback=question.feedback,
                )
            )
        )

    def _present_current(self) -> None:
        campaign = self._campaign
        question = campaign.current
        if question is None:
            return
        self._outbox.append(
            QuestionPresented(
                campaign.id, campaign.type, _snapshot(question), campaign.current_index
            )
        )

    def _advance(self) -> None:
        campaign = self._campaign
        if campaign.current_index + 1 < len(campaign.questions):
            campaign.current_index += 1
            self._present_current()
        else:
            self._finish(completed=True)

    def _finish(self, *, completed: bool) -> None:
        campaign = self._campaign
        self._campaign = None
        stats = campaign.stats.copy()
        total = len(campaign.questions)

        if completed and campaign.type == CampaignType.warmup:
            self._outbox.append(
                AppendMessage(
                    MessageRole.assistant,
                    warmup_closing_message(stats, total),
                    MessageType.warmup,
                    offer=OfferSpec(
                        ActionType.warmup_complete.value,
                        {
                            "tier": performance_tier(stats, total),
                            "correct": stats.correct,
                            "incorrect": stats.incorrect,
                            "skipped": stats.skipped,
                            "total": total,
                        },
                    ),
                )
            )
        elif completed and campaign.type == CampaignType.inlesson:
            question = campaign.questions[-1]
            if question.status == QuestionStatus.skipped:
                intro = INLESSON_SKIPPED_MESSAGE
            else:
                intro = question.feedback or "Thanks for answering!"
            self._outbox.append(
                ShowAction(
                    ActionType.inlesson_complete.value,
                    {"question_id": question.id, "introMessage": intro},
                )
            )

        logger.info(
            "%s campaign %s %s: %d correct, %d incorrect, %d skipped",
            campaign.type.value,
            campaign.id,
            "completed" if completed else "cancelled",
            stats.correct,
            stats.incorrect,
            stats.skipped,
        )
        self._outbox.append(
            CampaignFinished(
                campaign.id, campaign.type, stats, completed, campaign.trigger_id
            )
        )
