"""Tests for QuizEngine campaigns, grading and formative assessment flow."""

import uuid

import pytest

from learning_core.actions import ActionType
from learning_core.enums import CampaignType, MessageRole, MessageType, QuestionStatus
from learning_core.events import (
    AgentPurpose,
    AppendMessage,
    CampaignFinished,
    CampaignRejected,
    CampaignStarted,
    QuestionPresented,
    QuestionUpdated,
    RecordAttempt,
    RequestEvaluation,
    SendToAgent,
    ShowAction,
)
from learning_core.quiz_engine import (
    CORRECT_FEEDBACK,
    INCORRECT_FEEDBACK,
    INLESSON_SKIPPED_MESSAGE,
    QuizEngine,
    performance_tier,
    warmup_closing_message,
)
from learning_core.types import CampaignStats, FAResponse


def of_type(effects, cls):
    return [e for e in effects if isinstance(e, cls)]


@pytest.fixture
def engine():
    return QuizEngine(7, uuid.UUID("00000000-0000-0000-0000-0000000000a1"))


# =============================================================================
# Campaign lifecycle
# =============================================================================


class TestStartCampaign:
    def test_presents_first_question(self, engine, make_mcq):
        campaign_id = engine.start_campaign(
            CampaignType.warmup, [make_mcq("w1"), make_mcq("w2")]
        )

        effects = engine.drain()
        assert campaign_id == "warmup-1"
        started = of_type(effects, CampaignStarted)[0]
        assert started.total_questions == 2
        presented = of_type(effects, QuestionPresented)
        assert [(p.question.id, p.index) for p in presented] == [("w1", 0)]

    def test_second_campaign_is_rejected_while_one_is_active(self, engine, make_mcq):
        """Only one campaign at a time; the newcomer is rejected, not queued."""
        engine.start_campaign(CampaignType.warmup, [make_mcq("w1")])
        engine.drain()

        result = engine.start_campaign(
            CampaignType.inlesson, [make_mcq("q1")], trigger_id="inlesson:q1"
        )

        assert result is None
        rejected = of_type(engine.drain(), CampaignRejected)
        assert rejected == [
            CampaignRejected(CampaignType.inlesson, "campaign_active", "inlesson:q1")
        ]
        assert engine.active_campaign.type == CampaignType.warmup

    def test_local_campaign_without_questions_is_rejected(self, engine):
        assert engine.start_campaign(CampaignType.warmup, []) is None
        assert of_type(engine.drain(), CampaignRejected)[0].reason == "no_questions"
        assert engine.active_campaign is None

    def test_cancel_finishes_without_closing_message(self, engine, make_mcq):
        engine.start_campaign(CampaignType.warmup, [make_mcq("w1"), make_mcq("w2")])
        engine.drain()

        assert engine.cancel() is True

        effects = engine.drain()
        assert of_type(effects, AppendMessage) == []
        finished = of_type(effects, CampaignFinished)[0]
        assert finished.completed is False
        assert engine.active_campaign is None
        assert engine.cancel() is False


# =============================================================================
# Local grading
# =============================================================================


class TestWarmupGrading:
    def test_mixed_answers_give_partial_tier(self, engine, make_mcq):
        """Correct, wrong, correct -> 2/1/0 and a partial closing message."""
        engine.start_campaign(
            CampaignType.warmup, [make_mcq("w1"), make_mcq("w2"), make_mcq("w3")]
        )
        engine.submit_answer("w1", "a")
        engine.submit_answer("w2", "b")
        engine.submit_answer("w3", "a")

        effects = engine.drain()
        finished = of_type(effects, CampaignFinished)[0]
        assert finished.stats == CampaignStats(correct=2, incorrect=1, skipped=0)
        assert finished.completed is True

        closing = of_type(effects, AppendMessage)[0]
        assert closing.role == MessageRole.assistant
        assert closing.message_type == MessageType.warmup
        assert "2 out of 3" in closing.content
        assert closing.offer.action_type == ActionType.warmup_complete.value
        assert closing.offer.metadata["tier"] == "partial"

        attempts = [e.attempt for e in of_type(effects, RecordAttempt)]
        assert [(a.question_id, a.is_correct) for a in attempts] == [
            ("w1", True),
            ("w2", False),
            ("w3", True),
        ]

    def test_template_feedback_unless_authored(self, engine, make_mcq):
        engine.start_campaign(
            CampaignType.warmup,
            [make_mcq("w1"), make_mcq("w2"), make_mcq("w3", feedback="Gamma is a trap.")],
        )
        engine.submit_answer("w1", "a")
        engine.submit_answer("w2", "c")
        engine.submit_answer("w3", "c")

        updated = {
            u.question.id: u.question.feedback
            for u in of_type(engine.drain(), QuestionUpdated)
        }
        assert updated == {
            "w1": CORRECT_FEEDBACK,
            "w2": INCORRECT_FEEDBACK,
            "w3": "Gamma is a trap.",
        }

    def test_answer_for_non_current_question_is_ignored(self, engine, make_mcq):
        """A stale or out-of-order answer changes nothing."""
        engine.start_campaign(CampaignType.warmup, [make_mcq("w1"), make_mcq("w2")])
        engine.drain()

        assert engine.submit_answer("w2", "a") is False

        assert engine.drain() == []
        assert engine.current_question.id == "w1"
        assert engine.active_campaign.stats == CampaignStats()

    def test_duplicate_answer_is_ignored(self, engine, make_mcq):
        engine.start_campaign(CampaignType.warmup, [make_mcq("w1"), make_mcq("w2")])
        engine.submit_answer("w1", "a")
        engine.drain()

        assert engine.submit_answer("w1", "b") is False
        assert engine.active_campaign.stats.correct == 1

    def test_all_skipped(self, engine, make_mcq):
        engine.start_campaign(CampaignType.warmup, [make_mcq("w1"), make_mcq("w2")])
        engine.skip("w1")
        engine.skip("w2")

        effects = engine.drain()
        closing = of_type(effects, AppendMessage)[0]
        assert closing.offer.metadata["tier"] == "all_skipped"
        attempts = [e.attempt for e in of_type(effects, RecordAttempt)]
        assert all(a.is_skipped and a.answer is None for a in attempts)


class TestFreeText:
    def test_advances_without_waiting_for_verdict(self, engine, make_free_text, make_mcq):
        engine.start_campaign(
            CampaignType.warmup, [make_free_text("w1"), make_mcq("w2")]
        )
        engine.drain()

        engine.submit_answer("w1", "Gradient descent follows the slope downhill")

        effects = engine.drain()
        request = of_type(effects, RequestEvaluation)[0]
        assert request.question_id == "w1"
        assert request.answer == "Gradient descent follows the slope downhill"
        answered = of_type(effects, QuestionUpdated)[0].question
        assert answered.status == QuestionStatus.answered
        assert answered.is_correct is None
        assert engine.current_question.id == "w2"

    def test_verdict_counts_while_campaign_is_running(self, engine, make_free_text, make_mcq):
        engine.start_campaign(
            CampaignType.warmup, [make_free_text("w1"), make_mcq("w2")]
        )
        engine.submit_answer("w1", "An answer")
        engine.drain()

        assert engine.handle_remote_evaluation("w1", True, "Spot on.") is True

        effects = engine.drain()
        assert of_type(effects, QuestionUpdated)[0].question.feedback == "Spot on."
        assert of_type(effects, RecordAttempt)[0].attempt.is_correct is True
        assert engine.active_campaign.stats.correct == 1

    def test_late_verdict_does_not_change_finished_stats(self, engine, make_free_text):
        engine.start_campaign(CampaignType.inlesson, [make_free_text("q1")])
        engine.submit_answer("q1", "An answer")
        finished = of_type(engine.drain(), CampaignFinished)[0]
        assert finished.stats == CampaignStats()

        engine.handle_remote_evaluation("q1", False, "")

        effects = engine.drain()
        assert of_type(effects, QuestionUpdated)[0].question.feedback == INCORRECT_FEEDBACK
        assert finished.stats == CampaignStats()

    def test_evaluation_failure_records_ungraded_attempt(self, engine, make_free_text):
        engine.start_campaign(CampaignType.inlesson, [make_free_text("q1")])
        engine.submit_answer("q1", "An answer")
        engine.drain()

        assert engine.handle_evaluation_failure("q1", "timed out") is True

        attempt = of_type(engine.drain(), RecordAttempt)[0].attempt
        assert attempt.answer == "An answer"
        assert attempt.is_correct is None
        assert engine.handle_evaluation_failure("q1", "again") is False

    def test_unexpected_verdict_is_ignored(self, engine):
        assert engine.handle_remote_evaluation("nope", True, "") is False
        assert engine.drain() == []


class TestInLesson:
    def test_completion_offer_carries_feedback(self, engine, make_mcq):
        engine.start_campaign(
            CampaignType.inlesson, [make_mcq("q1")], trigger_id="inlesson:q1"
        )
        engine.submit_answer("q1", "a")

        effects = engine.drain()
        action = of_type(effects, ShowAction)[0]
        assert action.action_type == ActionType.inlesson_complete.value
        assert action.metadata == {"question_id": "q1", "introMessage": CORRECT_FEEDBACK}
        assert of_type(effects, CampaignFinished)[0].trigger_id == "inlesson:q1"

    def test_skipped_question_message(self, engine, make_mcq):
        engine.start_campaign(CampaignType.inlesson, [make_mcq("q1")])
        engine.skip("q1")

        action = of_type(engine.drain(), ShowAction)[0]
        assert action.metadata["introMessage"] == INLESSON_SKIPPED_MESSAGE


# =============================================================================
# Formative assessment
# =============================================================================


class TestFormativeAssessment:
    def start_fa(self, engine):
        engine.start_campaign(
            CampaignType.formative_assessment, trigger_id="bm-1", topic="Neural networks"
        )

    def test_start_asks_agent_to_host(self, engine):
        self.start_fa(engine)

        effects = engine.drain()
        assert of_type(effects, SendToAgent) == [
            SendToAgent("FA_START:Neural networks", AgentPurpose.fa_start, "bm-1")
        ]
        assert of_type(effects, QuestionPresented) == []

    def test_full_flow(self, engine):
        self.start_fa(engine)
        engine.handle_fa_response(
            FAResponse(question_number=1, question_text="What is a neuron?")
        )
        presented = of_type(engine.drain(), QuestionPresented)[0]
        assert presented.question.id == "fa:neural-networks:1"

        engine.submit_answer("fa:neural-networks:1", "A weighted sum and activation")
        effects = engine.drain()
        assert of_type(effects, AppendMessage) == [
            AppendMessage(MessageRole.user, "A weighted sum and activation", MessageType.fa)
        ]
        assert of_type(effects, SendToAgent)[0].purpose == AgentPurpose.fa_answer
        # The agent decides when to move on
        assert engine.current_question.id == "fa:neural-networks:1"

        engine.handle_fa_response(
            FAResponse(
                feedback_type="correct",
                question_number=2,
                question_text="Pick the activation",
                options=("ReLU", "SQL"),
                is_mcq=True,
            )
        )
        effects = engine.drain()
        attempt = of_type(effects, RecordAttempt)[0].attempt
        assert attempt.assessment_type == CampaignType.formative_assessment
        assert attempt.is_correct is True
        question = of_type(effects, QuestionPresented)[0].question
        assert [o.text for o in question.options] == ["ReLU", "SQL"]

        engine.handle_fa_response(FAResponse(is_complete=True, completion_summary="Nice"))
        effects = engine.drain()
        action = of_type(effects, ShowAction)[0]
        assert action.action_type == ActionType.assessment_complete.value
        assert action.metadata["correct"] == 1
        finished = of_type(effects, CampaignFinished)[0]
        assert finished.completed is True
        assert finished.trigger_id == "bm-1"
        assert engine.active_campaign is None

    def test_skip_is_forwarded_without_advancing(self, engine):
        self.start_fa(engine)
        engine.handle_fa_response(FAResponse(question_number=1, question_text="Q?"))
        engine.drain()

        engine.skip("fa:neural-networks:1")

        effects = engine.drain()
        assert SendToAgent("FA_SKIP", AgentPurpose.fa_answer) in effects
        assert engine.active_campaign is not None
        assert engine.active_campaign.stats.skipped == 1

    def test_unanswered_question_is_skipped_when_agent_moves_on(self, engine):
        self.start_fa(engine)
        engine.handle_fa_response(FAResponse(question_number=1, question_text="Q1?"))
        engine.handle_fa_response(FAResponse(question_number=2, question_text="Q2?"))

        assert engine.active_campaign.stats.skipped == 1
        assert engine.current_question.id == "fa:neural-networks:2"

    def test_repeated_question_is_presented_once(self, engine):
        self.start_fa(engine)
        engine.drain()

        response = FAResponse(question_number=1, question_text="What is a neuron?")
        engine.handle_fa_response(response)
        engine.handle_fa_response(response)

        campaign = engine.active_campaign
        assert [(q.id, q.status) for q in campaign.questions] == [
            ("fa:neural-networks:1", QuestionStatus.pending)
        ]
        assert campaign.stats.skipped == 0
        assert len(of_type(engine.drain(), QuestionPresented)) == 1

    def test_response_without_campaign_is_ignored(self, engine):
        assert engine.handle_fa_response(FAResponse(is_complete=True)) is False
        assert engine.drain() == []


class TestClosingMessage:
    @pytest.mark.parametrize(
        "stats,total,tier",
        [
            (CampaignStats(3, 0, 0), 3, "all_correct"),
            (CampaignStats(1, 1, 1), 3, "partial"),
            (CampaignStats(0, 0, 2), 2, "all_skipped"),
            (CampaignStats(0, 1, 1), 2, "mixed"),
        ],
    )
    def test_performance_tier(self, stats, total, tier):
        assert performance_tier(stats, total) == tier

    def test_partial_mentions_skips(self):
        message = warmup_closing_message(CampaignStats(1, 0, 1), 2)
        assert "1 out of 2 correct (1 skipped)" in message
