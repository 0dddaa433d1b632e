"""
LearningSession: one learner, one lesson visit.

Wires QuizEngine, TranscriptSynchronizer and VideoTriggerEngine together.
Inbound events are posted to an asyncio queue and handled one at a time
on the event loop. Handling an event is synchronous: the components
update their state and leave effects in their outboxes, which the session
routes until every outbox is empty.

Effects that touch the outside world (database writes, agent sends,
grading) run as tracked background tasks. Their outcome comes back as
another inbound event, never as an awaited result inside a handler.

Message writes go through a single writer task so storage sees them in
the order they were appended. Attempt and progress writes that fail are
only logged. Failed message writes stay flagged in the log and are
retried once when connectivity comes back.
"""

import asyncio
import logging

import sentry_sdk

from .actions import ActionType, make_offer, welcome_action_for
from .config import EVALUATION_TIMEOUT_S
from .enums import CampaignType, MessageRole, PlayerState
from .events import (
    ActionClicked,
    ActionOffered,
    AgentPurpose,
    AgentSendFailed,
    AgentTranscriptReceived,
    AnswerSubmitted,
    AppendMessage,
    CampaignCancelRequested,
    CampaignFinished,
    CampaignRejected,
    ConnectivityChanged,
    EvaluationCompleted,
    EvaluationFailed,
    FAIntroCompleted,
    FAResponseReceived,
    MessageAppended,
    MessageConfirmed,
    MessageUnsynced,
    MessageWriteFailed,
    MessageWriteSucceeded,
    Notice,
    PausePlayer,
    PlayerStarted,
    PlayerStateChanged,
    PlayerTimeUpdated,
    QuestionSkipped,
    RecordAttempt,
    ReportProgress,
    RequestCampaign,
    RequestEvaluation,
    ResumePlayer,
    SeekPlayer,
    SendToAgent,
    ShowAction,
    ShowTransientWelcome,
    UserMessageSent,
    UserTranscriptReceived,
)
from .interfaces import AgentChannel, AnswerEvaluator, PlayerControl, SessionStore
from .message_log import LogEntry, MessageLog
from .question_bank import QuestionBank
from .quiz_engine import QuizEngine
from .transcript_sync import TranscriptSynchronizer
from .types import EvaluationRequest, Session
from .video_triggers import VideoTriggerEngine

logger = logging.getLogger(__name__)

FA_INTRO_PREFIX = "FA_INTRO:"
INLESSON_ANSWER_PREFIX = "INLESSON_ANSWER:"

# Anchor for offers attached to the unsaved welcome-back greeting
TRANSIENT_WELCOME_ID = "welcome"

OFFLINE_NOTICE = "You're offline. We'll save your progress when you reconnect."
ONLINE_NOTICE = "You're back online."


class LearningSession:
    def __init__(
        self,
        session: Session,
        *,
        conversation_id: int,
        question_bank: QuestionBank,
        store: SessionStore,
        agent: AgentChannel,
        player: PlayerControl,
        evaluator: AnswerEvaluator | None = None,
        answered_question_ids: set[str] | None = None,
        video: VideoTriggerEngine | None = None,
    ):
        self.session = session
        self.conversation_id = conversation_id
        self.bank = question_bank
        self.store = store
        self.agent = agent
        self.player = player
        self.evaluator = evaluator

        welcome_metadata = {"session_type": session.session_type.value}
        if session.lesson_progress is not None:
            welcome_metadata["last_position_s"] = session.lesson_progress.last_position_s
            welcome_metadata["completion_percentage"] = (
                session.lesson_progress.completion_percentage
            )

        self.log = MessageLog()
        self.quiz = QuizEngine(session.user_id, session.lesson_id)
        self.transcripts = TranscriptSynchronizer(
            is_returning=session.is_returning,
            welcome_action=welcome_action_for(session.session_type),
            welcome_metadata=welcome_metadata,
        )
        self.video = video or VideoTriggerEngine(question_bank.inlesson_triggers())

        self._answered_inlesson = set(answered_question_ids or ())
        # FA bookmark waiting for the learner to accept the quick check
        self._pending_fa: tuple[str, str | None] | None = None
        self._lesson_complete_offered = False
        self.online = True

        self.updates: asyncio.Queue = asyncio.Queue()
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._writes: asyncio.Queue[LogEntry | None] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._loop_task: asyncio.Task | None = None
        self._writer_task: asyncio.Task | None = None

    # =====================================================
    # Lifecycle
    # =====================================================

    def start(self) -> None:
        self._loop_task = asyncio.create_task(self._run(), name="learning-session")
        self._writer_task = asyncio.create_task(
            self._write_messages(), name="learning-session-writer"
        )

    def close(self) -> None:
        """Stop handling events. Writes already queued or in flight still finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        self._writes.put_nowait(None)

    def post(self, event) -> None:
        self._inbox.put_nowait(event)

    async def settle(self) -> None:
        """Wait until the inbox, the writer and all background tasks are idle."""
        while True:
            await self._inbox.join()
            await self._writes.join()
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                if self._inbox.empty() and self._writes.empty():
                    return
                continue
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            event = await self._inbox.get()
            try:
                self.handle(event)
            except Exception as e:
                logger.exception("Failed to handle %s", type(event).__name__)
                sentry_sdk.capture_exception(e)
            finally:
                self._inbox.task_done()

    # =====================================================
    # Inbound events
    # =====================================================

    def handle(self, event) -> None:
        """Apply one inbound event and route every effect it produces."""
        if isinstance(event, AgentTranscriptReceived):
            self.transcripts.on_agent_transcript(event.segment)
        elif isinstance(event, UserTranscriptReceived):
            self.transcripts.on_user_transcript(event.transcription)
        elif isinstance(event, UserMessageSent):
            self.transcripts.on_user_message(event.text, event.message_type)
        elif isinstance(event, FAIntroCompleted):
            self.transcripts.on_fa_intro_complete(event.topic, event.intro_text)
        elif isinstance(event, FAResponseReceived):
            self.quiz.handle_fa_response(event.response)
        elif isinstance(event, PlayerStarted):
            self.video.on_player_started(event.bookmarks, event.duration_ms)
        elif isinstance(event, PlayerTimeUpdated):
            self.video.on_time_update(event.current_time_ms)
        elif isinstance(event, PlayerStateChanged):
            if event.state == PlayerState.playing:
                self._handle_learner_resume()
            self.video.on_player_state_change(event.state)
        elif isinstance(event, ActionClicked):
            self._handle_action(event)
        elif isinstance(event, AnswerSubmitted):
            self.quiz.submit_answer(event.question_id, event.answer)
        elif isinstance(event, QuestionSkipped):
            self.quiz.skip(event.question_id)
        elif isinstance(event, CampaignCancelRequested):
            self.quiz.cancel()
        elif isinstance(event, EvaluationCompleted):
            result = event.result
            self.quiz.handle_remote_evaluation(
                result.question_id, result.is_correct, result.feedback
            )
        elif isinstance(event, EvaluationFailed):
            self.quiz.handle_evaluation_failure(event.question_id, event.reason)
        elif isinstance(event, MessageWriteSucceeded):
            if self.log.confirm(event.local_id, event.message_id, event.created_at):
                self._publish(MessageConfirmed(event.local_id, event.message_id))
        elif isinstance(event, MessageWriteFailed):
            if self.log.mark_failed(event.local_id, event.reason):
                self._publish(MessageUnsynced(event.local_id, event.reason))
        elif isinstance(event, AgentSendFailed):
            self._handle_agent_send_failure(event)
        elif isinstance(event, ConnectivityChanged):
            self._handle_connectivity(event.online)
        else:
            logger.warning("Ignoring unknown event %r", event)
        self._pump()

    def _handle_action(self, event: ActionClicked) -> None:
        try:
            action = ActionType(event.action_type)
        except ValueError:
            logger.warning("Click on unknown action type %r", event.action_type)
            return
        button = event.button_id

        if action == ActionType.fa_intro:
            trigger_id, topic = self._pending_fa or (None, None)
            self._pending_fa = None
            topic = event.metadata.get("topic") or topic
            if button == "start":
                self.quiz.start_campaign(
                    CampaignType.formative_assessment, trigger_id=trigger_id, topic=topic
                )
            elif button == "skip":
                self.video.release(trigger_id)
        elif action in (ActionType.lesson_welcome, ActionType.course_welcome_back):
            if button == "start_warmup":
                self.quiz.start_campaign(CampaignType.warmup, self.bank.warmup_questions())
            else:
                self.video.play()
        elif action == ActionType.lesson_welcome_back:
            if button == "continue":
                progress = self.session.lesson_progress
                position_s = progress.last_position_s if progress else 0
                self.video.seek(position_s * 1000)
            elif button == "restart":
                self.video.seek(0)
            self.video.play()
        elif action in (
            ActionType.warmup_complete,
            ActionType.inlesson_complete,
            ActionType.assessment_complete,
        ):
            self.video.play()
        else:
            # course_welcome and lesson_complete buttons navigate in the browser
            logger.debug("Action %s/%s needs no session work", action.value, button)

    def _handle_agent_send_failure(self, event: AgentSendFailed) -> None:
        logger.warning(
            "Sending %s to agent failed: %s", event.purpose.value, event.reason
        )
        if event.purpose == AgentPurpose.fa_intro:
            if self._pending_fa and self._pending_fa[0] == event.trigger_id:
                self._pending_fa = None
            self.video.release(event.trigger_id)
        elif event.purpose == AgentPurpose.fa_start:
            campaign = self.quiz.active_campaign
            if campaign and campaign.type == CampaignType.formative_assessment:
                self.quiz.cancel()
            else:
                self.video.release(event.trigger_id)
        self._publish(Notice("We couldn't reach your tutor. Please try again.", "error"))

    def _handle_learner_resume(self) -> None:
        """Learner pressed play while a trigger held the video.

        A running campaign keeps its hold until it finishes. An unanswered
        quick-check offer gives it up, so later triggers can still fire.
        """
        held = self.video.held_by
        if held is None:
            return
        campaign = self.quiz.active_campaign
        if campaign is not None and campaign.trigger_id == held:
            return
        if self._pending_fa and self._pending_fa[0] == held:
            self._pending_fa = None
        self.video.drop_hold(held)

    def _handle_connectivity(self, online: bool) -> None:
        if online == self.online:
            return
        self.online = online
        if not online:
            self._publish(Notice(OFFLINE_NOTICE, "warning"))
            return
        self._publish(Notice(ONLINE_NOTICE))
        for entry in self.log.retry_failed():
            logger.info("Retrying write of message %s", entry.local_id)
            self._writes.put_nowait(entry)

    # =====================================================
    # Effect routing
    # =====================================================

    def _pump(self) -> None:
        while True:
            effects = self.quiz.drain() + self.transcripts.drain() + self.video.drain()
            if not effects:
                return
            for effect in effects:
                self._apply(effect)

    def _apply(self, effect) -> None:
        if isinstance(effect, AppendMessage):
            self._append_message(effect)
        elif isinstance(effect, ShowAction):
            self._show_action(effect)
        elif isinstance(effect, ShowTransientWelcome):
            self._publish(effect)
            if effect.offer is not None:
                offer = make_offer(
                    effect.offer.action_type, effect.offer.metadata, TRANSIENT_WELCOME_ID
                )
                self._publish(ActionOffered(offer))
        elif isinstance(effect, PausePlayer):
            self._player_command(self.player.pause)
        elif isinstance(effect, ResumePlayer):
            self._player_command(self.player.play)
        elif isinstance(effect, SeekPlayer):
            self._player_command(self.player.seek, effect.position_ms)
        elif isinstance(effect, RequestCampaign):
            self._request_campaign(effect)
        elif isinstance(effect, SendToAgent):
            self._spawn(self._send_to_agent(effect), f"agent-{effect.purpose.value}")
        elif isinstance(effect, RequestEvaluation):
            self._request_evaluation(effect)
        elif isinstance(effect, RecordAttempt):
            attempt = effect.attempt
            if attempt.assessment_type == CampaignType.inlesson:
                self._answered_inlesson.add(attempt.question_id)
            self._spawn(self._record_attempt(effect), f"attempt-{attempt.question_id}")
        elif isinstance(effect, ReportProgress):
            if effect.video_ended and not self._lesson_complete_offered:
                self._lesson_complete_offered = True
                self._show_action(ShowAction(ActionType.lesson_complete.value))
            self._spawn(self._report_progress(effect), "progress")
        elif isinstance(effect, (CampaignFinished, CampaignRejected)):
            self._publish(effect)
            if effect.trigger_id is not None:
                self.video.release(effect.trigger_id)
        else:
            # CampaignStarted, QuestionPresented, QuestionUpdated,
            # TranscriptPreview, Notice
            self._publish(effect)

    def _append_message(self, effect: AppendMessage) -> None:
        entry = self.log.append(
            effect.role, effect.content, effect.message_type, effect.input_type
        )
        self._publish(
            MessageAppended(
                local_id=entry.local_id,
                seq=entry.seq,
                role=entry.role,
                content=entry.content,
                message_type=entry.message_type,
                input_type=entry.input_type,
                created_at=entry.created_at,
            )
        )
        if effect.role == MessageRole.user:
            self.transcripts.mark_user_interacted(effect.message_type)
        if effect.offer is not None:
            self._publish(
                ActionOffered(
                    make_offer(
                        effect.offer.action_type, effect.offer.metadata, entry.local_id
                    )
                )
            )
        self._writes.put_nowait(entry)

    def _show_action(self, effect: ShowAction) -> None:
        anchor = effect.anchor_message_id
        if anchor is None:
            last = self.log.last_assistant()
            anchor = last.anchor_id if last else None
        self._publish(ActionOffered(make_offer(effect.action_type, effect.metadata, anchor)))

    def _request_campaign(self, effect: RequestCampaign) -> None:
        if effect.campaign_type == CampaignType.formative_assessment:
            if self.quiz.active_campaign is not None or self._pending_fa is not None:
                logger.warning(
                    "Bookmark %s crossed while a quiz is running; resuming video",
                    effect.trigger_id,
                )
                self.video.release(effect.trigger_id)
                return
            topic = effect.topic or "this topic"
            self._pending_fa = (effect.trigger_id, topic)
            self._spawn(
                self._send_to_agent(
                    SendToAgent(
                        f"{FA_INTRO_PREFIX}{topic}", AgentPurpose.fa_intro, effect.trigger_id
                    )
                ),
                "agent-fa_intro",
            )
            return

        if effect.question_id in self._answered_inlesson:
            logger.info("In-lesson question %s already answered", effect.question_id)
            self.video.release(effect.trigger_id)
            return
        question = self.bank.inlesson_question(effect.question_id)
        if question is None:
            logger.warning("Trigger %s names unknown question %s", effect.trigger_id, effect.question_id)
            self.video.release(effect.trigger_id)
            return
        self.quiz.start_campaign(
            CampaignType.inlesson, [question], trigger_id=effect.trigger_id
        )

    def _request_evaluation(self, effect: RequestEvaluation) -> None:
        if self.evaluator is not None:
            self._spawn(self._evaluate(effect), f"evaluate-{effect.question_id}")
            return
        # No grader configured: let the agent respond, keep the attempt ungraded
        self._apply(
            SendToAgent(
                f"{INLESSON_ANSWER_PREFIX}{effect.question_id}:{effect.answer}",
                AgentPurpose.inlesson_answer,
            )
        )
        self.post(EvaluationFailed(effect.question_id, "no evaluator configured"))

    def _player_command(self, command, *args) -> None:
        try:
            command(*args)
        except Exception as e:
            logger.error("Player command %s failed: %s", command.__name__, e)
            sentry_sdk.capture_exception(e)

    def _publish(self, update) -> None:
        self.updates.put_nowait(update)

    # =====================================================
    # Background work
    # =====================================================

    def _spawn(self, coro, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        """Callback to clean up completed tasks and log errors."""
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error("Session task %s failed: %s", task.get_name(), exc)
            sentry_sdk.capture_exception(exc)

    async def _send_to_agent(self, effect: SendToAgent) -> None:
        try:
            await self.agent.send_text(effect.text)
        except Exception as e:
            self.post(
                AgentSendFailed(effect.text, effect.purpose, effect.trigger_id, str(e))
            )

    async def _evaluate(self, effect: RequestEvaluation) -> None:
        request = EvaluationRequest(effect.question_id, effect.question_text, effect.answer)
        try:
            result = await asyncio.wait_for(
                self.evaluator.evaluate(request), timeout=EVALUATION_TIMEOUT_S
            )
        except asyncio.TimeoutError:
            self.post(EvaluationFailed(effect.question_id, "timed out"))
        except Exception as e:
            logger.error("Evaluation of %s failed: %s", effect.question_id, e)
            sentry_sdk.capture_exception(e)
            self.post(EvaluationFailed(effect.question_id, str(e)))
        else:
            self.post(EvaluationCompleted(result))

    async def _record_attempt(self, effect: RecordAttempt) -> None:
        try:
            await self.store.upsert_attempt(effect.attempt)
        except Exception as e:
            logger.error(
                "Failed to record attempt for %s: %s", effect.attempt.question_id, e
            )
            sentry_sdk.capture_exception(e)

    async def _report_progress(self, effect: ReportProgress) -> None:
        try:
            await self.store.update_lesson_progress(
                user_id=self.session.user_id,
                lesson_id=self.session.lesson_id,
                last_position_s=effect.last_position_s,
                completion_percentage=effect.completion_percentage,
                video_ended=effect.video_ended,
            )
        except Exception as e:
            logger.error("Failed to save lesson progress: %s", e)
            sentry_sdk.capture_exception(e)

    async def _write_messages(self) -> None:
        while True:
            entry = await self._writes.get()
            try:
                if entry is None:
                    return
                await self._write_message(entry)
            finally:
                self._writes.task_done()

    async def _write_message(self, entry: LogEntry) -> None:
        try:
            row = await self.store.create_message(
                self.conversation_id,
                entry.role,
                entry.content,
                input_type=entry.input_type,
                message_type=entry.message_type,
                client_seq=entry.seq,
            )
        except Exception as e:
            logger.error("Failed to save message %s: %s", entry.local_id, e)
            sentry_sdk.capture_exception(e)
            self.post(MessageWriteFailed(entry.local_id, str(e)))
        else:
            self.post(
                MessageWriteSucceeded(
                    entry.local_id, row["message_id"], row.get("created_at")
                )
            )
