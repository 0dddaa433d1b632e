"""
Turns the agent's live transcript and the learner's input into chat
messages.

Welcome handling is an explicit state machine:

    state             | event                        | effect                       | next
    ------------------+------------------------------+------------------------------+------------------
    awaiting_welcome  | final agent segment          | first visit: persist welcome | welcome_captured
                      |                              | returning: transient welcome |
    awaiting_welcome  | user message                 | persist user message         | conversing
    welcome_captured  | final agent segment          | (dropped: no one asked)      | welcome_captured
    welcome_captured  | user message                 | persist user message         | conversing
    conversing        | final agent segment          | persist, tagged like the     | conversing
                      |                              | learner's last message       |
    any               | final FA intro lead-in       | persist as fa-intro + offer  | unchanged
                      |                              | (once per topic; never as a  |
                      |                              | welcome or reply)            |
    any               | interim segment              | preview only                 | unchanged

Each agent segment is persisted at most once, keyed by id and text
length. Voice transcriptions are deduplicated by their trimmed text.
"""

import enum
import logging
import re

from .actions import ActionType
from .enums import InputType, MessageRole, MessageType
from .events import (
    AgentPurpose,
    AppendMessage,
    OfferSpec,
    SendToAgent,
    ShowTransientWelcome,
    TranscriptPreview,
)
from .types import TranscriptSegment, UserTranscription

logger = logging.getLogger(__name__)

FA_INTRO_LEAD_IN = "We've just completed a full idea covering"
FA_INTRO_TOPIC_RE = re.compile(r"covering ([^.]+)\. Let's do a quick check")


class WelcomeState(str, enum.Enum):
    awaiting_welcome = "awaiting_welcome"
    welcome_captured = "welcome_captured"
    conversing = "conversing"


def extract_fa_topic(text: str) -> str | None:
    """Topic named in an FA intro lead-in, or None if text is not one."""
    if not text.startswith(FA_INTRO_LEAD_IN):
        return None
    match = FA_INTRO_TOPIC_RE.search(text)
    return match.group(1).strip() if match else None


class TranscriptSynchronizer:
    def __init__(
        self,
        *,
        is_returning: bool,
        welcome_action: ActionType | None = None,
        welcome_metadata: dict | None = None,
    ):
        self.is_returning = is_returning
        self.welcome_action = welcome_action
        self.welcome_metadata = dict(welcome_metadata or {})

        self.state = WelcomeState.awaiting_welcome
        self.last_user_message_type = MessageType.general
        self._persisted_segments: set[str] = set()
        self._persisted_voice: set[str] = set()
        self._intro_topics: set[str] = set()
        self._outbox: list = []

    def drain(self) -> list:
        effects, self._outbox = self._outbox, []
        return effects

    @property
    def user_has_sent(self) -> bool:
        return self.state == WelcomeState.conversing

    # --- Agent side ---

    def on_agent_transcript(self, segment: TranscriptSegment) -> None:
        text = segment.text.strip()
        if not segment.is_agent_originated or not text:
            return

        if not segment.is_final:
            self._outbox.append(TranscriptPreview(segment.text, is_agent=True))
            return

        key = f"{segment.id}-{len(segment.text)}"
        if key in self._persisted_segments:
            logger.debug("Segment %s already persisted", key)
            return

        if text.startswith(FA_INTRO_LEAD_IN):
            self._persisted_segments.add(key)
            topic = extract_fa_topic(text)
            if topic is None:
                logger.warning("FA intro lead-in without a topic: %.60s", text)
            elif topic in self._intro_topics:
                logger.debug("FA intro for %r already persisted", topic)
            else:
                self._persist_fa_intro(topic, segment.text)
            return

        if self.state == WelcomeState.awaiting_welcome:
            self._persisted_segments.add(key)
            self._capture_welcome(segment.text)
        elif self.state == WelcomeState.conversing:
            self._persisted_segments.add(key)
            self._outbox.append(
                AppendMessage(
                    MessageRole.assistant,
                    segment.text,
                    self.last_user_message_type,
                )
            )
        else:
            logger.debug("Dropping agent segment %s: welcome done, no user message", key)

    def on_fa_intro_complete(self, topic: str, intro_text: str = "") -> None:
        """Structured intro-complete signal; a no-op if the transcript already had it."""
        if topic in self._intro_topics:
            logger.debug("FA intro for %r already persisted", topic)
            return
        text = intro_text.strip() or (
            f"{FA_INTRO_LEAD_IN} {topic}. Let's do a quick check of what you've learned."
        )
        self._persist_fa_intro(topic, text)

    # --- Learner side ---

    def on_user_transcript(self, transcription: UserTranscription) -> None:
        text = transcription.text.strip()
        if not text:
            return
        if not transcription.is_final:
            self._outbox.append(TranscriptPreview(transcription.text, is_agent=False))
            return
        if text in self._persisted_voice:
            logger.debug("Voice message already persisted: %.30s", text)
            return
        self._persisted_voice.add(text)
        self._outbox.append(
            AppendMessage(
                MessageRole.user,
                transcription.text,
                MessageType.general,
                transcription.input_type,
            )
        )
        self.mark_user_interacted(MessageType.general)

    def on_user_message(
        self, text: str, message_type: MessageType = MessageType.general
    ) -> None:
        """Typed chat input: persist it and pass it on to the agent."""
        if not text.strip():
            return
        self._outbox.append(
            AppendMessage(MessageRole.user, text, message_type, InputType.text)
        )
        self._outbox.append(SendToAgent(text, AgentPurpose.chat))
        self.mark_user_interacted(message_type)

    def mark_user_interacted(self, message_type: MessageType) -> None:
        """Record that the learner sent something; agent replies are tagged to match."""
        self.last_user_message_type = MessageType(message_type)
        self.state = WelcomeState.conversing

    # --- Internals ---

    def _capture_welcome(self, text: str) -> None:
        offer = None
        if self.welcome_action is not None:
            offer = OfferSpec(self.welcome_action.value, self.welcome_metadata)

        if self.is_returning:
            # Time-sensitive greeting; shown but kept out of history
            self._outbox.append(ShowTransientWelcome(text, offer))
        else:
            self._outbox.append(
                AppendMessage(MessageRole.assistant, text, MessageType.general, offer=offer)
            )
        self.state = WelcomeState.welcome_captured

    def _persist_fa_intro(self, topic: str, text: str) -> None:
        self._intro_topics.add(topic)
        logger.info("FA intro detected for topic %r", topic)
        self._outbox.append(
            AppendMessage(
                MessageRole.assistant,
                text,
                MessageType.fa_intro,
                offer=OfferSpec(
                    ActionType.fa_intro.value, {"topic": topic, "introMessage": text}
                ),
            )
        )
