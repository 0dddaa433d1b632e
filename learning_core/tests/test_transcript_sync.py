"""Tests for TranscriptSynchronizer: welcome capture, dedup and reply tagging."""

from learning_core.actions import ActionType
from learning_core.enums import InputType, MessageRole, MessageType
from learning_core.events import (
    AgentPurpose,
    AppendMessage,
    SendToAgent,
    ShowTransientWelcome,
    TranscriptPreview,
)
from learning_core.transcript_sync import (
    TranscriptSynchronizer,
    WelcomeState,
    extract_fa_topic,
)
from learning_core.types import TranscriptSegment, UserTranscription

FA_INTRO = (
    "We've just completed a full idea covering backpropagation. "
    "Let's do a quick check of what you've learned."
)


def agent_segment(segment_id, text, final=True):
    return TranscriptSegment(id=segment_id, text=text, is_final=final)


def first_visit():
    return TranscriptSynchronizer(
        is_returning=False,
        welcome_action=ActionType.lesson_welcome,
        welcome_metadata={"session_type": "lesson_welcome"},
    )


class TestWelcome:
    def test_first_visit_welcome_is_persisted_with_offer(self):
        sync = first_visit()

        sync.on_agent_transcript(agent_segment("s1", "Welcome to lesson 2!"))

        [effect] = sync.drain()
        assert isinstance(effect, AppendMessage)
        assert effect.role == MessageRole.assistant
        assert effect.content == "Welcome to lesson 2!"
        assert effect.offer.action_type == "lesson_welcome"
        assert sync.state == WelcomeState.welcome_captured

    def test_returning_visit_welcome_is_transient(self):
        """Welcome-back text is never persisted."""
        sync = TranscriptSynchronizer(
            is_returning=True, welcome_action=ActionType.lesson_welcome_back
        )

        sync.on_agent_transcript(agent_segment("s1", "Welcome back!"))

        [effect] = sync.drain()
        assert isinstance(effect, ShowTransientWelcome)
        assert effect.text == "Welcome back!"
        assert effect.offer.action_type == "lesson_welcome_back"

    def test_agent_chatter_after_welcome_is_dropped_until_user_speaks(self):
        sync = first_visit()
        sync.on_agent_transcript(agent_segment("s1", "Welcome!"))
        sync.drain()

        sync.on_agent_transcript(agent_segment("s2", "Anything else on your mind?"))

        assert sync.drain() == []

    def test_interim_segment_is_preview_only(self):
        sync = first_visit()

        sync.on_agent_transcript(agent_segment("s1", "Welc", final=False))

        assert sync.drain() == [TranscriptPreview("Welc", is_agent=True)]
        assert sync.state == WelcomeState.awaiting_welcome


class TestDeduplication:
    def test_same_segment_persisted_once(self):
        sync = first_visit()
        sync.on_user_message("Hi")
        sync.drain()

        sync.on_agent_transcript(agent_segment("s9", "Hello there"))
        sync.on_agent_transcript(agent_segment("s9", "Hello there"))

        appended = [e for e in sync.drain() if isinstance(e, AppendMessage)]
        assert len(appended) == 1

    def test_grown_segment_counts_as_new(self):
        sync = first_visit()
        sync.on_user_message("Hi")
        sync.drain()

        sync.on_agent_transcript(agent_segment("s9", "Hello"))
        sync.on_agent_transcript(agent_segment("s9", "Hello there"))

        appended = [e for e in sync.drain() if isinstance(e, AppendMessage)]
        assert [a.content for a in appended] == ["Hello", "Hello there"]

    def test_voice_transcription_deduplicated_by_trimmed_text(self):
        sync = first_visit()

        sync.on_user_transcript(UserTranscription("What is a tensor?", True))
        sync.on_user_transcript(UserTranscription("  What is a tensor?  ", True))

        [effect] = sync.drain()
        assert effect.input_type == InputType.voice
        assert sync.state == WelcomeState.conversing


class TestConversation:
    def test_user_message_is_persisted_and_forwarded(self):
        sync = first_visit()

        sync.on_user_message("Can you explain that again?")

        assert sync.drain() == [
            AppendMessage(MessageRole.user, "Can you explain that again?"),
            SendToAgent("Can you explain that again?", AgentPurpose.chat),
        ]

    def test_reply_tagged_like_last_user_message(self):
        sync = first_visit()
        sync.mark_user_interacted(MessageType.fa)

        sync.on_agent_transcript(agent_segment("s3", "Correct, well done."))

        [effect] = sync.drain()
        assert effect.message_type == MessageType.fa

    def test_blank_input_is_ignored(self):
        sync = first_visit()

        sync.on_user_message("   ")
        sync.on_user_transcript(UserTranscription("", True))

        assert sync.drain() == []


class TestFormativeAssessmentIntro:
    def test_extract_topic(self):
        assert extract_fa_topic(FA_INTRO) == "backpropagation"
        assert extract_fa_topic("We've just completed a full idea covering") is None
        assert extract_fa_topic("Hello") is None

    def test_intro_persisted_with_offer_in_any_state(self):
        sync = first_visit()

        sync.on_agent_transcript(agent_segment("s5", FA_INTRO))

        [effect] = sync.drain()
        assert effect.message_type == MessageType.fa_intro
        assert effect.offer.action_type == ActionType.fa_intro.value
        assert effect.offer.metadata == {"topic": "backpropagation", "introMessage": FA_INTRO}
        # The intro is not taken as the welcome
        assert sync.state == WelcomeState.awaiting_welcome

    def test_structured_intro_after_transcript_is_noop(self):
        sync = first_visit()
        sync.on_agent_transcript(agent_segment("s5", FA_INTRO))
        sync.drain()

        sync.on_fa_intro_complete("backpropagation", FA_INTRO)

        assert sync.drain() == []

    def test_structured_intro_without_text_builds_one(self):
        sync = first_visit()

        sync.on_fa_intro_complete("attention")

        [effect] = sync.drain()
        assert extract_fa_topic(effect.content) == "attention"

    def test_transcript_after_structured_intro_is_not_persisted_again(self):
        sync = first_visit()
        sync.on_fa_intro_complete("backpropagation")
        sync.drain()

        sync.on_agent_transcript(agent_segment("s5", FA_INTRO))

        assert sync.drain() == []

    def test_lead_in_without_topic_is_never_a_reply(self):
        sync = first_visit()
        sync.on_user_message("Hi")
        sync.drain()

        sync.on_agent_transcript(
            agent_segment("s6", "We've just completed a full idea covering a lot today")
        )

        assert sync.drain() == []
        assert sync.state == WelcomeState.conversing
