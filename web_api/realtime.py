"""
WebSocket bridge between the browser and a LearningSession.

The browser hosts both the agent connection and the video player, so it
relays their events to us as JSON frames and carries out the commands we
send back:

    inbound   {"type": "player.time_update", "current_time_ms": 120200}
    outbound  {"type": "player.pause"}
    outbound  {"type": "agent.send_text", "command_id": 3, "text": "FA_INTRO:..."}
    inbound   {"type": "command.result", "command_id": 3, "ok": true}

Session updates (messages, questions, offers, notices) go out on the same
socket, each tagged with its ``kind`` as ``type``.
"""

import asyncio
import itertools
import logging
from dataclasses import asdict, is_dataclass
from typing import Annotated, Literal, Union

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from learning_core.enums import InputType, MessageType, PlayerState
from learning_core.events import (
    ActionClicked,
    AgentTranscriptReceived,
    AnswerSubmitted,
    CampaignCancelRequested,
    ConnectivityChanged,
    FAIntroCompleted,
    FAResponseReceived,
    PlayerStarted,
    PlayerStateChanged,
    PlayerTimeUpdated,
    QuestionSkipped,
    UserMessageSent,
    UserTranscriptReceived,
)
from learning_core.orchestrator import LearningSession
from learning_core.types import FAResponse, TranscriptSegment, UserTranscription

logger = logging.getLogger(__name__)

# How long the browser gets to confirm an agent send
AGENT_SEND_TIMEOUT_S = 10


class AgentSendError(Exception):
    """The browser could not deliver text to the agent."""


# =====================================================
# Inbound frames
# =====================================================


class AgentTranscriptFrame(BaseModel):
    type: Literal["agent.transcript"]
    id: str
    text: str
    is_final: bool
    is_agent_originated: bool = True

    def to_event(self):
        return AgentTranscriptReceived(
            TranscriptSegment(self.id, self.text, self.is_final, self.is_agent_originated)
        )


class UserTranscriptFrame(BaseModel):
    type: Literal["user.transcript"]
    text: str
    is_final: bool
    input_type: InputType = InputType.voice

    def to_event(self):
        return UserTranscriptReceived(
            UserTranscription(self.text, self.is_final, self.input_type)
        )


class UserMessageFrame(BaseModel):
    type: Literal["user.message"]
    text: str
    message_type: MessageType = MessageType.general

    def to_event(self):
        return UserMessageSent(self.text, self.message_type)


class FAIntroCompleteFrame(BaseModel):
    type: Literal["agent.fa_intro_complete"]
    topic: str
    intro_text: str = ""

    def to_event(self):
        return FAIntroCompleted(self.topic, self.intro_text)


class FAResponseFrame(BaseModel):
    type: Literal["agent.fa_response"]
    question_number: int | None = None
    question_text: str | None = None
    options: list[str] = []
    is_mcq: bool = False
    feedback_type: Literal["correct", "incorrect", "partial"] | None = None
    is_complete: bool = False
    completion_summary: str | None = None

    def to_event(self):
        return FAResponseReceived(
            FAResponse(
                question_number=self.question_number,
                question_text=self.question_text,
                options=tuple(self.options),
                is_mcq=self.is_mcq,
                feedback_type=self.feedback_type,
                is_complete=self.is_complete,
                completion_summary=self.completion_summary,
            )
        )


class PlayerStartedFrame(BaseModel):
    type: Literal["player.started"]
    bookmarks: list[dict] = []
    duration_ms: int | None = None

    def to_event(self):
        return PlayerStarted(tuple(self.bookmarks), self.duration_ms)


class PlayerTimeFrame(BaseModel):
    type: Literal["player.time_update"]
    current_time_ms: int = Field(ge=0)

    def to_event(self):
        return PlayerTimeUpdated(self.current_time_ms)


class PlayerStateFrame(BaseModel):
    type: Literal["player.state_change"]
    state: PlayerState

    def to_event(self):
        return PlayerStateChanged(self.state)


class ActionClickFrame(BaseModel):
    type: Literal["action.click"]
    action_type: str
    button_id: str
    metadata: dict = {}

    def to_event(self):
        return ActionClicked(self.action_type, self.button_id, dict(self.metadata))


class AnswerFrame(BaseModel):
    type: Literal["quiz.answer"]
    question_id: str
    answer: str

    def to_event(self):
        return AnswerSubmitted(self.question_id, self.answer)


class SkipFrame(BaseModel):
    type: Literal["quiz.skip"]
    question_id: str

    def to_event(self):
        return QuestionSkipped(self.question_id)


class CancelFrame(BaseModel):
    type: Literal["quiz.cancel"]

    def to_event(self):
        return CampaignCancelRequested()


class ConnectivityFrame(BaseModel):
    type: Literal["connectivity"]
    online: bool

    def to_event(self):
        return ConnectivityChanged(self.online)


class CommandResultFrame(BaseModel):
    type: Literal["command.result"]
    command_id: int
    ok: bool
    error: str | None = None


InboundFrame = Annotated[
    Union[
        AgentTranscriptFrame,
        UserTranscriptFrame,
        UserMessageFrame,
        FAIntroCompleteFrame,
        FAResponseFrame,
        PlayerStartedFrame,
        PlayerTimeFrame,
        PlayerStateFrame,
        ActionClickFrame,
        AnswerFrame,
        SkipFrame,
        CancelFrame,
        ConnectivityFrame,
        CommandResultFrame,
    ],
    Field(discriminator="type"),
]

_frame_adapter = TypeAdapter(InboundFrame)


def parse_frame(data: dict):
    """Validate one inbound frame. Raises pydantic.ValidationError."""
    return _frame_adapter.validate_python(data)


# =====================================================
# Outbound
# =====================================================


def update_payload(update) -> dict:
    """JSON-ready dict for a session update or effect."""
    body = asdict(update) if is_dataclass(update) else dict(update)
    return {"type": update.kind, **jsonable_encoder(body)}


class SocketBridge:
    """Agent channel and player control that relay through the browser."""

    def __init__(self, send_timeout_s: float = AGENT_SEND_TIMEOUT_S):
        self.outgoing: asyncio.Queue[dict] = asyncio.Queue()
        self.send_timeout_s = send_timeout_s
        self._command_ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}

    # PlayerControl

    def pause(self) -> None:
        self.outgoing.put_nowait({"type": "player.pause"})

    def play(self) -> None:
        self.outgoing.put_nowait({"type": "player.play"})

    def seek(self, position_ms: int) -> None:
        self.outgoing.put_nowait({"type": "player.seek", "position_ms": position_ms})

    # AgentChannel

    async def send_text(self, text: str) -> None:
        command_id = next(self._command_ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[command_id] = future
        self.outgoing.put_nowait(
            {"type": "agent.send_text", "command_id": command_id, "text": text}
        )
        try:
            await asyncio.wait_for(future, timeout=self.send_timeout_s)
        except asyncio.TimeoutError as e:
            raise AgentSendError(f"No confirmation for agent command {command_id}") from e
        finally:
            self._pending.pop(command_id, None)

    def resolve(self, frame: CommandResultFrame) -> None:
        future = self._pending.get(frame.command_id)
        if future is None or future.done():
            logger.debug("Result for unknown command %s", frame.command_id)
            return
        if frame.ok:
            future.set_result(None)
        else:
            future.set_exception(AgentSendError(frame.error or "agent send failed"))

    def fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(AgentSendError(reason))


async def _forward(websocket: WebSocket, queue: asyncio.Queue, encode) -> None:
    while True:
        item = await queue.get()
        await websocket.send_json(encode(item))


async def run_socket_session(
    websocket: WebSocket, session: LearningSession, bridge: SocketBridge
) -> None:
    """Pump frames in and updates out until the browser disconnects."""
    session.start()
    forwarders = [
        asyncio.create_task(_forward(websocket, bridge.outgoing, lambda item: item)),
        asyncio.create_task(_forward(websocket, session.updates, update_payload)),
    ]
    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                logger.warning("Rejected non-JSON frame: %s", e)
                await websocket.send_json({"type": "error", "detail": "Frame is not valid JSON"})
                continue
            try:
                frame = parse_frame(data)
            except ValidationError as e:
                logger.warning("Rejected frame: %s", e.errors()[:1])
                await websocket.send_json(
                    {"type": "error", "detail": jsonable_encoder(e.errors())}
                )
                continue

            if isinstance(frame, CommandResultFrame):
                bridge.resolve(frame)
            else:
                session.post(frame.to_event())
    except WebSocketDisconnect:
        logger.info(
            "Learner %s left lesson %s", session.session.user_id, session.session.lesson_id
        )
    finally:
        bridge.fail_pending("socket closed")
        for task in forwarders:
            task.cancel()
        session.close()
