"""Action offers - the button sets the UI renders under a chat message.

To add a new action type, add it to ActionType and ACTION_REGISTRY, then
handle its buttons in LearningSession._handle_action.
"""

import enum
from dataclasses import dataclass

from .enums import SessionType
from .types import ActionOffer


class ActionType(str, enum.Enum):
    course_welcome = "course_welcome"
    course_welcome_back = "course_welcome_back"
    lesson_welcome = "lesson_welcome"
    lesson_welcome_back = "lesson_welcome_back"
    fa_intro = "fa_intro"
    warmup_complete = "warmup_complete"
    inlesson_complete = "inlesson_complete"
    assessment_complete = "assessment_complete"
    lesson_complete = "lesson_complete"


@dataclass(frozen=True)
class ActionButton:
    id: str
    label: str
    variant: str = "primary"


@dataclass(frozen=True)
class ActionDefinition:
    buttons: tuple[ActionButton, ...]
    dismiss_after_click: bool = True


ACTION_REGISTRY: dict[ActionType, ActionDefinition] = {
    ActionType.course_welcome: ActionDefinition(
        buttons=(
            ActionButton("see_intro", "See the intro"),
            ActionButton("skip_to_lesson", "Continue to Lesson 1", "secondary"),
        ),
    ),
    ActionType.course_welcome_back: ActionDefinition(
        buttons=(ActionButton("continue", "Continue learning"),),
    ),
    ActionType.lesson_welcome: ActionDefinition(
        buttons=(
            ActionButton("start_warmup", "Start warm-up"),
            ActionButton("skip", "Skip", "secondary"),
        ),
    ),
    ActionType.lesson_welcome_back: ActionDefinition(
        buttons=(
            ActionButton("continue", "Continue where you left"),
            ActionButton("restart", "Start from beginning", "secondary"),
        ),
        dismiss_after_click=False,
    ),
    ActionType.fa_intro: ActionDefinition(
        buttons=(
            ActionButton("start", "Start quick check"),
            ActionButton("skip", "Skip for now", "secondary"),
        ),
    ),
    ActionType.warmup_complete: ActionDefinition(
        buttons=(ActionButton("watch", "Watch the lesson"),),
    ),
    ActionType.inlesson_complete: ActionDefinition(
        buttons=(ActionButton("continue", "Continue video"),),
    ),
    ActionType.assessment_complete: ActionDefinition(
        buttons=(ActionButton("continue", "Continue video"),),
    ),
    ActionType.lesson_complete: ActionDefinition(
        buttons=(
            ActionButton("warmup_next", "Warm-up for next lesson"),
            ActionButton("next_lesson", "Jump to next lesson", "secondary"),
        ),
    ),
}

_WELCOME_ACTIONS = {
    SessionType.course_welcome: ActionType.course_welcome,
    SessionType.course_welcome_back: ActionType.course_welcome_back,
    SessionType.lesson_welcome: ActionType.lesson_welcome,
    SessionType.lesson_welcome_back: ActionType.lesson_welcome_back,
}


def welcome_action_for(session_type: SessionType) -> ActionType:
    """The action offered under the welcome message of a session."""
    return _WELCOME_ACTIONS[session_type]


def make_offer(
    action_type: ActionType | str,
    metadata: dict | None = None,
    anchor_message_id: str | int | None = None,
) -> ActionOffer:
    """Build an ActionOffer with its registered buttons attached.

    Raises:
        ValueError: If action_type is not registered
    """
    action_type = ActionType(action_type)
    definition = ACTION_REGISTRY[action_type]
    return ActionOffer(
        type=action_type.value,
        metadata=dict(metadata or {}),
        anchor_message_id=anchor_message_id,
        buttons=tuple(
            {"id": b.id, "label": b.label, "variant": b.variant}
            for b in definition.buttons
        ),
    )
