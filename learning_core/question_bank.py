"""
Static per-lesson quiz definitions.

A lesson's ``quiz`` JSON column looks like:

    {
        "chapters": [{"id": "ch1", "title": "..."}],
        "warmup": [
            {"id": "w1", "question": "...", "options": [{"id": "a", "text": "..."}],
             "correct_option": "a", "feedback": "..."}
        ],
        "inlesson": [
            {"id": "q1", "question": "...", "timestamp": 95, "type": "mcq",
             "options": [...], "correct_option": "b"}
        ]
    }

The bank is parsed once at lesson entry and is read-only afterwards; every
accessor hands out fresh Question copies so QuizEngine can mutate them.
"""

import logging
from dataclasses import dataclass

from .enums import QuestionType
from .types import Question, QuizOption, Trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestionDefinition:
    id: str
    text: str
    type: QuestionType
    options: tuple[QuizOption, ...] = ()
    correct_option: str | None = None
    feedback: str | None = None
    timestamp_s: float | None = None  # In-lesson questions only
    chapter_id: str | None = None

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            type=self.type,
            options=list(self.options),
            correct_option=self.correct_option,
            custom_feedback=self.feedback,
        )


class QuestionBank:
    """Warmup and in-lesson questions for one lesson."""

    def __init__(
        self,
        warmup: tuple[QuestionDefinition, ...] = (),
        inlesson: tuple[QuestionDefinition, ...] = (),
        chapters: tuple[dict, ...] = (),
    ):
        self._warmup = tuple(warmup)
        self._inlesson = tuple(inlesson)
        self._inlesson_by_id = {q.id: q for q in self._inlesson}
        self.chapters = tuple(chapters)

    @classmethod
    def empty(cls) -> "QuestionBank":
        return cls()

    @classmethod
    def from_quiz_json(cls, data: dict | None) -> "QuestionBank":
        """Parse a lesson's quiz JSON. Malformed entries are skipped."""
        if not data:
            return cls.empty()
        if not isinstance(data, dict):
            logger.warning("Ignoring quiz data of type %s", type(data).__name__)
            return cls.empty()

        warmup = []
        for raw in data.get("warmup") or []:
            question = _parse_question(raw, default_type=QuestionType.multiple_choice)
            if question:
                warmup.append(question)

        inlesson = []
        for raw in data.get("inlesson") or []:
            question = _parse_question(raw, default_type=QuestionType.multiple_choice)
            if question is None:
                continue
            if question.timestamp_s is None:
                logger.warning("In-lesson question %s has no timestamp", question.id)
                continue
            inlesson.append(question)

        chapters = tuple(c for c in data.get("chapters") or [] if isinstance(c, dict))
        return cls(tuple(warmup), tuple(inlesson), chapters)

    def warmup_questions(self) -> list[Question]:
        return [q.to_question() for q in self._warmup]

    def inlesson_question(self, question_id: str) -> Question | None:
        definition = self._inlesson_by_id.get(question_id)
        return definition.to_question() if definition else None

    def inlesson_triggers(self) -> list[Trigger]:
        """Timeline triggers for in-lesson questions, ordered by offset."""
        triggers = [
            Trigger(
                id=f"inlesson:{q.id}",
                offset_ms=int(q.timestamp_s * 1000),
                question_id=q.id,
            )
            for q in self._inlesson
        ]
        return sorted(triggers, key=lambda t: t.offset_ms)

    @property
    def has_warmup(self) -> bool:
        return bool(self._warmup)


def _parse_question(
    raw: object, *, default_type: QuestionType
) -> QuestionDefinition | None:
    if not isinstance(raw, dict):
        logger.warning("Skipping non-object quiz entry: %r", raw)
        return None

    question_id = raw.get("id")
    text = raw.get("question")
    if not question_id or not text:
        logger.warning("Skipping quiz entry without id/question: %r", raw)
        return None

    try:
        question_type = QuestionType(raw.get("type") or default_type.value)
    except ValueError:
        logger.warning("Question %s has unknown type %r", question_id, raw.get("type"))
        return None

    options = tuple(
        QuizOption(id=str(o["id"]), text=str(o.get("text", "")))
        for o in raw.get("options") or []
        if isinstance(o, dict) and "id" in o
    )
    timestamp = raw.get("timestamp")

    return QuestionDefinition(
        id=str(question_id),
        text=str(text),
        type=question_type,
        options=options,
        correct_option=raw.get("correct_option"),
        feedback=raw.get("feedback") or None,
        timestamp_s=float(timestamp) if timestamp is not None else None,
        chapter_id=raw.get("chapter_id"),
    )


def load_question_bank(lesson_row: dict | None) -> QuestionBank:
    """QuestionBank for a lessons-table row (its ``quiz`` column)."""
    if not lesson_row:
        return QuestionBank.empty()
    return QuestionBank.from_quiz_json(lesson_row.get("quiz"))
