"""
Free-text answer grading with an LLM.

Builds a short grading prompt from the question and the learner's answer,
asks LiteLLM for a structured verdict and maps it onto EvaluationResult.
The session treats any failure here (timeout, bad JSON, provider error)
as "ungraded" and moves on.
"""

import json
import logging
import os

from .llm import DEFAULT_PROVIDER, complete
from .types import EvaluationRequest, EvaluationResult

logger = logging.getLogger(__name__)

# Grading model (may differ from the default chat model)
EVALUATION_PROVIDER = os.environ.get("EVALUATION_PROVIDER") or DEFAULT_PROVIDER

EVALUATION_SCHEMA = {
    "type": "json_schema",
    "json_schema": {
        "name": "answer_evaluation",
        "schema": {
            "type": "object",
            "properties": {
                "is_correct": {"type": "boolean"},
                "feedback": {
                    "type": "string",
                    "description": "One or two encouraging sentences",
                },
            },
            "required": ["is_correct", "feedback"],
            "additionalProperties": False,
        },
    },
}


class EvaluationParseError(Exception):
    """The grader returned something that is not a verdict."""


def _build_evaluation_prompt(
    *, question_text: str, answer: str
) -> tuple[str, list[dict]]:
    system = (
        "You are a supportive tutor grading a short answer during a video lesson. "
        "Decide whether the answer shows the key idea the question asks for. "
        "Accept paraphrases and minor mistakes in wording. "
        "Reply with a verdict and brief feedback addressed to the learner."
    )
    messages = [
        {
            "role": "user",
            "content": (
                f"Question: {question_text}\n\n"
                f"Learner's answer: {answer}\n\n"
                "Is this answer correct?"
            ),
        }
    ]
    return system, messages


def _parse_evaluation(question_id: str, raw: str) -> EvaluationResult:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise EvaluationParseError(f"Grader returned invalid JSON: {raw!r}") from e

    if not isinstance(data, dict) or not isinstance(data.get("is_correct"), bool):
        raise EvaluationParseError(f"Grader returned no verdict: {raw!r}")

    return EvaluationResult(
        question_id=question_id,
        is_correct=data["is_correct"],
        feedback=str(data.get("feedback") or ""),
    )


class LLMAnswerEvaluator:
    def __init__(self, provider: str | None = None):
        self.provider = provider or EVALUATION_PROVIDER

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        system, messages = _build_evaluation_prompt(
            question_text=request.question_text, answer=request.answer
        )
        raw = await complete(
            messages=messages,
            system=system,
            response_format=EVALUATION_SCHEMA,
            provider=self.provider,
            max_tokens=256,
        )
        result = _parse_evaluation(request.question_id, raw)
        logger.info(
            "Evaluated answer to %s: correct=%s", request.question_id, result.is_correct
        )
        return result
