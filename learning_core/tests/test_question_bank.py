"""Tests for QuestionBank parsing and its read API."""

from learning_core.enums import QuestionStatus, QuestionType
from learning_core.question_bank import QuestionBank, load_question_bank


QUIZ = {
    "chapters": [{"id": "ch1", "title": "Basics"}],
    "warmup": [
        {
            "id": "w1",
            "question": "What is 2 + 2?",
            "options": [{"id": "a", "text": "4"}, {"id": "b", "text": "5"}],
            "correct_option": "a",
        },
        {
            "id": "w2",
            "question": "Pick the prime",
            "options": [{"id": "a", "text": "4"}, {"id": "b", "text": "7"}],
            "correct_option": "b",
            "feedback": "7 has no divisors but 1 and itself.",
        },
    ],
    "inlesson": [
        {"id": "q2", "question": "Why?", "timestamp": 200, "type": "text"},
        {
            "id": "q1",
            "question": "Which one?",
            "timestamp": 95.5,
            "type": "mcq",
            "options": [{"id": "a", "text": "A"}],
            "correct_option": "a",
        },
    ],
}


class TestFromQuizJson:
    def test_parses_warmup_questions_in_order(self):
        bank = QuestionBank.from_quiz_json(QUIZ)

        questions = bank.warmup_questions()

        assert [q.id for q in questions] == ["w1", "w2"]
        assert questions[0].type == QuestionType.multiple_choice
        assert questions[0].correct_option == "a"
        assert questions[1].custom_feedback == "7 has no divisors but 1 and itself."
        assert all(q.status == QuestionStatus.pending for q in questions)

    def test_empty_or_missing_quiz_gives_empty_bank(self):
        assert QuestionBank.from_quiz_json(None).warmup_questions() == []
        assert QuestionBank.from_quiz_json({}).inlesson_triggers() == []
        assert not QuestionBank.from_quiz_json(None).has_warmup

    def test_malformed_entries_are_skipped(self):
        bank = QuestionBank.from_quiz_json(
            {
                "warmup": [
                    "not a dict",
                    {"id": "no-text"},
                    {"id": "bad-type", "question": "?", "type": "essay"},
                    {"id": "ok", "question": "Fine?"},
                ],
                "inlesson": [{"id": "no-time", "question": "When?"}],
            }
        )

        assert [q.id for q in bank.warmup_questions()] == ["ok"]
        assert bank.inlesson_triggers() == []

    def test_non_dict_quiz_is_ignored(self):
        assert QuestionBank.from_quiz_json(["w1"]).warmup_questions() == []


class TestReadApi:
    def test_questions_are_fresh_copies(self):
        bank = QuestionBank.from_quiz_json(QUIZ)

        first = bank.warmup_questions()[0]
        first.status = QuestionStatus.answered
        first.user_answer = "a"

        again = bank.warmup_questions()[0]
        assert again.status == QuestionStatus.pending
        assert again.user_answer is None

    def test_inlesson_triggers_sorted_and_in_milliseconds(self):
        bank = QuestionBank.from_quiz_json(QUIZ)

        triggers = bank.inlesson_triggers()

        assert [(t.question_id, t.offset_ms) for t in triggers] == [
            ("q1", 95500),
            ("q2", 200000),
        ]
        assert all(t.is_inlesson and not t.triggered for t in triggers)

    def test_inlesson_question_lookup(self):
        bank = QuestionBank.from_quiz_json(QUIZ)

        assert bank.inlesson_question("q2").type == QuestionType.free_text
        assert bank.inlesson_question("missing") is None

    def test_load_from_lesson_row(self):
        bank = load_question_bank({"lesson_id": "x", "quiz": QUIZ})

        assert bank.has_warmup
        assert load_question_bank(None).warmup_questions() == []
