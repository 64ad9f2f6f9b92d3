"""Tests for answer validation, scoring and attempt results."""

import uuid

import pytest

from lms_quiz.helpers.quiz_answer_evaluator import (
    calculate_attempt_result,
    grade_answers,
    new_answer_record,
    score_answer,
    total_possible_points,
    validate_and_process_answers,
    validate_answer,
)
from lms_quiz.models import QuestionType, QuizQuestion


@pytest.fixture
def questions():
    mc = QuizQuestion(
        id=uuid.uuid4(),
        position=0,
        type=QuestionType.MULTIPLE_CHOICE,
        text="Capital of France?",
        points=5,
        options=[
            {"uid": "a", "text": "Lyon", "is_correct": False, "order": 0},
            {"uid": "b", "text": "Paris", "is_correct": True, "order": 1},
        ],
        correct_answers=["b"],
        settings={},
    )
    sa = QuizQuestion(
        id=uuid.uuid4(),
        position=1,
        type=QuestionType.SHORT_ANSWER,
        text="Capital of Italy?",
        points=10,
        options=[],
        correct_answers=["Rome"],
        settings={},
    )
    return [mc, sa]


def test_validate_answer_normalizes(questions):
    mc, sa = questions
    check = validate_answer("b", str(mc.id), questions)
    assert check.is_valid
    assert check.normalized_answer == ["b"]

    check = validate_answer(" Rome ", sa.id, questions)
    assert check.normalized_answer == ["Rome"]


def test_validate_answer_unknown_question(questions):
    check = validate_answer("b", str(uuid.uuid4()), questions)
    assert not check.is_valid
    assert check.error == "Question not found"


def test_validate_answer_unsupported_type(questions, monkeypatch):
    from lms_quiz.helpers.question_providers import QuestionProviderFactory

    monkeypatch.delitem(QuestionProviderFactory.providers, "short_answer")
    check = validate_answer("Rome", str(questions[1].id), questions)
    assert check.error == "Question type short_answer not supported"


def test_validate_answer_joins_provider_errors(questions):
    check = validate_answer(["a", "z"], str(questions[0].id), questions)
    assert not check.is_valid
    assert check.error == "Invalid option: z, Only one option can be selected"


def test_batch_collects_every_error(questions):
    mc, sa = questions
    missing_id = str(uuid.uuid4())
    batch = validate_and_process_answers(
        [
            {"question_id": str(mc.id), "answer": "b"},
            {"question_id": None, "answer": "x"},
            {"question_id": str(sa.id), "answer": None},
            {"question_id": missing_id, "answer": "x"},
            {"question_id": str(sa.id), "answer": "   "},
        ],
        questions,
    )
    assert not batch.is_valid
    assert batch.errors == [
        "Question ID is required and must be a string",
        "Answer is required",
        f"Question {missing_id} not found",
        f"Invalid answer for question {sa.id}: Answer cannot be empty",
    ]
    assert [a["question_id"] for a in batch.processed_answers] == [str(mc.id)]


@pytest.mark.parametrize("answers", [[], None, "b"])
def test_batch_needs_at_least_one_answer(answers, questions):
    batch = validate_and_process_answers(answers, questions)
    assert not batch.is_valid
    assert batch.errors == ["At least one answer is required"]


def test_valid_batch_produces_fresh_records(questions):
    mc, _ = questions
    batch = validate_and_process_answers([{"question_id": str(mc.id), "answer": ["b"]}], questions)
    assert batch.is_valid
    assert batch.processed_answers == [new_answer_record(mc.id, ["b"])]


def test_score_answer_feedback(questions):
    mc, sa = questions
    right = score_answer(new_answer_record(mc.id, ["b"]), questions)
    assert right["is_correct"] is True
    assert right["score"] == 5
    assert right["feedback"] == "Correct!"

    wrong = score_answer(new_answer_record(sa.id, ["Milan"]), questions)
    assert wrong["is_correct"] is False
    assert wrong["score"] == 0
    assert wrong["feedback"] == "Incorrect"

    orphan = score_answer(new_answer_record(uuid.uuid4(), ["b"]), questions)
    assert orphan["score"] == 0
    assert orphan["feedback"] == "Question not found"


def test_unsupported_type_scores_zero_without_failing(questions, monkeypatch):
    from lms_quiz.helpers.question_providers import QuestionProviderFactory

    mc, sa = questions
    monkeypatch.delitem(QuestionProviderFactory.providers, "short_answer")
    total, graded = grade_answers(
        [new_answer_record(mc.id, ["b"]), new_answer_record(sa.id, ["Rome"])],
        questions,
    )
    assert total == 5
    assert graded[1]["feedback"] == "Question type not supported"
    assert graded[1]["is_correct"] is False


def test_grade_answers_keeps_other_fields(questions):
    mc, _ = questions
    record = dict(new_answer_record(mc.id, ["b"]), feedback="old", time_spent=12)
    _, graded = grade_answers([record], questions)
    assert graded[0]["time_spent"] == 12
    assert graded[0]["feedback"] == "Correct!"
    assert record["score"] is None


def test_attempt_result_partial_score_fails(questions):
    result = calculate_attempt_result(5, questions, 60)
    assert result.score == 5
    assert result.percentage_score == 33.33
    assert result.passed is False


def test_attempt_result_full_score_passes(questions):
    result = calculate_attempt_result(15, questions, 60)
    assert result.percentage_score == 100
    assert result.passed is True


def test_attempt_result_uses_default_threshold(questions):
    assert calculate_attempt_result(9, questions, None).passed is True
    assert calculate_attempt_result(8, questions, None).passed is False


def test_attempt_result_zero_threshold_passes_everything(questions):
    assert calculate_attempt_result(0, questions, 0).passed is True


def test_attempt_result_without_points():
    result = calculate_attempt_result(0, [], 60)
    assert result.percentage_score == 0
    assert result.passed is False


def test_total_possible_points(questions):
    assert total_possible_points(questions) == 15


def test_regrading_is_idempotent(questions):
    mc, sa = questions
    answers = [new_answer_record(mc.id, ["b"]), new_answer_record(sa.id, ["rome"])]
    first_total, first = grade_answers(answers, questions)
    second_total, second = grade_answers(first, questions)
    assert first_total == second_total == 15
    assert first == second
