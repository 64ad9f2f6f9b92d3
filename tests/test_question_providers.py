"""Tests for the per-question-type providers."""

import pytest

from lms_quiz.helpers.question_providers import (
    MultipleChoiceProvider,
    QuestionProviderFactory,
    ShortAnswerProvider,
    get_provider,
)
from lms_quiz.models import QuestionType

OPTIONS = [
    {"uid": "a", "text": "Lyon", "is_correct": False, "order": 0},
    {"uid": "b", "text": "Paris", "is_correct": True, "order": 1},
    {"uid": "c", "text": "Nice", "is_correct": False, "order": 2},
]


def mc_question(**overrides):
    question = {
        "id": "q-mc",
        "type": "multiple_choice",
        "text": "Capital of France?",
        "points": 5,
        "explanation": "Paris has been the capital since 987.",
        "options": [dict(o) for o in OPTIONS],
        "correct_answers": ["b"],
        "settings": {},
    }
    question.update(overrides)
    return question


def sa_question(**overrides):
    question = {
        "id": "q-sa",
        "type": "short_answer",
        "text": "Capital of Italy?",
        "points": 10,
        "options": [],
        "correct_answers": ["Rome", "Roma"],
        "settings": {},
    }
    question.update(overrides)
    return question


def test_factory_resolves_enum_and_string_types():
    assert isinstance(QuestionProviderFactory.get_provider(QuestionType.MULTIPLE_CHOICE), MultipleChoiceProvider)
    assert isinstance(get_provider("short_answer"), ShortAnswerProvider)
    assert QuestionProviderFactory.get_provider("essay") is None
    assert QuestionProviderFactory.get_provider(None) is None
    assert set(QuestionProviderFactory.supported_types()) == {"multiple_choice", "short_answer"}


def test_multiple_choice_single_option_string_is_accepted():
    result = MultipleChoiceProvider().validate_answer("b", mc_question())
    assert result.is_valid
    assert result.normalized_answer == ["b"]


def test_multiple_choice_normalizes_by_option_order():
    question = mc_question(correct_answers=["a", "c"])
    result = MultipleChoiceProvider().validate_answer(["c", "a", "c"], question)
    assert result.is_valid
    assert result.normalized_answer == ["a", "c"]


@pytest.mark.parametrize(
    "answer, error",
    [
        (None, "Answer is required"),
        ([], "At least one option must be selected"),
        ([1, 2], "Answer must be a list of option ids"),
        (["z"], "Invalid option: z"),
        (["a", "b"], "Only one option can be selected"),
    ],
)
def test_multiple_choice_rejects_bad_answers(answer, error):
    result = MultipleChoiceProvider().validate_answer(answer, mc_question())
    assert not result.is_valid
    assert error in result.errors


def test_multiple_choice_allow_multiple_setting():
    question = mc_question(settings={"allow_multiple": True})
    assert MultipleChoiceProvider().validate_answer(["a", "b"], question).is_valid


def test_multiple_choice_scoring_needs_exact_selection():
    provider = MultipleChoiceProvider()
    question = mc_question(correct_answers=["a", "b"])
    assert provider.calculate_score(["b", "a"], question) == 5
    assert provider.calculate_score(["a"], question) == 0
    assert provider.calculate_score([], question) == 0


def test_multiple_choice_falls_back_to_option_flags():
    provider = MultipleChoiceProvider()
    question = mc_question(correct_answers=[])
    assert provider.correct_option_ids(question) == ["b"]
    assert provider.calculate_score(["b"], question) == 5


def test_short_answer_is_trimmed_and_case_insensitive():
    provider = ShortAnswerProvider()
    result = provider.validate_answer("  rome ", sa_question())
    assert result.is_valid
    assert result.normalized_answer == ["rome"]
    assert provider.calculate_score(result.normalized_answer, sa_question()) == 10
    assert provider.calculate_score(["Milan"], sa_question()) == 0


def test_short_answer_case_sensitive_setting():
    provider = ShortAnswerProvider()
    question = sa_question(settings={"case_sensitive": True})
    assert provider.calculate_score(["rome"], question) == 0
    assert provider.calculate_score(["Rome"], question) == 10


@pytest.mark.parametrize(
    "answer, error",
    [
        ("   ", "Answer cannot be empty"),
        (["a", "b"], "Answer must be text"),
        (42, "Answer must be text"),
        ("x" * 1001, "Answer is too long"),
    ],
)
def test_short_answer_rejects_bad_answers(answer, error):
    result = ShortAnswerProvider().validate_answer(answer, sa_question())
    assert not result.is_valid
    assert result.errors == [error]


def test_scoring_result_feedback():
    provider = ShortAnswerProvider()
    assert provider.get_scoring_result(["Roma"], sa_question()).feedback == "Correct!"
    wrong = provider.get_scoring_result(["Paris"], sa_question())
    assert not wrong.is_correct
    assert wrong.score == 0
    assert wrong.feedback == "Incorrect"


def test_display_strips_answer_keys():
    shown = QuestionProviderFactory.process_question_for_display("multiple_choice", mc_question())
    assert "correct_answers" not in shown
    assert "explanation" not in shown
    assert all("is_correct" not in opt for opt in shown["options"])
    assert [opt["uid"] for opt in shown["options"]] == ["a", "b", "c"]

    short = QuestionProviderFactory.process_question_for_display("short_answer", sa_question())
    assert short["options"] == []
    assert "correct_answers" not in short


def test_display_can_keep_answer_keys():
    shown = MultipleChoiceProvider().process_question_for_display(mc_question(), hide_answers=False)
    assert shown["correct_answers"] == ["b"]
    assert shown["options"][1]["is_correct"] is True


def test_validate_question_definitions():
    assert QuestionProviderFactory.validate_question(mc_question()).is_valid
    assert QuestionProviderFactory.validate_question(sa_question()).is_valid

    missing = QuestionProviderFactory.validate_question({"text": "No type"})
    assert missing.errors == ["Question type is required"]

    unknown = QuestionProviderFactory.validate_question({"type": "essay", "text": "Why?"})
    assert unknown.errors == ["Unsupported question type: essay"]


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"options": [OPTIONS[1]]}, None),
        ({"correct_answers": ["z"]}, "Correct answer refers to unknown option: z"),
        (
            {"options": [dict(OPTIONS[0], uid="a"), dict(OPTIONS[1], uid="a")]},
            "Option ids must be unique",
        ),
        (
            {"options": [dict(o, is_correct=False) for o in OPTIONS], "correct_answers": []},
            "At least one option must be correct",
        ),
    ],
)
def test_invalid_multiple_choice_definitions(overrides, error):
    result = QuestionProviderFactory.validate_question(mc_question(**overrides))
    assert not result.is_valid
    if error:
        assert error in result.errors


def test_short_answer_definition_needs_an_accepted_answer():
    result = QuestionProviderFactory.validate_question(sa_question(correct_answers=[]))
    assert not result.is_valid


def test_factory_helpers_for_unknown_types():
    assert QuestionProviderFactory.calculate_score("essay", ["x"], sa_question()) == 0
    assert QuestionProviderFactory.get_default_settings("essay") == {}
    assert QuestionProviderFactory.get_question_metadata("essay") is None
    assert QuestionProviderFactory.get_default_settings("short_answer")["case_sensitive"] is False
    assert QuestionProviderFactory.get_question_metadata("multiple_choice")["display_name"] == "Multiple Choice"
