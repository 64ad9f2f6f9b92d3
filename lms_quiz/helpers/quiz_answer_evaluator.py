from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from lms_quiz.helpers.question_providers import QuestionProviderFactory, question_points
from lms_quiz.models import QuizQuestion


DEFAULT_PASSING_SCORE = 60


class AnswerCheck(BaseModel):
    is_valid: bool
    normalized_answer: Any = None
    error: Optional[str] = None


class BatchValidation(BaseModel):
    is_valid: bool
    errors: List[str]
    processed_answers: List[Dict[str, Any]]


class AttemptResult(BaseModel):
    score: float
    percentage_score: float
    passed: bool


def _type_label(question: QuizQuestion) -> str:
    return getattr(question.type, "value", question.type)


def find_question(questions: Sequence[QuizQuestion], question_id) -> Optional[QuizQuestion]:
    wanted = str(question_id)
    for question in questions:
        if str(question.id) == wanted:
            return question
    return None


def new_answer_record(question_id, answer: Any) -> Dict[str, Any]:
    return {
        "question_id": str(question_id),
        "answer": answer,
        "is_correct": None,
        "score": None,
        "feedback": None,
        "time_spent": 0,
        "graded_at": None,
        "graded_by_id": None,
    }


def validate_answer(answer: Any, question_id, questions: Sequence[QuizQuestion]) -> AnswerCheck:
    """Validate one raw answer against its question via the question's provider."""
    question = find_question(questions, question_id)
    if not question:
        return AnswerCheck(is_valid=False, error="Question not found")

    provider = QuestionProviderFactory.get_provider(question.type)
    if not provider:
        return AnswerCheck(
            is_valid=False,
            error=f"Question type {_type_label(question)} not supported",
        )

    try:
        validation = provider.validate_answer(answer, question)
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        return AnswerCheck(is_valid=False, error=str(e))

    if not validation.is_valid:
        return AnswerCheck(is_valid=False, error=", ".join(validation.errors))

    normalized = validation.normalized_answer
    return AnswerCheck(is_valid=True, normalized_answer=normalized if normalized else answer)


def _entry_value(entry: Any, name: str):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def validate_and_process_answers(answers: Any, questions: Sequence[QuizQuestion]) -> BatchValidation:
    """
    Validate a batch of submitted answers.

    Every entry is checked; bad entries are reported and skipped so the caller
    sees all problems at once. The batch is valid only when no error was found.
    """
    errors: List[str] = []
    processed: List[Dict[str, Any]] = []

    if not isinstance(answers, (list, tuple)) or len(answers) == 0:
        errors.append("At least one answer is required")
        return BatchValidation(is_valid=False, errors=errors, processed_answers=[])

    for entry in answers:
        question_id = _entry_value(entry, "question_id")
        answer = _entry_value(entry, "answer")

        if not question_id or not isinstance(question_id, str):
            errors.append("Question ID is required and must be a string")
            continue

        if answer is None:
            errors.append("Answer is required")
            continue

        question = find_question(questions, question_id)
        if not question:
            errors.append(f"Question {question_id} not found")
            continue

        check = validate_answer(answer, question_id, questions)
        if not check.is_valid:
            if check.error and check.error.endswith("not supported"):
                errors.append(check.error)
            else:
                errors.append(f"Invalid answer for question {question_id}: {check.error}")
            continue

        processed.append(new_answer_record(question_id, check.normalized_answer))

    return BatchValidation(is_valid=not errors, errors=errors, processed_answers=processed)


def score_answer(answer: Dict[str, Any], questions: Sequence[QuizQuestion]) -> Dict[str, Any]:
    """
    Score one stored answer. Unscoreable answers get zero with an explanation
    instead of failing the whole attempt.
    """
    question = find_question(questions, answer.get("question_id"))
    if not question:
        return {**answer, "is_correct": False, "score": 0, "feedback": "Question not found"}

    provider = QuestionProviderFactory.get_provider(question.type)
    if not provider:
        return {**answer, "is_correct": False, "score": 0, "feedback": "Question type not supported"}

    question_score = provider.calculate_score(answer.get("answer"), question)
    is_correct = question_score > 0

    return {
        **answer,
        "is_correct": is_correct,
        "score": question_score,
        "feedback": "Correct!" if is_correct else "Incorrect",
    }


def grade_answers(
    answers: Sequence[Dict[str, Any]],
    questions: Sequence[QuizQuestion],
) -> Tuple[float, List[Dict[str, Any]]]:
    """
    Scores every answer of an attempt and returns:
    - total_score
    - list of graded answer records
    """
    graded = [score_answer(dict(answer), questions) for answer in answers]
    total_score = sum(answer["score"] for answer in graded)
    return total_score, graded


def total_possible_points(questions: Sequence[QuizQuestion]) -> int:
    return sum(question_points(q) for q in questions)


def calculate_attempt_result(
    total_score: float,
    questions: Sequence[QuizQuestion],
    passing_score: Optional[int] = None,
) -> AttemptResult:
    possible = total_possible_points(questions)
    percentage = (total_score / possible) * 100 if possible > 0 else 0
    threshold = passing_score if passing_score is not None else DEFAULT_PASSING_SCORE

    return AttemptResult(
        score=total_score,
        percentage_score=round(percentage, 2),
        passed=percentage >= threshold,
    )
