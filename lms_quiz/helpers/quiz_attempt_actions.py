"""
Quiz attempt lifecycle.

An attempt moves in_progress -> completed -> graded. Start, navigate, submit
and regrade report failures as ``success=False`` results so callers only check
one flag; read operations raise and let FastAPI turn the error into a response.

Learner operations scope every query by the caller's own user id, so one
learner can never reach another learner's attempt. Attempt saves are
last-write-wins: there is no version check on the attempt row.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms_quiz.auth.course_access import check_enrollment_access, user_has_attempt_permission
from lms_quiz.auth.permissions import check_permission
from lms_quiz.exceptions import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    ValidationException,
    error_message,
)
from lms_quiz.helpers import attempt_statistics
from lms_quiz.helpers.attempt_statistics import FINISHED_STATUSES, get_user_attempts
from lms_quiz.helpers.question_providers import QuestionProviderFactory, question_points
from lms_quiz.helpers.quiz_answer_evaluator import (
    DEFAULT_PASSING_SCORE,
    calculate_attempt_result,
    grade_answers,
    new_answer_record,
    validate_and_process_answers,
    validate_answer,
)
from lms_quiz.models import (
    Permission,
    PublicationStatus,
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizAttemptStatus,
    QuizQuestion,
)
from lms_quiz.schemas.quiz_attempt import (
    AttemptAnswerView,
    AttemptQuestionView,
    AttemptStatistics,
    FeedbackResponse,
    NavigateRequest,
    NavigateResponse,
    OptionView,
    QuizAttemptDetails,
    QuizAttemptListResponse,
    QuizAttemptRead,
    QuizAttemptResult,
    QuizQuestionsView,
    TargetQuestionInfo,
)

logger = logging.getLogger(__name__)


# ---------------------------
# Helpers
# ---------------------------
def _as_uuid(value, resource: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise NotFoundException(resource, value)


async def _find_quiz(ctx, quiz_id, db: AsyncSession, published_only: bool = False) -> Quiz:
    query = select(Quiz).where(
        Quiz.id == _as_uuid(quiz_id, "Quiz"),
        Quiz.org_id == ctx.org_id,
    )
    if published_only:
        query = query.where(Quiz.publication_status == PublicationStatus.PUBLISHED)

    result = await db.execute(query)
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise NotFoundException("Quiz", quiz_id)
    return quiz


async def _load_questions(ctx, quiz: Quiz, db: AsyncSession) -> List[QuizQuestion]:
    result = await db.execute(
        select(QuizQuestion)
        .where(
            QuizQuestion.quiz_id == quiz.id,
            QuizQuestion.org_id == ctx.org_id,
        )
        .order_by(QuizQuestion.position)
    )
    return list(result.scalars().all())


async def _validate_attempt(ctx, attempt_id, db: AsyncSession) -> QuizAttempt:
    """Load the caller's own attempt and make sure it can still be changed."""
    result = await db.execute(
        select(QuizAttempt).where(
            QuizAttempt.id == _as_uuid(attempt_id, "Quiz attempt"),
            QuizAttempt.user_id == ctx.user.id,
            QuizAttempt.org_id == ctx.org_id,
        )
    )
    attempt = result.scalar_one_or_none()

    if not attempt:
        raise NotFoundException("Quiz attempt", attempt_id)

    if attempt.status != QuizAttemptStatus.IN_PROGRESS:
        raise ConflictException("Attempt is not in progress")

    if attempt.expires_at and datetime.utcnow() > attempt.expires_at:
        raise ConflictException("Attempt has expired")

    return attempt


def _upsert_answer(answers: Sequence[Dict[str, Any]], question_id, answer: Any) -> List[Dict[str, Any]]:
    question_id = str(question_id)
    updated = [dict(a) for a in answers or []]
    for record in updated:
        if record.get("question_id") == question_id:
            record["answer"] = answer
            return updated
    updated.append(new_answer_record(question_id, answer))
    return updated


def _answer_for(answers: Sequence[Dict[str, Any]], question_id) -> Any:
    question_id = str(question_id)
    for record in answers or []:
        if record.get("question_id") == question_id:
            return record.get("answer")
    return None


async def _failure(db: AsyncSession, action: str, attempt_id, exc: Exception) -> str:
    await db.rollback()
    message = error_message(exc)
    if isinstance(exc, (NotFoundException, ConflictException, ValidationException, AuthorizationException)):
        logger.warning("%s failed for %s: %s", action, attempt_id, message)
    else:
        logger.error("%s failed for %s", action, attempt_id, exc_info=True)
    return message


def _grade(attempt: QuizAttempt, quiz: Quiz, questions: Sequence[QuizQuestion], answers=None):
    total_score, graded_answers = grade_answers(
        answers if answers is not None else attempt.answers or [],
        questions,
    )
    result = calculate_attempt_result(total_score, questions, quiz.passing_score)
    attempt.answers = graded_answers
    attempt.score = result.score
    attempt.percentage_score = result.percentage_score
    attempt.passed = result.passed
    return result


# ---------------------------
# Start
# ---------------------------
async def start_quiz_attempt(ctx, db: AsyncSession, quiz_id) -> QuizAttemptResult:
    try:
        quiz = await _find_quiz(ctx, quiz_id, db, published_only=True)

        await check_enrollment_access(ctx, quiz.course_id, db)

        result = await db.execute(
            select(QuizAttempt).where(
                QuizAttempt.quiz_id == quiz.id,
                QuizAttempt.user_id == ctx.user.id,
                QuizAttempt.org_id == ctx.org_id,
                QuizAttempt.status == QuizAttemptStatus.IN_PROGRESS,
            )
        )
        active_attempt = result.scalars().first()

        if active_attempt:
            logger.info("Resuming attempt %s for user %s", active_attempt.id, ctx.user.id)
            return QuizAttemptResult(
                success=True,
                attempt_id=str(active_attempt.id),
                status=active_attempt.status.value,
                message="Resuming existing attempt",
            )

        if quiz.max_attempts and quiz.max_attempts > 0:
            attempt_count = await db.scalar(
                select(func.count(QuizAttempt.id)).where(
                    QuizAttempt.quiz_id == quiz.id,
                    QuizAttempt.user_id == ctx.user.id,
                    QuizAttempt.org_id == ctx.org_id,
                    QuizAttempt.status.in_(FINISHED_STATUSES),
                )
            )
            if attempt_count >= quiz.max_attempts:
                raise ConflictException("Maximum attempts reached for this quiz")

        # Time limits are stored on the quiz but attempts are not given an expiry yet.
        attempt = QuizAttempt(
            org_id=ctx.org_id,
            quiz_id=quiz.id,
            user_id=ctx.user.id,
            status=QuizAttemptStatus.IN_PROGRESS,
            started_at=datetime.utcnow(),
            expires_at=None,
            answers=[],
        )
        db.add(attempt)
        await db.commit()
        await db.refresh(attempt)

        logger.info("Started attempt %s on quiz %s for user %s", attempt.id, quiz.id, ctx.user.id)
        return QuizAttemptResult(
            success=True,
            attempt_id=str(attempt.id),
            status=attempt.status.value,
            message="Quiz attempt started successfully",
        )
    except Exception as e:
        message = await _failure(db, "Start", quiz_id, e)
        return QuizAttemptResult(
            success=False,
            attempt_id="",
            status=QuizAttemptStatus.ABANDONED.value,
            message=message or "Failed to start quiz attempt",
        )


# ---------------------------
# Read
# ---------------------------
async def get_quiz_attempt(ctx, db: AsyncSession, attempt_id) -> QuizAttemptRead:
    result = await db.execute(
        select(QuizAttempt)
        .options(selectinload(QuizAttempt.quiz))
        .where(
            QuizAttempt.id == _as_uuid(attempt_id, "Quiz attempt"),
            QuizAttempt.user_id == ctx.user.id,
            QuizAttempt.org_id == ctx.org_id,
        )
    )
    attempt = result.scalar_one_or_none()

    if not attempt:
        raise NotFoundException("Quiz attempt", attempt_id)

    return QuizAttemptRead.model_validate(attempt)


async def get_quiz_attempt_details(ctx, db: AsyncSession, attempt_id) -> QuizAttemptDetails:
    """Full graded view of an attempt: every question with its answer key and every answer."""
    result = await db.execute(
        select(QuizAttempt).where(
            QuizAttempt.id == _as_uuid(attempt_id, "Quiz attempt"),
            QuizAttempt.org_id == ctx.org_id,
        )
    )
    attempt = result.scalar_one_or_none()

    if not attempt:
        raise NotFoundException("Quiz attempt", attempt_id)

    quiz = await _find_quiz(ctx, attempt.quiz_id, db)

    user_has_attempt_permission(ctx, attempt, quiz)

    questions = await _load_questions(ctx, quiz, db)

    questions_data = [
        AttemptQuestionView(
            id=str(q.id),
            text=q.text,
            type=q.type.value,
            points=question_points(q),
            options=(
                [
                    OptionView(
                        uid=opt["uid"],
                        text=opt["text"],
                        is_correct=opt.get("is_correct", False),
                        order=opt.get("order"),
                    )
                    for opt in q.options or []
                ]
                if q.type == QuestionType.MULTIPLE_CHOICE
                else None
            ),
            correct_answers=[str(a) for a in q.correct_answers or []],
        )
        for q in questions
    ]

    answers_data = [
        AttemptAnswerView(
            question_id=str(a.get("question_id")),
            user_answer=a.get("answer"),
            is_correct=a.get("is_correct"),
            score=a.get("score") or 0,
            feedback=a.get("feedback") or "",
            time_spent=a.get("time_spent") or 0,
        )
        for a in attempt.answers or []
    ]

    return QuizAttemptDetails(
        attempt_id=str(attempt.id),
        quiz_title=quiz.title,
        total_points=quiz.total_points or 0,
        passing_score=quiz.passing_score if quiz.passing_score is not None else DEFAULT_PASSING_SCORE,
        score=attempt.score or 0,
        percentage_score=attempt.percentage_score or 0,
        passed=bool(attempt.passed),
        status=attempt.status.value,
        started_at=attempt.started_at,
        completed_at=attempt.completed_at,
        questions=questions_data,
        answers=answers_data,
    )


# ---------------------------
# Teacher feedback
# ---------------------------
async def save_teacher_feedback(ctx, db: AsyncSession, attempt_id, question_id: str, feedback: str) -> FeedbackResponse:
    if not check_permission(ctx.user.permissions, [Permission.MANAGE_COURSE, Permission.MANAGE_ANY_COURSE]):
        raise AuthorizationException("You don't have permission to leave feedback")

    result = await db.execute(
        select(QuizAttempt).where(
            QuizAttempt.id == _as_uuid(attempt_id, "Quiz attempt"),
            QuizAttempt.org_id == ctx.org_id,
        )
    )
    attempt = result.scalar_one_or_none()

    if not attempt:
        raise NotFoundException("Quiz attempt", attempt_id)

    answers = [dict(a) for a in attempt.answers or []]
    record = next((a for a in answers if a.get("question_id") == str(question_id)), None)
    if record is None:
        raise NotFoundException("Answer", question_id)

    record["feedback"] = feedback
    record["graded_at"] = datetime.utcnow().isoformat()
    record["graded_by_id"] = str(ctx.user.id)

    attempt.answers = answers
    await db.commit()

    logger.info("Feedback saved on attempt %s question %s by %s", attempt.id, question_id, ctx.user.id)
    return FeedbackResponse(success=True, message="Feedback saved successfully")


# ---------------------------
# Navigate
# ---------------------------
async def navigate_quiz_question(ctx, db: AsyncSession, params: NavigateRequest) -> NavigateResponse:
    """
    Move to another question, optionally saving the answer to the one being left.

    An answer that fails validation is not saved but navigation still succeeds.
    """
    try:
        attempt = await _validate_attempt(ctx, params.attempt_id, db)
        quiz = await _find_quiz(ctx, attempt.quiz_id, db, published_only=True)
        questions = await _load_questions(ctx, quiz, db)

        if params.target_question_index < 0 or params.target_question_index >= len(questions):
            raise ValidationException("Invalid question index")

        target_question = questions[params.target_question_index]

        if params.save_answer and params.current_answer is not None:
            check = validate_answer(params.current_answer, params.current_question_id, questions)
            if check.is_valid:
                attempt.answers = _upsert_answer(
                    attempt.answers,
                    params.current_question_id,
                    check.normalized_answer,
                )
                await db.commit()
            else:
                logger.info(
                    "Answer for question %s on attempt %s not saved: %s",
                    params.current_question_id,
                    attempt.id,
                    check.error,
                )

        options = []
        if target_question.type == QuestionType.MULTIPLE_CHOICE:
            options = [
                OptionView(uid=opt["uid"], text=opt["text"], order=opt.get("order"))
                for opt in target_question.options or []
            ]

        answered_questions = [
            a["question_id"]
            for a in attempt.answers or []
            if a.get("question_id") and a.get("answer") is not None
        ]

        return NavigateResponse(
            success=True,
            message="Navigation successful",
            target_question_answer=_answer_for(attempt.answers, target_question.id),
            target_question_info=TargetQuestionInfo(
                id=str(target_question.id),
                text=target_question.text,
                type=target_question.type.value,
                points=question_points(target_question),
                options=options,
            ),
            answered_questions=answered_questions,
        )
    except (ValidationException, ConflictException, NotFoundException) as e:
        await db.rollback()
        return NavigateResponse(success=False, message=error_message(e))
    except Exception:
        await db.rollback()
        logger.error("Navigation error on attempt %s", params.attempt_id, exc_info=True)
        return NavigateResponse(
            success=False,
            message="An unexpected error occurred during navigation",
        )


# ---------------------------
# Submit
# ---------------------------
async def submit_quiz_attempt(ctx, db: AsyncSession, attempt_id, answers: Optional[Sequence[Any]] = None) -> QuizAttemptResult:
    """
    Score every answer of an in-progress attempt and close it.

    ``answers`` is an optional final batch; it is validated as a whole and
    merged into the stored answers before scoring.
    """
    try:
        attempt = await _validate_attempt(ctx, attempt_id, db)
        quiz = await _find_quiz(ctx, attempt.quiz_id, db)
        questions = await _load_questions(ctx, quiz, db)

        stored_answers = list(attempt.answers or [])
        if answers is not None:
            batch = validate_and_process_answers(answers, questions)
            if not batch.is_valid:
                raise ValidationException("; ".join(batch.errors))
            for record in batch.processed_answers:
                stored_answers = _upsert_answer(stored_answers, record["question_id"], record["answer"])

        result = _grade(attempt, quiz, questions, stored_answers)
        attempt.status = QuizAttemptStatus.COMPLETED
        attempt.completed_at = datetime.utcnow()
        if attempt.started_at:
            attempt.time_spent = max(0, int((attempt.completed_at - attempt.started_at).total_seconds()))

        await db.commit()

        logger.info(
            "Attempt %s submitted: score=%s percentage=%s passed=%s",
            attempt.id, result.score, result.percentage_score, result.passed,
        )
        return QuizAttemptResult(
            success=True,
            attempt_id=str(attempt.id),
            status=attempt.status.value,
            score=attempt.score,
            percentage_score=attempt.percentage_score,
            passed=attempt.passed,
            message="Quiz completed and graded successfully",
        )
    except Exception as e:
        message = await _failure(db, "Submit", attempt_id, e)
        return QuizAttemptResult(
            success=False,
            attempt_id=str(attempt_id),
            status=QuizAttemptStatus.ABANDONED.value,
            message=message or "Failed to submit quiz attempt",
        )


# ---------------------------
# Regrade
# ---------------------------
async def regrade_quiz_attempt(ctx, db: AsyncSession, attempt_id) -> QuizAttemptResult:
    try:
        if not check_permission(ctx.user.permissions, [Permission.MANAGE_COURSE, Permission.MANAGE_ANY_COURSE]):
            raise AuthorizationException("You don't have permission to regrade attempts")

        result = await db.execute(
            select(QuizAttempt).where(
                QuizAttempt.id == _as_uuid(attempt_id, "Quiz attempt"),
                QuizAttempt.org_id == ctx.org_id,
            )
        )
        attempt = result.scalar_one_or_none()

        if not attempt:
            raise NotFoundException("Quiz attempt", attempt_id)

        if attempt.status not in FINISHED_STATUSES:
            raise ConflictException("Only submitted attempts can be regraded")

        quiz = await _find_quiz(ctx, attempt.quiz_id, db)
        questions = await _load_questions(ctx, quiz, db)

        graded = _grade(attempt, quiz, questions)
        attempt.status = QuizAttemptStatus.GRADED
        attempt.graded_at = datetime.utcnow()

        await db.commit()

        logger.info(
            "Attempt %s regraded by %s: score=%s percentage=%s",
            attempt.id, ctx.user.id, graded.score, graded.percentage_score,
        )
        return QuizAttemptResult(
            success=True,
            attempt_id=str(attempt.id),
            status=attempt.status.value,
            score=attempt.score,
            percentage_score=attempt.percentage_score,
            passed=attempt.passed,
            message="Quiz attempt regraded successfully",
        )
    except Exception as e:
        message = await _failure(db, "Regrade", attempt_id, e)
        return QuizAttemptResult(
            success=False,
            attempt_id=str(attempt_id),
            status=QuizAttemptStatus.ABANDONED.value,
            message=message or "Failed to regrade quiz attempt",
        )


# ---------------------------
# Learner views
# ---------------------------
async def get_attempt_statistics(ctx, db: AsyncSession, quiz_id) -> AttemptStatistics:
    summary = await attempt_statistics.get_attempt_statistics(
        _as_uuid(quiz_id, "Quiz"), ctx.user.id, ctx.org_id, db
    )
    last_attempt = summary.pop("last_attempt")
    return AttemptStatistics(
        **summary,
        last_attempt=QuizAttemptRead.model_validate(last_attempt) if last_attempt else None,
    )


async def get_user_quiz_attempts(ctx, db: AsyncSession, quiz_id) -> List[QuizAttemptRead]:
    attempts = await get_user_attempts(_as_uuid(quiz_id, "Quiz"), ctx.user.id, ctx.org_id, db)
    return [QuizAttemptRead.model_validate(a) for a in attempts]


async def get_quiz_questions(ctx, db: AsyncSession, quiz_id) -> QuizQuestionsView:
    """Questions of a published quiz with every answer key removed."""
    quiz = await _find_quiz(ctx, quiz_id, db, published_only=True)
    questions = await _load_questions(ctx, quiz, db)

    processed_questions = []
    for question in questions:
        provider = QuestionProviderFactory.get_provider(question.type)
        if provider:
            processed_questions.append(provider.process_question_for_display(question, True))
            continue

        processed = QuestionProviderFactory.process_question_for_display(question.type, question)
        processed.pop("correct_answers", None)
        processed.pop("explanation", None)
        processed["options"] = [
            {k: v for k, v in opt.items() if k != "is_correct"}
            for opt in processed.get("options", [])
        ]
        processed_questions.append(processed)

    return QuizQuestionsView(
        id=quiz.id,
        title=quiz.title or "Quiz",
        description=quiz.description,
        questions=processed_questions,
    )


# ---------------------------
# Management listing
# ---------------------------
async def list_quiz_attempts(
    ctx,
    db: AsyncSession,
    quiz_id=None,
    user_id=None,
    status: Optional[QuizAttemptStatus] = None,
    skip: int = 0,
    limit: int = 20,
) -> QuizAttemptListResponse:
    filters = [QuizAttempt.org_id == ctx.org_id]
    if quiz_id:
        filters.append(QuizAttempt.quiz_id == _as_uuid(quiz_id, "Quiz"))
    if user_id:
        filters.append(QuizAttempt.user_id == _as_uuid(user_id, "User"))
    if status:
        filters.append(QuizAttempt.status == status)

    result = await db.execute(
        select(QuizAttempt)
        .options(selectinload(QuizAttempt.quiz))
        .where(*filters)
        .order_by(QuizAttempt.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    items = result.scalars().all()
    total = await db.scalar(select(func.count(QuizAttempt.id)).where(*filters))

    return QuizAttemptListResponse(
        items=[QuizAttemptRead.model_validate(a) for a in items],
        total=total or 0,
        skip=skip,
        limit=limit,
    )
