import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from uuid import UUID

from lms_quiz.database import get_db
from lms_quiz.auth.dependencies import ActionContext, is_teacher
from lms_quiz.auth.course_access import check_quiz_management_access
from lms_quiz.auth.permissions import check_permission, is_admin
from lms_quiz.exceptions import AuthorizationException, ConflictException, NotFoundException, ValidationException
from lms_quiz.helpers.question_providers import QuestionProviderFactory
from lms_quiz.models import Course, Permission, PublicationStatus, Quiz, QuizAttempt, QuizQuestion
from lms_quiz.schemas.quiz import (
    QuizCreate,
    QuizCreateResponse,
    QuizManagementView,
    QuizQuestionCreate,
    QuizQuestionRead,
    QuizUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/teacher/quiz",
    tags=["Teacher Quiz Endpoints"]
)


def build_question(ctx: ActionContext, quiz: Quiz, question_in: QuizQuestionCreate, position: int) -> QuizQuestion:
    """Validate a question definition through its provider and build the row."""
    data = question_in.model_dump()
    validation = QuestionProviderFactory.validate_question(data)
    if not validation.is_valid:
        raise ValidationException(
            f"Question '{question_in.text}': {', '.join(validation.errors)}"
        )

    settings = QuestionProviderFactory.get_default_settings(question_in.type)
    settings.pop("points", None)
    settings.update(question_in.settings)

    return QuizQuestion(
        org_id=ctx.org_id,
        quiz_id=quiz.id,
        position=position,
        type=question_in.type,
        text=question_in.text,
        points=question_in.points,
        explanation=question_in.explanation,
        options=[opt.model_dump() for opt in question_in.options],
        correct_answers=list(question_in.correct_answers),
        settings=settings,
    )


async def find_managed_quiz(ctx: ActionContext, quiz_id: UUID, db: AsyncSession, with_questions: bool = False) -> Quiz:
    query = select(Quiz).where(Quiz.id == quiz_id, Quiz.org_id == ctx.org_id)
    if with_questions:
        query = query.options(selectinload(Quiz.questions))
    result = await db.execute(query)
    quiz = result.scalar_one_or_none()

    if not quiz:
        raise NotFoundException("Quiz", quiz_id)

    await check_quiz_management_access(ctx, quiz, db)
    return quiz


async def quiz_view(quiz_id: UUID, db: AsyncSession) -> QuizManagementView:
    result = await db.execute(
        select(Quiz)
        .options(selectinload(Quiz.questions))
        .where(Quiz.id == quiz_id)
        .execution_options(populate_existing=True)
    )
    return QuizManagementView.model_validate(result.scalar_one())


@router.post(
    "/create-quiz/{course_id}",
    response_model=QuizCreateResponse,
    status_code=201
)
async def create_quiz(
    course_id: UUID,
    quiz_in: QuizCreate,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    # --------------------------
    # Fetch course
    # --------------------------
    result = await db.execute(
        select(Course).where(Course.id == course_id, Course.org_id == ctx.org_id)
    )
    course = result.scalar_one_or_none()

    if not course:
        raise NotFoundException("Course", course_id)

    if (
        course.owner_id != ctx.user.id
        and not is_admin(ctx.user)
        and not check_permission(ctx.user.permissions, [Permission.MANAGE_ANY_COURSE])
    ):
        raise AuthorizationException("Only the course owner can create quizzes")

    # --------------------------
    # Create quiz
    # --------------------------
    quiz = Quiz(
        org_id=ctx.org_id,
        course_id=course.id,
        owner_id=ctx.user.id,
        title=quiz_in.title,
        description=quiz_in.description,
        time_limit=quiz_in.time_limit,
        max_attempts=quiz_in.max_attempts,
        passing_score=quiz_in.passing_score,
        publication_status=quiz_in.publication_status,
        total_points=0,
    )

    db.add(quiz)
    await db.flush()

    # --------------------------
    # Create questions
    # --------------------------
    for position, question_in in enumerate(quiz_in.questions):
        db.add(build_question(ctx, quiz, question_in, position))
        quiz.total_points += question_in.points

    await db.commit()
    await db.refresh(quiz)

    logger.info("Quiz %s created in course %s by %s", quiz.id, course.id, ctx.user.id)
    return QuizCreateResponse(
        id=quiz.id,
        title=quiz.title,
        total_points=quiz.total_points,
        question_count=len(quiz_in.questions),
        publication_status=quiz.publication_status,
    )


@router.patch("/update-quiz/{quiz_id}", response_model=QuizManagementView)
async def update_quiz(
    quiz_id: UUID,
    quiz_in: QuizUpdate,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    quiz = await find_managed_quiz(ctx, quiz_id, db)

    for field, value in quiz_in.model_dump(exclude_unset=True).items():
        setattr(quiz, field, value)

    await db.commit()
    return await quiz_view(quiz.id, db)


@router.post("/archive-quiz/{quiz_id}", response_model=QuizManagementView)
async def archive_quiz(
    quiz_id: UUID,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    quiz = await find_managed_quiz(ctx, quiz_id, db)
    quiz.publication_status = PublicationStatus.ARCHIVED
    await db.commit()

    logger.info("Quiz %s archived by %s", quiz.id, ctx.user.id)
    return await quiz_view(quiz.id, db)


@router.delete("/delete-quiz/{quiz_id}", status_code=204)
async def delete_quiz(
    quiz_id: UUID,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    quiz = await find_managed_quiz(ctx, quiz_id, db, with_questions=True)

    # --------------------------
    # Block deletion once attempted
    # --------------------------
    attempt_count = await db.scalar(
        select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz.id)
    )
    if attempt_count:
        raise ConflictException("Cannot delete quiz after students have attempted it")

    await db.delete(quiz)
    await db.commit()

    return None


@router.post(
    "/add-question/{quiz_id}",
    response_model=QuizQuestionRead,
    status_code=201,
)
async def add_quiz_question(
    quiz_id: UUID,
    question_in: QuizQuestionCreate,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    quiz = await find_managed_quiz(ctx, quiz_id, db)

    last_position = await db.scalar(
        select(func.max(QuizQuestion.position)).where(QuizQuestion.quiz_id == quiz.id)
    )
    position = 0 if last_position is None else last_position + 1

    question = build_question(ctx, quiz, question_in, position)
    db.add(question)
    quiz.total_points = (quiz.total_points or 0) + question_in.points

    await db.commit()
    await db.refresh(question)
    return QuizQuestionRead.model_validate(question)


@router.delete("/remove-question/{quiz_id}/{question_id}", response_model=QuizManagementView)
async def remove_quiz_question(
    quiz_id: UUID,
    question_id: UUID,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    quiz = await find_managed_quiz(ctx, quiz_id, db)

    result = await db.execute(
        select(QuizQuestion).where(
            QuizQuestion.id == question_id,
            QuizQuestion.quiz_id == quiz.id,
            QuizQuestion.org_id == ctx.org_id,
        )
    )
    question = result.scalar_one_or_none()
    if not question:
        raise NotFoundException("Question", question_id)

    quiz.total_points = max((quiz.total_points or 0) - (question.points or 0), 0)
    await db.delete(question)
    await db.commit()

    return await quiz_view(quiz.id, db)


@router.get("/quiz-details/{quiz_id}", response_model=QuizManagementView)
async def get_quiz_details_teacher(
    quiz_id: UUID,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    quiz = await find_managed_quiz(ctx, quiz_id, db, with_questions=True)
    return QuizManagementView.model_validate(quiz)
