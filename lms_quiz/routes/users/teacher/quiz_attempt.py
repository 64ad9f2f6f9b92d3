from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lms_quiz.database import get_db
from lms_quiz.auth.dependencies import ActionContext, get_action_context, can_manage_any_course
from lms_quiz.helpers import quiz_attempt_actions as actions
from lms_quiz.models import QuizAttemptStatus
from lms_quiz.schemas.quiz_attempt import (
    FeedbackRequest,
    FeedbackResponse,
    QuizAttemptDetails,
    QuizAttemptListResponse,
    QuizAttemptResult,
)

router = APIRouter(
    prefix="/teacher/quiz-attempt",
    tags=["Teacher Quiz Attempt Endpoints"]
)


@router.get("/list-attempts", response_model=QuizAttemptListResponse)
async def list_quiz_attempts(
    quiz_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    status: Optional[QuizAttemptStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    ctx: ActionContext = Depends(can_manage_any_course),
    db: AsyncSession = Depends(get_db),
):
    return await actions.list_quiz_attempts(
        ctx, db,
        quiz_id=quiz_id,
        user_id=user_id,
        status=status,
        skip=skip,
        limit=limit,
    )


@router.get("/attempt-details/{attempt_id}", response_model=QuizAttemptDetails)
async def get_quiz_attempt_details(
    attempt_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.get_quiz_attempt_details(ctx, db, attempt_id)


@router.post("/regrade/{attempt_id}", response_model=QuizAttemptResult)
async def regrade_quiz_attempt(
    attempt_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.regrade_quiz_attempt(ctx, db, attempt_id)


@router.post("/feedback/{attempt_id}", response_model=FeedbackResponse)
async def save_teacher_feedback(
    attempt_id: UUID,
    payload: FeedbackRequest,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.save_teacher_feedback(
        ctx, db, attempt_id, payload.question_id, payload.feedback
    )
