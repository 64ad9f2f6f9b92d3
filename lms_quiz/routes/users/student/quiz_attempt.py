from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms_quiz.database import get_db
from lms_quiz.auth.dependencies import ActionContext, get_action_context
from lms_quiz.helpers import quiz_attempt_actions as actions
from lms_quiz.schemas.quiz_attempt import (
    AttemptStatistics,
    NavigateRequest,
    NavigateResponse,
    QuizAttemptDetails,
    QuizAttemptRead,
    QuizAttemptResult,
    QuizQuestionsView,
    QuizSubmitRequest,
)

router = APIRouter(
    prefix="/student/quiz-attempt",
    tags=["Student Quiz Attempt Endpoints"]
)


@router.get("/questions/{quiz_id}", response_model=QuizQuestionsView)
async def get_quiz_questions(
    quiz_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.get_quiz_questions(ctx, db, quiz_id)


@router.post("/start/{quiz_id}", response_model=QuizAttemptResult)
async def start_quiz_attempt(
    quiz_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.start_quiz_attempt(ctx, db, quiz_id)


@router.post("/navigate", response_model=NavigateResponse)
async def navigate_quiz_question(
    payload: NavigateRequest,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.navigate_quiz_question(ctx, db, payload)


@router.post("/submit/{attempt_id}", response_model=QuizAttemptResult)
async def submit_quiz_attempt(
    attempt_id: UUID,
    payload: Optional[QuizSubmitRequest] = None,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    answers = payload.answers if payload else None
    return await actions.submit_quiz_attempt(ctx, db, attempt_id, answers)


@router.get("/attempt/{attempt_id}", response_model=QuizAttemptRead)
async def get_quiz_attempt(
    attempt_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.get_quiz_attempt(ctx, db, attempt_id)


@router.get("/attempt/{attempt_id}/results", response_model=QuizAttemptDetails)
async def get_my_attempt_results(
    attempt_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.get_quiz_attempt_details(ctx, db, attempt_id)


@router.get("/statistics/{quiz_id}", response_model=AttemptStatistics)
async def get_attempt_statistics(
    quiz_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.get_attempt_statistics(ctx, db, quiz_id)


@router.get("/my-attempts/{quiz_id}", response_model=List[QuizAttemptRead])
async def get_user_quiz_attempts(
    quiz_id: UUID,
    ctx: ActionContext = Depends(get_action_context),
    db: AsyncSession = Depends(get_db),
):
    return await actions.get_user_quiz_attempts(ctx, db, quiz_id)
