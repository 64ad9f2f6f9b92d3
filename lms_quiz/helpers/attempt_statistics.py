from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms_quiz.models import QuizAttempt, QuizAttemptStatus


FINISHED_STATUSES = (QuizAttemptStatus.COMPLETED, QuizAttemptStatus.GRADED)


async def get_user_attempts(quiz_id: UUID, user_id: UUID, org_id: UUID, db: AsyncSession):
    # Newest first
    result = await db.execute(
        select(QuizAttempt)
        .options(selectinload(QuizAttempt.quiz))
        .where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user_id,
            QuizAttempt.org_id == org_id,
        )
        .order_by(QuizAttempt.created_at.desc())
    )
    return result.scalars().all()


def summarize_attempts(attempts: Sequence[QuizAttempt]) -> dict:
    """Roll a learner's attempts at one quiz up into best/average percentages.

    `attempts` must be ordered newest first; the first one is reported as the
    last attempt whatever its status.
    """
    finished = [a for a in attempts if a.status in FINISHED_STATUSES]
    percentages = [a.percentage_score or 0 for a in finished]

    best_score = max(percentages) if percentages else 0
    average_score = round(sum(percentages) / len(percentages), 2) if percentages else 0

    return {
        "total_attempts": len(attempts),
        "completed_attempts": len(finished),
        "best_score": best_score,
        "average_score": average_score,
        "last_attempt": attempts[0] if attempts else None,
    }


async def get_attempt_statistics(quiz_id: UUID, user_id: UUID, org_id: UUID, db: AsyncSession) -> dict:
    attempts = await get_user_attempts(quiz_id, user_id, org_id, db)
    return summarize_attempts(attempts)
