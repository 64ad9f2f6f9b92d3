import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from lms_quiz.exceptions import AuthorizationException
from lms_quiz.models import Course, Permission, course_students
from lms_quiz.auth.permissions import check_permission, is_admin

logger = logging.getLogger(__name__)


async def is_enrolled(course_id: UUID, student_id: UUID, db: AsyncSession) -> bool:
    result = await db.execute(
        select(course_students).where(
            course_students.c.course_id == course_id,
            course_students.c.student_id == student_id,
        )
    )
    return result.first() is not None


async def check_enrollment_access(ctx, course_id: UUID, db: AsyncSession) -> bool:
    """Allows access if the user is enrolled OR may manage courses."""

    if await is_enrolled(course_id, ctx.user.id, db):
        return True

    if check_permission(ctx.user.permissions, [Permission.MANAGE_COURSE, Permission.MANAGE_ANY_COURSE]):
        return True

    raise AuthorizationException("You are not enrolled in this course")


async def check_quiz_management_access(ctx, quiz, db: AsyncSession) -> bool:
    """Course managers, admins, the quiz owner and the course owner may edit a quiz."""
    user = ctx.user
    if check_permission(user.permissions, [Permission.MANAGE_COURSE, Permission.MANAGE_ANY_COURSE]):
        return True
    if quiz.owner_id == user.id or is_admin(user):
        return True

    result = await db.execute(
        select(Course).where(
            Course.id == quiz.course_id,
            Course.org_id == ctx.org_id,
        )
    )
    course = result.scalar_one_or_none()
    if course and course.owner_id == user.id:
        return True

    raise AuthorizationException()


def user_has_attempt_permission(ctx, attempt, quiz) -> bool:
    """
    Gate for views exposing answer content and correctness.

    Passes for course-wide managers, admins, the learner who owns the attempt,
    the quiz owner, and the grader assigned to the attempt.
    """
    user = ctx.user
    if check_permission(user.permissions, [Permission.MANAGE_ANY_COURSE]):
        return True
    if is_admin(user):
        return True
    if attempt.user_id == user.id:
        return True
    if quiz.owner_id == user.id:
        return True
    if attempt.graded_by_id is not None and attempt.graded_by_id == user.id:
        return True

    logger.warning("User %s denied access to attempt %s", user.id, attempt.id)
    raise AuthorizationException()
