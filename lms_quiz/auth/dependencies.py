from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from jose import JWTError
import logging
import uuid


from lms_quiz.database import get_db
from lms_quiz.exceptions import AuthenticationException
from lms_quiz.models import User, UserRole, Organization, Permission
from lms_quiz.auth.jwt import verify_token
from lms_quiz.auth.permissions import check_permission

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer()


class ActionContext:
    """The authenticated caller together with the organization the request is scoped to."""

    def __init__(self, user: User, org: Organization):
        self.user = user
        self.org = org

    @property
    def org_id(self) -> uuid.UUID:
        return self.org.id


def request_domain(request: Request) -> str:
    host = request.headers.get("host", "")
    return host.split(":", 1)[0].lower()


async def get_current_domain(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Organization:
    """
    Resolve the organization served on the request's host.
    Raises 404 when no organization owns that domain.
    """
    domain = request_domain(request)
    result = await db.execute(select(Organization).where(Organization.domain == domain))
    org = result.scalars().first()
    if not org:
        raise HTTPException(status_code=404, detail="Domain not found")
    return org


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Load the user named by the bearer access token.
    Raises 401 for a bad token, an unknown or inactive user, or a token
    issued in a different organization than the user's.
    """
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
        user_id = uuid.UUID(payload["user_id"])
        token_org_id = uuid.UUID(payload["org_id"])
    except (JWTError, ValueError):
        raise AuthenticationException("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()
    if not user or not user.is_active:
        raise AuthenticationException("User not found")
    if user.org_id != token_org_id:
        logger.warning("Token for user %s carries foreign organization %s", user.id, token_org_id)
        raise AuthenticationException("Invalid or expired token")
    return user


async def get_action_context(
    current_user: User = Depends(get_current_user),
    org: Organization = Depends(get_current_domain),
) -> ActionContext:
    """
    Pair the caller with the request's organization.
    A user may only act inside the organization they belong to.
    """
    if current_user.org_id != org.id:
        logger.warning("User %s rejected on foreign domain %s", current_user.id, org.domain)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not belong to this organization"
        )
    return ActionContext(user=current_user, org=org)


async def is_teacher(ctx: ActionContext = Depends(get_action_context)) -> ActionContext:
    """
    Allow instructors, admins, and anyone allowed to manage courses.
    """
    user = ctx.user
    if user.role in (UserRole.INSTRUCTOR, UserRole.ADMIN):
        return ctx
    if check_permission(user.permissions, [Permission.MANAGE_COURSE, Permission.MANAGE_ANY_COURSE]):
        return ctx
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only teachers can access this resource"
    )


async def can_manage_any_course(ctx: ActionContext = Depends(get_action_context)) -> ActionContext:
    if not check_permission(ctx.user.permissions, [Permission.MANAGE_ANY_COURSE]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to perform this action"
        )
    return ctx
