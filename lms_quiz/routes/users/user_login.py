import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import datetime

from lms_quiz.database import get_db
from lms_quiz.exceptions import AuthenticationException
from lms_quiz.models import Organization, User
from lms_quiz.auth.dependencies import get_current_domain
from lms_quiz.auth.password_security import hash_password, password_needs_rehash, verify_password
from lms_quiz.auth.jwt import create_access_token, create_refresh_token, token_claims_for
from lms_quiz.schemas.user import TokenResponse, UserLoginRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["User Login"])


@router.post("/user/login", response_model=TokenResponse)
async def user_login(
    request: UserLoginRequest,
    org: Organization = Depends(get_current_domain),
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate a user of the organization served on this domain.
    Returns access and refresh JWT tokens on success.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(
        select(User).where(User.email == request.email, User.org_id == org.id)
    )
    user = result.scalars().first()

    if not user or not user.is_active or not verify_password(request.password, user.password_hash):
        logger.warning("Failed login for %s on %s", request.email, org.domain)
        raise AuthenticationException("Invalid email or password")

    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(request.password)

    user.last_login = datetime.utcnow()
    await db.commit()

    claims = token_claims_for(user)
    return TokenResponse(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
        role=user.role.value,
    )
