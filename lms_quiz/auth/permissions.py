from typing import Iterable, Optional

from lms_quiz.models import UserRole


def check_permission(user_permissions: Optional[Iterable[str]], required: Iterable[str]) -> bool:
    """True when the user holds at least one of the required permissions."""
    held = {str(getattr(p, "value", p)) for p in (user_permissions or [])}
    return any(str(getattr(r, "value", r)) in held for r in required)


def is_admin(user) -> bool:
    return user.role == UserRole.ADMIN
