from typing import Optional

from fastapi import HTTPException, status


class NotFoundException(HTTPException):
    """A resource is absent or lives outside the caller's organization."""

    def __init__(self, resource: str, resource_id: Optional[object] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ConflictException(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)


class ValidationException(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class AuthorizationException(HTTPException):
    def __init__(self, message: str = "You are not authorized to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class AuthenticationException(HTTPException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


def error_message(exc: Exception) -> str:
    """Human readable message for any exception raised inside an action."""
    if isinstance(exc, HTTPException):
        return str(exc.detail)
    return str(exc)
