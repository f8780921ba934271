"""
Failure kinds surfaced by the auth core.

Each kind is an HTTPException so services can raise it directly and
FastAPI renders it as {"detail": ...} with the matching status code.
Anything outside this list is reported to clients as InternalError.
"""

from fastapi import HTTPException
from starlette import status


class AuthError(HTTPException):
    """Base class for every failure kind the auth core reports."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class ValidationFailed(AuthError):
    """Malformed or missing input, or a dead single-use token."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class Unauthorized(AuthError):
    """Bad credentials or token. The message is uniform across causes."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class NotFound(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(AuthError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "An account with this email already exists"


class AlreadyVerified(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Email already verified"


class InternalError(AuthError):
    """Store, mailer or identity-provider failure. Never carries internals."""


class TooManyRequests(AuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many requests, please try again later"
