from contextlib import contextmanager
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from core.errors import TooManyRequests
from services.token_service import TokenService
from utils.logger import get_logger

logger = get_logger(__name__)

# Limits per route group
AUTH_LIMIT = "5 per 15 minutes"
EMAIL_LIMIT = "1 per minute"
DEFAULT_LIMIT = "100 per 15 minutes"


def get_user_id(request: Request):
    authorization = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        user_id = TokenService.verify_access_token(authorization[len("Bearer "):])
        if user_id:
            return user_id

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_user_id,
    default_limits=[DEFAULT_LIMIT],
    enabled=settings.ENV != "testing"
)


class FailedAttemptLimit:
    """
    A limit that only failed requests count against.

    Successful requests are free, so a user who signs in correctly is never
    throttled. Once the failures in the window reach the limit, every
    request in the group is refused until the window rolls over. Counters
    live in the limiter's storage and are keyed like the limiter's own.
    """

    def __init__(self, limit_value: str, scope: str, detail: str):
        self.item = parse(limit_value)
        self.scope = scope
        self.detail = detail

    @contextmanager
    def attempt(self, request: Request):
        if not limiter.enabled:
            yield
            return

        key = get_user_id(request)
        if not limiter.limiter.test(self.item, key, self.scope):
            logger.warning(
                "Rate limit exceeded",
                extra={"scope": self.scope, "limit": str(self.item), "path": request.url.path}
            )
            raise TooManyRequests(self.detail)

        try:
            yield
        except Exception:
            limiter.limiter.hit(self.item, key, self.scope)
            raise


# Shared by sign-up, sign-in, Google sign-in and reset requests
auth_attempts = FailedAttemptLimit(
    AUTH_LIMIT,
    scope="auth",
    detail="Too many authentication attempts, please try again later"
)
