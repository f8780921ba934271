from datetime import timedelta
from jose import jwt, JWTError
from core.config import settings
from utils.clock import utcnow


class TokenService:
    """
    Signs and verifies short-lived access tokens.

    Access tokens are stateless: verification checks the signature, the
    token type and the expiry, nothing else. A revoked session therefore
    keeps working until its access token expires
    (ACCESS_TOKEN_EXPIRE_MINUTES); revocation takes effect at refresh.
    """

    @staticmethod
    def create_access_token(user_id: str, expires_delta: timedelta = None) -> str:
        """
        Creates a JWT access token for user_id.

        Args:
            user_id: Owning user's ID
            expires_delta: Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        now = utcnow()
        payload = {
            "sub": str(user_id),
            "type": "access",
            "iat": now,
            "exp": now + expires_delta
        }

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def verify_access_token(token: str) -> str | None:
        """Returns the user id bound to token, or None if it is not a live access token."""
        if not token:
            return None

        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != "access":
            return None

        return payload.get("sub") or None
