import secrets
from datetime import timedelta
from jose import jwt, JWTError
from sqlalchemy.orm import Session
from core.config import settings
from services.token_store import TokenStore
from utils.clock import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)


class RefreshTokenService:
    """
    Issues, validates and revokes long-lived refresh tokens.

    A refresh token is a JWT signed with REFRESH_SECRET_KEY that carries
    a random jti, so two tokens never collide even for the same user in
    the same second. The JWT alone is not enough: a matching live row in
    the token store is required too.
    """

    @staticmethod
    def _encode(user_id: str, expires_delta: timedelta) -> str:
        now = utcnow()
        payload = {
            "sub": str(user_id),
            "type": "refresh",
            "jti": secrets.token_urlsafe(32),
            "iat": now,
            "exp": now + expires_delta
        }
        return jwt.encode(payload, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def _decode(token: str) -> dict | None:
        try:
            payload = jwt.decode(token, settings.REFRESH_SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != "refresh" or not payload.get("sub") or not payload.get("jti"):
            return None

        return payload

    @staticmethod
    def issue(user_id: str, db: Session, expires_delta: timedelta = None) -> str:
        """
        Mints a refresh token for user_id and persists its row.

        Args:
            user_id: Owning user's ID
            db: Database session
            expires_delta: Session lifetime (default: REFRESH_TOKEN_EXPIRE_DAYS)
        """
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        token = RefreshTokenService._encode(user_id, expires_delta)
        TokenStore.add(db, user_id, token, utcnow() + expires_delta)
        return token

    @staticmethod
    def validate(token: str, db: Session) -> str | None:
        """
        Returns the owning user id, or None.

        Malformed, badly signed, expired, revoked and unknown tokens all
        produce the same None so callers cannot tell them apart.
        """
        if not token:
            return None

        payload = RefreshTokenService._decode(token)
        if payload is None:
            return None

        record = TokenStore.find_active(db, token, payload["sub"])
        if record is None:
            logger.debug("Refresh token has no live row", extra={"user_id": payload["sub"]})
            return None

        return record.user_id

    @staticmethod
    def rotate(token: str, db: Session) -> tuple[str, str] | None:
        """
        Exchanges a live refresh token for a new one.

        The old row is claimed with a conditional update first, so of two
        concurrent rotations of the same token only one gets a new token.
        Returns (user_id, new_token) or None.
        """
        user_id = RefreshTokenService.validate(token, db)
        if user_id is None:
            return None

        if not TokenStore.mark_revoked(db, token, only_if_active=True):
            return None

        return user_id, RefreshTokenService.issue(user_id, db)

    @staticmethod
    def revoke(token: str, db: Session) -> None:
        """
        Revokes a single refresh token (sign-out).

        Idempotent: unknown or already-revoked tokens are a no-op and an
        existing revoked_at is never overwritten.
        """
        if not token:
            return
        TokenStore.mark_revoked(db, token)

    @staticmethod
    def revoke_all(user_id: str, db: Session) -> int:
        """Revokes every active refresh token of a user. Returns how many were revoked."""
        revoked = TokenStore.mark_all_revoked(db, user_id)
        logger.info("Revoked all refresh tokens", extra={"user_id": user_id, "count": revoked})
        return revoked
