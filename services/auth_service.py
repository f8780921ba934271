from contextlib import contextmanager
from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from core.config import settings
from core.errors import (AlreadyVerified, InternalError, NotFound, Unauthorized,
                         ValidationFailed)
from models.users import User
from schemas.auth_schemas import UserPublic
from services.credential_store import CredentialStore
from services.email_service import send_password_reset_email, send_verification_email
from services.identity_verifier import (GoogleIdentityVerifier, IdentityVerificationError,
                                        InvalidIdentityToken)
from services.refresh_token_service import RefreshTokenService
from services.token_service import TokenService
from services.verification_service import VerificationService
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
RESET_REQUESTED = "If an account exists with this email, a password reset link has been sent"

_dummy_hash: str | None = None


def _burn_password_check(password: str) -> None:
    """Spend the same hashing time on unknown emails as on real ones."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = get_password_hash("not-a-real-password")
    verify_password(password, _dummy_hash)


def _dispatch_quietly(send, to_email: str, token: str) -> None:
    # Background mail must never fail the request that scheduled it
    try:
        send(to_email, token)
    except Exception:
        logger.error(
            "Background email dispatch failed",
            extra={"recipient": to_email, "mailer": send.__name__},
            exc_info=True
        )


@contextmanager
def _store_guard(db: Session, failure_detail: str):
    """Downgrade storage failures to InternalError without leaking details."""
    try:
        yield
    except SQLAlchemyError:
        db.rollback()
        logger.error("Storage failure", extra={"failure": failure_detail}, exc_info=True)
        raise InternalError(failure_detail)


class AuthService:
    """
    Sign-up, sign-in and session flows built on the credential, token and
    verification services. Never touches tables directly.
    """

    @staticmethod
    def _open_session(user: User, db: Session) -> dict:
        return {
            "access_token": TokenService.create_access_token(user.id),
            "refresh_token": RefreshTokenService.issue(user.id, db),
            "token_type": "bearer",
            "user": UserPublic.model_validate(user)
        }

    @staticmethod
    def sign_up(email: str, password: str, full_name: str | None, db: Session, bg: BackgroundTasks) -> dict:
        """
        Creates a local account and opens a session for it.

        Flow:
        1. Create user (unverified) with a pending verification token
        2. Schedule the verification email (fire-and-forget)
        3. Issue access + refresh tokens
        """
        with _store_guard(db, "Failed to create account"):
            user, verification_token = CredentialStore.create_local_user(email, password, full_name, db)

            bg.add_task(_dispatch_quietly, send_verification_email, user.email, verification_token)

            session = AuthService._open_session(user, db)

        logger.info("User signed up", extra={"user_id": user.id})
        return session

    @staticmethod
    def sign_in(email: str, password: str, db: Session) -> dict:
        with _store_guard(db, "Failed to sign in"):
            user = CredentialStore.find_by_email(email, db)

            if not user:
                _burn_password_check(password)
                logger.warning("Sign-in failed - user not found", extra={"email": email})
                raise Unauthorized(INVALID_CREDENTIALS)

            if not CredentialStore.verify_password(user, password):
                logger.warning("Sign-in failed - invalid password", extra={"user_id": user.id})
                raise Unauthorized(INVALID_CREDENTIALS)

            CredentialStore.update_last_login(user.id, db)
            session = AuthService._open_session(user, db)

        logger.info("User signed in", extra={"user_id": user.id})
        return session

    @staticmethod
    async def oauth_sign_in(id_token: str | None, db: Session, verifier: GoogleIdentityVerifier) -> dict:
        if not id_token:
            raise ValidationFailed("Google ID token is required")

        try:
            assertion = await verifier.verify(id_token)
        except InvalidIdentityToken as e:
            logger.warning("Google sign-in rejected", extra={"reason": str(e)})
            raise Unauthorized(str(e))
        except IdentityVerificationError:
            logger.error("Google identity verification failed", exc_info=True)
            raise InternalError("Failed to authenticate with Google")

        if not assertion.email_verified:
            logger.warning("Google sign-in with unverified email", extra={"email": assertion.email})
            raise Unauthorized("Google email not verified")

        with _store_guard(db, "Failed to authenticate with Google"):
            user = CredentialStore.find_or_create_oauth_profile(
                email=assertion.email,
                full_name=assertion.name,
                avatar_url=assertion.avatar_url,
                provider=verifier.provider,
                provider_id=assertion.subject_id,
                db=db
            )
            CredentialStore.update_last_login(user.id, db)
            session = AuthService._open_session(user, db)

        logger.info("User signed in with Google", extra={"user_id": user.id})
        return session

    @staticmethod
    def sign_out(refresh_token: str | None, db: Session) -> None:
        """Revokes the refresh token if one was given. Unknown tokens are fine."""
        if not refresh_token:
            return
        with _store_guard(db, "Failed to sign out"):
            RefreshTokenService.revoke(refresh_token, db)

    @staticmethod
    def refresh(refresh_token: str | None, db: Session) -> dict:
        """
        Mints a new access token from a live refresh token.

        The refresh token is reused until it expires or is revoked, unless
        ROTATE_REFRESH_TOKENS is on, in which case it is swapped for a new one.
        """
        if not refresh_token:
            raise ValidationFailed("Refresh token required")

        with _store_guard(db, "Failed to refresh token"):
            if settings.ROTATE_REFRESH_TOKENS:
                rotated = RefreshTokenService.rotate(refresh_token, db)
                if rotated is None:
                    raise Unauthorized(INVALID_REFRESH_TOKEN)
                user_id, new_refresh_token = rotated
                return {
                    "access_token": TokenService.create_access_token(user_id),
                    "refresh_token": new_refresh_token,
                    "token_type": "bearer"
                }

            user_id = RefreshTokenService.validate(refresh_token, db)
            if user_id is None:
                raise Unauthorized(INVALID_REFRESH_TOKEN)

        return {
            "access_token": TokenService.create_access_token(user_id),
            "token_type": "bearer"
        }

    @staticmethod
    def verify_email(token: str | None, db: Session) -> User:
        if not token:
            raise ValidationFailed("Verification token required")

        with _store_guard(db, "Failed to verify email"):
            user = VerificationService.consume_verification_token(token, db)

        if user is None:
            logger.warning("Email verification failed - invalid or expired token")
            raise ValidationFailed("Invalid or expired verification token")

        logger.info("Email verified", extra={"user_id": user.id})
        return user

    @staticmethod
    def resend_verification(user_id: str, db: Session) -> None:
        """
        Reissues the verification token and sends it right away.

        Unlike sign-up, delivery failure is reported: the user asked for
        this email explicitly.
        """
        with _store_guard(db, "Failed to send verification email"):
            user = CredentialStore.find_by_id(user_id, db)

            if not user:
                raise NotFound("User not found")

            if user.email_verified_at is not None:
                raise AlreadyVerified()

            token = VerificationService.issue_verification_token(user.id, db)

        try:
            send_verification_email(user.email, token)
        except Exception:
            logger.error("Resend verification failed", extra={"user_id": user.id}, exc_info=True)
            raise InternalError("Failed to send verification email")

        logger.info("Verification email resent", extra={"user_id": user.id})

    @staticmethod
    def request_password_reset(email: str | None, db: Session, bg: BackgroundTasks) -> str:
        """
        Always returns the same generic message whether or not the email
        belongs to an account.
        """
        if not email:
            return RESET_REQUESTED

        try:
            with _store_guard(db, "Failed to process password reset request"):
                token = VerificationService.issue_reset_token(email, db)
        except InternalError:
            # The response must not differ from the success case
            return RESET_REQUESTED

        if token is None:
            logger.info("Password reset requested for unknown email", extra={"email": email})
            return RESET_REQUESTED

        bg.add_task(_dispatch_quietly, send_password_reset_email, email, token)
        logger.info("Password reset email scheduled", extra={"email": email})
        return RESET_REQUESTED

    @staticmethod
    def confirm_password_reset(token: str | None, new_password: str | None, db: Session) -> None:
        if not token or not new_password:
            raise ValidationFailed("Token and new password required")

        with _store_guard(db, "Failed to reset password"):
            user = VerificationService.consume_reset_token(token, new_password, db)

            if user is None:
                logger.warning("Password reset failed - invalid or expired token")
                raise ValidationFailed("Invalid or expired reset token")

            if settings.REVOKE_SESSIONS_ON_PASSWORD_CHANGE:
                RefreshTokenService.revoke_all(user.id, db)

        logger.info("Password reset", extra={"user_id": user.id})

    @staticmethod
    def update_password(user_id: str, new_password: str | None, db: Session) -> None:
        if not new_password:
            raise ValidationFailed("New password required")

        with _store_guard(db, "Failed to update password"):
            if not CredentialStore.update_password(user_id, new_password, db):
                raise NotFound("User not found")

            if settings.REVOKE_SESSIONS_ON_PASSWORD_CHANGE:
                RefreshTokenService.revoke_all(user_id, db)

        logger.info("Password updated", extra={"user_id": user_id})
