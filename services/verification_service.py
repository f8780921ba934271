from sqlalchemy.orm import Session
from core.config import settings
from models.users import User
from services.credential_store import CredentialStore, normalize_email
from utils.clock import utcnow
from utils.hashing import get_password_hash
from utils.verification import generate_token, get_token_expiry_time


class VerificationService:
    """
    Single-use, time-bounded tokens stored on the user row.

    Consumption is one conditional UPDATE (token matches AND not expired)
    that also clears the token and its expiry. Zero affected rows means
    invalid, whether the token never existed, expired, or was already
    used; concurrent consumers of one token get exactly one success.
    """

    @staticmethod
    def issue_verification_token(user_id: str, db: Session) -> str:
        """Replaces any pending verification token; only the latest one is valid."""
        token = generate_token()
        db.query(User).filter(User.id == user_id).update(
            {
                User.verification_token: token,
                User.verification_token_expires_at: get_token_expiry_time(
                    minutes=settings.VERIFICATION_TOKEN_EXPIRE_HOURS * 60
                )
            },
            synchronize_session=False
        )
        db.commit()
        return token

    @staticmethod
    def consume_verification_token(token: str, db: Session) -> User | None:
        if not token:
            return None

        row = db.query(User.id).filter(User.verification_token == token).first()
        if row is None:
            return None

        now = utcnow()
        updated = db.query(User).filter(
            User.id == row.id,
            User.verification_token == token,
            User.verification_token_expires_at > now
        ).update(
            {
                User.email_verified_at: now,
                User.verification_token: None,
                User.verification_token_expires_at: None
            },
            synchronize_session=False
        )
        db.commit()

        if updated != 1:
            return None
        return CredentialStore.find_by_id(row.id, db)

    @staticmethod
    def issue_reset_token(email: str, db: Session) -> str | None:
        """Returns None, not an error, when no account has this email."""
        token = generate_token()
        updated = db.query(User).filter(User.email == normalize_email(email)).update(
            {
                User.reset_token: token,
                User.reset_token_expires_at: get_token_expiry_time(
                    minutes=settings.RESET_TOKEN_EXPIRE_MINUTES
                )
            },
            synchronize_session=False
        )
        db.commit()
        return token if updated == 1 else None

    @staticmethod
    def consume_reset_token(token: str, new_password: str, db: Session) -> User | None:
        if not token:
            return None

        row = db.query(User.id).filter(User.reset_token == token).first()
        if row is None:
            return None

        # Hash before the update so the row is touched exactly once
        password_hash = get_password_hash(new_password)
        updated = db.query(User).filter(
            User.id == row.id,
            User.reset_token == token,
            User.reset_token_expires_at > utcnow()
        ).update(
            {
                User.password_hash: password_hash,
                User.reset_token: None,
                User.reset_token_expires_at: None
            },
            synchronize_session=False
        )
        db.commit()

        if updated != 1:
            return None
        return CredentialStore.find_by_id(row.id, db)
