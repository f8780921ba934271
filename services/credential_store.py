from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from core.config import settings
from core.errors import Conflict
from models.users import User
from utils.clock import utcnow
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger
from utils.verification import generate_token, get_token_expiry_time

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """
    Owns user rows: creation, lookup, password checks and OAuth linking.
    """

    @staticmethod
    def create_local_user(email: str, password: str, full_name: str | None, db: Session) -> tuple[User, str]:
        """
        Creates an unverified local account with a pending verification token.

        Returns:
            (user, verification_token)

        Raises:
            Conflict: if the email is already registered
        """
        email = normalize_email(email)

        if CredentialStore.find_by_email(email, db):
            raise Conflict()

        token = generate_token()
        model = User(
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name,
            provider="email",
            verification_token=token,
            verification_token_expires_at=get_token_expiry_time(
                minutes=settings.VERIFICATION_TOKEN_EXPIRE_HOURS * 60
            )
        )

        db.add(model)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent sign-up for the same email
            db.rollback()
            raise Conflict()

        db.refresh(model)
        return model, token

    @staticmethod
    def find_by_email(email: str, db: Session) -> User | None:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    @staticmethod
    def find_by_id(user_id: str, db: Session) -> User | None:
        return db.query(User).filter(User.id == user_id).one_or_none()

    @staticmethod
    def find_by_provider(provider: str, provider_id: str, db: Session) -> User | None:
        return db.query(User).filter(
            User.provider == provider,
            User.provider_id == provider_id
        ).first()

    @staticmethod
    def verify_password(user: User, candidate: str) -> bool:
        return verify_password(candidate, user.password_hash)

    @staticmethod
    def update_password(user_id: str, new_password: str, db: Session) -> bool:
        updated = db.query(User).filter(User.id == user_id).update(
            {User.password_hash: get_password_hash(new_password)},
            synchronize_session=False
        )
        db.commit()
        return updated == 1

    @staticmethod
    def update_last_login(user_id: str, db: Session) -> None:
        db.query(User).filter(User.id == user_id).update(
            {User.last_login_at: utcnow()},
            synchronize_session=False
        )
        db.commit()

    @staticmethod
    def _link_identity(user: User, provider: str, provider_id: str, avatar_url: str | None, db: Session) -> User:
        """Attach a third-party identity to an existing account and mark it verified."""
        user.provider = provider
        user.provider_id = provider_id
        user.avatar_url = avatar_url
        if user.email_verified_at is None:
            user.email_verified_at = utcnow()
        user.verification_token = None
        user.verification_token_expires_at = None
        db.commit()
        db.refresh(user)

        logger.info(
            "Linked OAuth identity to existing account",
            extra={"user_id": user.id, "provider": provider}
        )
        return user

    @staticmethod
    def find_or_create_oauth_profile(
        email: str,
        full_name: str | None,
        avatar_url: str | None,
        provider: str,
        provider_id: str,
        db: Session
    ) -> User:
        """
        Resolves a third-party identity to exactly one user.

        Lookup order:
        1. (provider, provider_id): returning OAuth user
        2. email: link the identity to an existing account. The account is
           marked verified; an existing password is left alone.
        3. otherwise create a verified, password-less account
        """
        email = normalize_email(email)

        user = CredentialStore.find_by_provider(provider, provider_id, db)
        if user:
            return user

        user = CredentialStore.find_by_email(email, db)
        if user:
            return CredentialStore._link_identity(user, provider, provider_id, avatar_url, db)

        model = User(
            email=email,
            full_name=full_name,
            avatar_url=avatar_url,
            provider=provider,
            provider_id=provider_id,
            email_verified_at=utcnow()
        )
        db.add(model)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request took the identity or the email first
            db.rollback()
            user = CredentialStore.find_by_provider(provider, provider_id, db)
            if user:
                return user
            user = CredentialStore.find_by_email(email, db)
            if user is None:
                raise
            return CredentialStore._link_identity(user, provider, provider_id, avatar_url, db)

        db.refresh(model)
        logger.info(
            "Created OAuth account",
            extra={"user_id": model.id, "provider": provider}
        )
        return model
