import uuid
from core.database import Base
from sqlalchemy import (Column, String, Text, DateTime, UniqueConstraint)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    Identity record. Local accounts carry a password hash; OAuth-only
    accounts do not. Pending verification/reset tokens always travel
    with their expiry and are cleared together.
    """
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="uq_users_provider_identity"),
    )

    #pk
    id = Column(String(36), primary_key=True, default=_new_id)

    #relationships
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)
    # OAuth identity
    provider = Column(String(50), nullable=False, default="email")
    provider_id = Column(String(255), nullable=True)
    # Email verification fields
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_token = Column(String(255), nullable=True, index=True)
    verification_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    # Password reset fields
    reset_token = Column(String(255), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
