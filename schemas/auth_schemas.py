from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from utils.clock import as_utc

MIN_PASSWORD_LENGTH = 8


def validate_password_length(value):
    if value is not None and len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    return value


class UserPublic(BaseModel):
    """What clients may see of a user. No hashes, no pending tokens."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str | None = None
    avatar_url: str | None = None
    provider: str
    email_verified_at: datetime | None = None
    created_at: datetime | None = None

    @field_validator('email_verified_at', 'created_at')
    @classmethod
    def ensure_utc(cls, value):
        return as_utc(value)


class Session(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserPublic


class SessionResponse(BaseModel):
    session: Session


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: str | None = None


class MessageResponse(BaseModel):
    message: str


class VerifyEmailResponse(BaseModel):
    message: str
    user: UserPublic


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str | None = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_length(value)

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value):
        if value is None:
            return value
        value = value.strip()
        if len(value) > 255:
            raise ValueError('Full name must be at most 255 characters')
        return value or None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if not value:
            raise ValueError('Password is required')
        return value


class GoogleSignInRequest(BaseModel):
    id_token: str | None = None


class RefreshTokenRequest(BaseModel):
    # Missing tokens are reported by the service as a Validation failure
    refresh_token: str | None = None


class SignOutRequest(BaseModel):
    refresh_token: str | None = None


class PasswordResetRequest(BaseModel):
    # Not EmailStr: a malformed address gets the same answer as an unknown one
    email: str | None = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if value is not None else None


class PasswordResetConfirmRequest(BaseModel):
    token: str | None = None
    new_password: str | None = None

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_length(value)


class UpdatePasswordRequest(BaseModel):
    new_password: str | None = None

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_length(value)
