from core.database import SessionLocal
from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from core.config import settings
from core.errors import Unauthorized
from models.users import User
from services.credential_store import CredentialStore
from services.identity_verifier import GoogleIdentityVerifier
from services.token_service import TokenService

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_current_user(
    db: db_dependency,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("No token provided")

    user_id = TokenService.verify_access_token(credentials.credentials)
    if user_id is None:
        raise Unauthorized("Invalid or expired token")

    user = CredentialStore.find_by_id(user_id, db)
    if user is None:
        raise Unauthorized("User not found")

    return user


user_dependency = Annotated[User, Depends(get_current_user)]


def get_identity_verifier() -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier(
        client_id=settings.GOOGLE_CLIENT_ID,
        tokeninfo_url=settings.GOOGLE_TOKENINFO_URL
    )

verifier_dependency = Annotated[GoogleIdentityVerifier, Depends(get_identity_verifier)]
