from fastapi import APIRouter, Request, BackgroundTasks
from starlette import status
from schemas.auth_schemas import (SessionResponse, AccessTokenResponse, MessageResponse,
    VerifyEmailResponse, UserPublic, SignUpRequest, SignInRequest, GoogleSignInRequest, SignOutRequest,
    RefreshTokenRequest, PasswordResetRequest, PasswordResetConfirmRequest)
from services.auth_service import AuthService
from utils.deps import db_dependency, verifier_dependency
from middleware.rate_limiter import auth_attempts


router = APIRouter(
    prefix="/api/v1/auth",
    tags=["auth"]
)


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
def sign_up(request: Request, body: SignUpRequest, db: db_dependency, bg: BackgroundTasks):
    with auth_attempts.attempt(request):
        session = AuthService.sign_up(body.email, body.password, body.full_name, db, bg)
    return {"session": session}


@router.post("/signin", response_model=SessionResponse)
def sign_in(request: Request, body: SignInRequest, db: db_dependency):
    with auth_attempts.attempt(request):
        session = AuthService.sign_in(body.email, body.password, db)
    return {"session": session}


@router.post("/google", response_model=SessionResponse)
async def google_sign_in(request: Request, body: GoogleSignInRequest, db: db_dependency,
    verifier: verifier_dependency):
    """
    Sign in with a Google ID token obtained by the client.

    Links to an existing account with the same email, or creates one.
    """
    with auth_attempts.attempt(request):
        session = await AuthService.oauth_sign_in(body.id_token, db, verifier)
    return {"session": session}


@router.post("/signout", response_model=MessageResponse)
def sign_out(db: db_dependency, body: SignOutRequest | None = None):
    """
    Revoke refresh token. Succeeds for unknown or already revoked tokens.
    """
    AuthService.sign_out(body.refresh_token if body else None, db)
    return {"message": "Signed out successfully"}


@router.post("/refresh", response_model=AccessTokenResponse, response_model_exclude_none=True)
def refresh(body: RefreshTokenRequest, db: db_dependency):
    """
    Get a new access token using a refresh token.
    """
    return AuthService.refresh(body.refresh_token, db)


@router.get("/verify-email", response_model=VerifyEmailResponse)
def verify_email(db: db_dependency, token: str | None = None):
    user = AuthService.verify_email(token, db)
    return {"message": "Email verified successfully", "user": UserPublic.model_validate(user)}


@router.post("/reset-password", response_model=MessageResponse)
def request_password_reset(request: Request, body: PasswordResetRequest, db: db_dependency,
    bg: BackgroundTasks):
    """
    Request a password reset link. The answer never reveals whether the
    email belongs to an account.
    """
    with auth_attempts.attempt(request):
        message = AuthService.request_password_reset(body.email, db, bg)
    return {"message": message}


@router.post("/reset-password/confirm", response_model=MessageResponse)
def confirm_password_reset(body: PasswordResetConfirmRequest, db: db_dependency):
    AuthService.confirm_password_reset(body.token, body.new_password, db)
    return {"message": "Password reset successfully"}
