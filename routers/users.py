from fastapi import APIRouter, Request
from starlette import status
from schemas.auth_schemas import UserPublic, MessageResponse, UpdatePasswordRequest
from services.auth_service import AuthService
from utils.deps import db_dependency, user_dependency
from middleware.rate_limiter import limiter, EMAIL_LIMIT


router = APIRouter(
    prefix="/api/v1/auth",
    tags=["users"]
)


@router.get("/me", status_code=status.HTTP_200_OK, response_model=UserPublic)
def get_current_user(user: user_dependency):
    """
    Get current user info (protected endpoint).
    """
    return user


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit(EMAIL_LIMIT)
def resend_verification(request: Request, user: user_dependency, db: db_dependency):
    AuthService.resend_verification(user.id, db)
    return {"message": "Verification email sent successfully"}


@router.post("/update-password", response_model=MessageResponse)
def update_password(body: UpdatePasswordRequest, user: user_dependency, db: db_dependency):
    """
    Set a new password for the signed-in user.
    """
    AuthService.update_password(user.id, body.new_password, db)
    return {"message": "Password updated successfully"}
