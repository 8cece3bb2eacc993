# protoshop/routers/auth.py
from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from protoshop.core.auth import get_current_user
from protoshop.core.config import Settings, get_settings
from protoshop.core.errors import AuthError
from protoshop.database import get_session
from protoshop.models.user import User
from protoshop.repositories.user_repo import UserRepository
from protoshop.schemas.user import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    SignupRequest,
    UserRead,
    VerifyTokenRequest,
    VerifyTokenResponse,
)
from protoshop.services.auth_service import AuthService
from protoshop.services.notification_service import (
    NotificationService,
    get_notification_service,
)

router = APIRouter(prefix="/auth", tags=["Auth"])

repo = UserRepository()


def get_auth_service(
    notifications: NotificationService = Depends(get_notification_service),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(repo, notifications, settings)


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    """
    Create an account and return a bearer token.

    A welcome email is sent in the background.
    """
    return service.signup(session, payload, background_tasks)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
):
    return service.login(session, payload)


@router.post("/verify", response_model=VerifyTokenResponse)
def verify_token(
    payload: VerifyTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Check a token without touching the database.

    401 body: {"valid": false, "error": "..."}
    """
    try:
        return service.verify(payload.token)
    except AuthError as exc:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"valid": False, "error": exc.message},
        )


@router.get("/me", response_model=MeResponse)
def read_me(current_user: User = Depends(get_current_user)):
    return MeResponse(user=UserRead.model_validate(current_user), role=current_user.role)


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.change_password(session, current_user, payload)
    return {"message": "Password updated successfully"}
