# protoshop/services/auth_service.py
from fastapi import BackgroundTasks
from sqlmodel import Session

from protoshop.core.config import Settings
from protoshop.core.errors import AuthError, ConflictError
from protoshop.core.logging import get_logger
from protoshop.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from protoshop.models.user import User
from protoshop.repositories.user_repo import UserRepository
from protoshop.schemas.user import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
    UserRead,
    VerifyTokenResponse,
)
from protoshop.services.notification_service import NotificationService

logger = get_logger(__name__)


class AuthService:
    """
    Email + password accounts with self-issued JWTs.

    Responsibilities:
      - signup (unique email, bcrypt hash, welcome email)
      - login / token verification
      - password change for the signed-in user
    """

    def __init__(
        self,
        repo: UserRepository,
        notifications: NotificationService,
        settings: Settings,
    ):
        self.repo = repo
        self.notifications = notifications
        self.settings = settings

    def _auth_response(self, message: str, user: User) -> AuthResponse:
        token = create_access_token(self.settings, user.id, user.email, user.role)
        return AuthResponse(
            message=message,
            user=UserRead.model_validate(user),
            token=token,
            role=user.role,
        )

    def signup(
        self,
        session: Session,
        payload: SignupRequest,
        background_tasks: BackgroundTasks,
    ) -> AuthResponse:
        email = payload.email.lower()
        if self.repo.get_by_email(session, email):
            raise ConflictError("User already exists")

        user = User(
            email=email,
            password_hash=hash_password(payload.password),
            full_name=payload.full_name,
            role="user",
        )
        user = self.repo.create(session, user)
        logger.info("New account %s", user.id)

        self.notifications.schedule(
            background_tasks,
            self.notifications.send_welcome,
            user.email,
            user.full_name,
        )
        return self._auth_response("User created successfully", user)

    def login(self, session: Session, payload: LoginRequest) -> AuthResponse:
        user = self.repo.get_by_email(session, payload.email)
        if not user or not verify_password(payload.password, user.password_hash):
            raise AuthError("Invalid credentials")
        return self._auth_response("Login successful", user)

    def verify(self, token: str) -> VerifyTokenResponse:
        """Raises AuthError for an invalid or expired token."""
        claims = decode_access_token(self.settings, token)
        return VerifyTokenResponse(valid=True, decoded=claims)

    def change_password(
        self,
        session: Session,
        user: User,
        payload: ChangePasswordRequest,
    ) -> None:
        if not verify_password(payload.old_password, user.password_hash):
            raise AuthError("Current password is incorrect")
        user.password_hash = hash_password(payload.new_password)
        self.repo.update(session, user)
