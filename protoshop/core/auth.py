# protoshop/core/auth.py
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from protoshop.core.config import Settings, get_settings
from protoshop.core.errors import AuthError, ForbiddenError
from protoshop.core.security import decode_access_token
from protoshop.database import get_session
from protoshop.models.user import User

# auto_error=False so a missing header reaches us and can be reported
# as "No token provided" instead of FastAPI's generic 403.
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the current user from the bearer token.

    Flow:
      1. No Authorization header => 401 "No token provided".
      2. Decode JWT => 401 "Token expired" / "Invalid token".
      3. Load the user row referenced by the userId claim.

    Raises:
        AuthError(401): on any of the failures above.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("No token provided")

    claims = decode_access_token(settings, credentials.credentials)

    try:
        user_id = uuid.UUID(claims["userId"])
    except ValueError:
        raise AuthError("Invalid token")

    user = session.get(User, user_id)
    if user is None:
        raise AuthError("Invalid token")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Enforce admin role.

    Raises:
        ForbiddenError(403): if role is not admin.
    """
    if user.role != "admin":
        raise ForbiddenError("Admin access required")
    return user
