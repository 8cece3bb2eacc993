# protoshop/core/security.py
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from protoshop.core.config import Settings
from protoshop.core.errors import AuthError


def hash_password(password: str) -> str:
    """Hash a plain password with bcrypt (random salt)."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash stored in DB
        return False


def create_access_token(
    settings: Settings,
    user_id: uuid.UUID,
    email: str,
    role: str,
) -> str:
    """
    Issue a signed bearer token.

    Claims:
      - userId, email, role
      - iat / exp (expiry from JWT_EXPIRES_MINUTES)
    """
    now = datetime.now(timezone.utc)
    claims = {
        "userId": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> dict[str, Any]:
    """
    Decode and verify a token issued by `create_access_token`.

    Raises:
        AuthError("Token expired"): exp is in the past.
        AuthError("Invalid token"): bad signature, malformed token, or
            missing userId claim.
    """
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise AuthError("Token expired")
    except JWTError:
        raise AuthError("Invalid token")

    if not claims.get("userId"):
        raise AuthError("Invalid token")
    return claims
