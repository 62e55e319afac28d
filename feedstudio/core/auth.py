"""Editor identity resolution as FastAPI dependencies.

``resolve_editor`` returns the AuthContext whose ``user_id`` is recorded on
every version. With ``AUTH_ENABLED=false`` it returns an anonymous context
and the edit service falls back to the ``ANONYMOUS_EDITOR`` placeholder.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import decode_token
from ..database import get_db
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity of the caller."""

    user_id: Optional[str]
    role: str = "user"


_ANONYMOUS = AuthContext(user_id=None)


def resolve_editor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Resolve the bearer token to an active user.

    Raises AuthenticationError (401) when auth is enabled and the token is
    missing, invalid, or names an unknown or deactivated user.
    """
    if not settings.auth_enabled:
        return _ANONYMOUS

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm)
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    from ..models.user import User

    user = db.query(User).filter(User.user_id == payload.sub).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return AuthContext(user_id=user.user_id, role=user.role)
