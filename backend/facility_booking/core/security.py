"""
Request identity.

Authentication lives in the external identity service; this module only
decodes the bearer JWT it issues into an AuthContext. The booking core
never looks at tokens or request state, it receives the AuthContext as an
explicit argument.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from facility_booking.core.config import get_settings
from facility_booking.core.exceptions import Forbidden, NotAuthenticated
from facility_booking.core.logging import get_logger

logger = get_logger(__name__)

ROLE_ADMINISTRATOR = 1
ROLE_TRAINER = 2
ROLE_USER = 3

ROLE_NAMES = {
    ROLE_ADMINISTRATOR: "Administrator",
    ROLE_TRAINER: "Trainer",
    ROLE_USER: "User",
}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: Optional[int] = None
    role_id: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def may_reserve_sessions(self) -> bool:
        # Trainers run sessions, they do not book them.
        return self.is_authenticated and self.role_id != ROLE_TRAINER

    def has_role(self, *role_ids: int) -> bool:
        return self.role_id in role_ids

    def require_user(self) -> int:
        if self.user_id is None:
            raise NotAuthenticated("Authentication required")
        return self.user_id


ANONYMOUS = AuthContext()


def create_access_token(
    user_id: int,
    role_id: int = ROLE_USER,
    expires_delta: Optional[timedelta] = None,
) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"sub": str(user_id), "role": role_id, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> AuthContext:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload["sub"])
        role = payload.get("role")
        role_id = int(role) if role is not None else ROLE_USER
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as e:
        logger.warning("token_rejected", error=str(e))
        raise NotAuthenticated("Invalid or expired token") from e
    return AuthContext(user_id=user_id, role_id=role_id)


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    """Anonymous when no token is sent; a bad token is still rejected."""
    if credentials is None:
        return ANONYMOUS
    return decode_access_token(credentials.credentials)


async def get_current_auth(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    auth.require_user()
    return auth


def require_roles(*role_ids: int):
    """Dependency factory: authenticated and holding one of ``role_ids``."""

    async def dependency(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if not auth.has_role(*role_ids):
            allowed = ", ".join(ROLE_NAMES.get(r, str(r)) for r in role_ids)
            raise Forbidden(f"Requires role: {allowed}")
        return auth

    return dependency


async def require_session_booker(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
    if not auth.may_reserve_sessions:
        raise Forbidden("Trainers cannot reserve sessions")
    return auth
