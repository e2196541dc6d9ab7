"""
Authentication and role-based access

- bcrypt password hashing (passlib)
- HS256 access tokens (python-jose), `sub` = user id
- FastAPI dependencies: get_current_user, require_roles(...)
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import APIError
from app.database import get_db
from app.models import User, UserRole

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

bearer_scheme = HTTPBearer(auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed hash in storage
        logger.warning("Stored password hash could not be parsed")
        return False


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def create_access_token(
    user_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed access token for a user."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expires_minutes))

    to_encode = {
        "sub": str(user_id),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    if not payload.get("sub"):
        raise JWTError("Missing subject claim")
    return payload


def _unauthorized() -> APIError:
    return APIError("Unauthorized", status.HTTP_401_UNAUTHORIZED, "unauthorized")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user; 401 on anything wrong."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized()

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])
    except (JWTError, ValueError) as e:
        logger.info(f"Rejected access token: {e}")
        raise _unauthorized()

    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized()

    return user


def require_roles(*roles: UserRole):
    """Dependency factory allowing only the given roles through."""
    allowed = set(roles)

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise APIError("Forbidden", status.HTTP_403_FORBIDDEN, "forbidden")
        return user

    return checker


owner_only = require_roles(UserRole.OWNER)
staff_or_owner = require_roles(UserRole.STAFF, UserRole.OWNER)
