"""
Owner and staff accounts

Emails are stored lower-cased so lookups are case-insensitive.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import APIError, NotFoundError
from app.core.security import generate_reset_token, get_password_hash, verify_password
from app.models import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def owner_exists(db: AsyncSession) -> bool:
    count = await db.execute(select(func.count(User.id)).where(User.role == UserRole.OWNER))
    return bool(count.scalar())


async def _ensure_email_free(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> None:
    existing = await get_user_by_email(db, email)
    if existing is not None and existing.id != exclude_id:
        raise APIError("Email already registered", status.HTTP_409_CONFLICT, "duplicate_email")


async def create_user(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.STAFF,
    status_: UserStatus = UserStatus.ACTIVE,
) -> User:
    await _ensure_email_free(db, email)

    user = User(
        name=name.strip(),
        email=normalize_email(email),
        password_hash=get_password_hash(password),
        role=role,
        status=status_,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"User #{user.id} created ({user.role.value})")
    return user


async def _ensure_owner_remains(db: AsyncSession, user: User) -> None:
    """Refuse to demote, deactivate or delete the last active owner."""
    if user.role != UserRole.OWNER or user.status != UserStatus.ACTIVE:
        return

    others = await db.execute(
        select(func.count(User.id)).where(
            User.role == UserRole.OWNER,
            User.status == UserStatus.ACTIVE,
            User.id != user.id,
        )
    )
    if not others.scalar():
        raise APIError("At least one active owner is required", status.HTTP_400_BAD_REQUEST, "last_owner")


async def update_user(
    db: AsyncSession,
    user_id: int,
    *,
    name: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[UserRole] = None,
    status_: Optional[UserStatus] = None,
) -> User:
    user = await get_user(db, user_id)

    demoted = role is not None and role != UserRole.OWNER
    deactivated = status_ is not None and status_ != UserStatus.ACTIVE
    if demoted or deactivated:
        await _ensure_owner_remains(db, user)

    if name is not None:
        user.name = name.strip()
    if email is not None:
        await _ensure_email_free(db, email, exclude_id=user.id)
        user.email = normalize_email(email)
    if role is not None:
        user.role = role
    if status_ is not None:
        user.status = status_

    await db.commit()
    await db.refresh(user)

    logger.info(f"User #{user.id} updated")
    return user


async def delete_user(db: AsyncSession, user_id: int, acting_user: User) -> None:
    if user_id == acting_user.id:
        raise APIError("You cannot delete your own account", status.HTTP_400_BAD_REQUEST, "self_delete")

    user = await get_user(db, user_id)
    await _ensure_owner_remains(db, user)
    await db.delete(user)
    await db.commit()

    logger.info(f"User #{user_id} deleted by #{acting_user.id}")


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise APIError("Invalid credentials", status.HTTP_401_UNAUTHORIZED, "invalid_credentials")

    if user.status != UserStatus.ACTIVE:
        raise APIError("Account is inactive", status.HTTP_403_FORBIDDEN, "inactive_account")

    return user


async def issue_reset_token(db: AsyncSession, email: str) -> Optional[tuple[User, str]]:
    """Store a fresh reset token for the user, if the email is known."""
    user = await get_user_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return None

    token = generate_reset_token()
    user.reset_token = token
    user.reset_token_expires = datetime.now() + timedelta(
        minutes=get_settings().password_reset_expire_minutes
    )
    await db.commit()

    logger.info(f"Password reset token issued for user #{user.id}")
    return user, token


async def reset_password(db: AsyncSession, token: str, password: str) -> User:
    result = await db.execute(select(User).where(User.reset_token == token))
    user = result.scalar_one_or_none()

    if (
        user is None
        or user.reset_token_expires is None
        or user.reset_token_expires < datetime.now()
    ):
        raise APIError("Invalid or expired reset token", status.HTTP_400_BAD_REQUEST, "invalid_token")

    user.password_hash = get_password_hash(password)
    user.reset_token = None
    user.reset_token_expires = None
    await db.commit()

    logger.info(f"Password reset for user #{user.id}")
    return user
