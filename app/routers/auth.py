"""
Authentication & user management endpoints

    POST   /api/auth/register          first owner account only
    POST   /api/auth/login
    GET    /api/auth/me
    POST   /api/auth/forgot-password
    POST   /api/auth/reset-password
    GET    /api/auth/users              owner
    POST   /api/auth/users              owner
    PUT    /api/auth/users/{id}/role    owner
    DELETE /api/auth/users/{id}         owner
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import APIError
from app.core.responses import ok
from app.core.security import create_access_token, get_current_user, owner_only
from app.database import get_db
from app.models import User, UserRole
from app.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    RoleUpdate,
    UserCreate,
    UserResponse,
)
from app.services import accounts
from app.services.notifications import get_notification_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _auth_payload(user: User) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user.id),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create the first owner account. Closed once an owner exists."""
    if await accounts.owner_exists(db):
        raise APIError("Registration is closed", status.HTTP_403_FORBIDDEN, "registration_closed")

    user = await accounts.create_user(
        db,
        name=data.name,
        email=data.email,
        password=data.password,
        role=UserRole.OWNER,
    )
    logger.info(f"Owner account registered: #{user.id}")
    return ok(_auth_payload(user))


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await accounts.authenticate(db, data.email, data.password)
    logger.info(f"User #{user.id} logged in")
    return ok(_auth_payload(user))


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return ok(UserResponse.model_validate(user))


@router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Always succeeds so the endpoint cannot be used to probe accounts."""
    issued = await accounts.issue_reset_token(db, data.email)

    if issued is not None:
        user, token = issued
        frontend_url = (get_settings().frontend_url or "").rstrip("/")
        reset_url = f"{frontend_url}/reset-password?token={token}"

        result = await get_notification_service().send_password_reset(user.email, user.name, reset_url)
        if not result.success:
            logger.error(f"Password reset email to user #{user.id} failed: {result.error_message}")

    return ok(message="If the email is registered, a reset link has been sent")


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await accounts.reset_password(db, data.token, data.password)
    return ok(message="Password has been reset")


# =============================================================================
# USER MANAGEMENT (OWNER)
# =============================================================================

@router.get("/users")
async def list_users(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    users = await accounts.list_users(db)
    return ok([UserResponse.model_validate(u) for u in users])


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    user = await accounts.create_user(
        db,
        name=data.name,
        email=data.email,
        password=data.password,
        role=UserRole.STAFF,
        status_=data.status,
    )
    return ok(UserResponse.model_validate(user))


@router.put("/users/{user_id}/role")
async def update_role(
    user_id: int,
    data: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(owner_only),
):
    user = await accounts.update_user(db, user_id, role=data.role)
    return ok(UserResponse.model_validate(user))


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(owner_only),
):
    await accounts.delete_user(db, user_id, current)
    return ok({"deleted": True})
