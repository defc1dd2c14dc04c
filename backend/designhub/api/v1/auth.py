"""Authentication endpoints: password login, password reset and the caller's own profile."""

import structlog
from fastapi import APIRouter, BackgroundTasks, Query
from pydantic import EmailStr, Field
from sqlalchemy import func, select

from designhub.api.v1.common import APIModel, Envelope, ok
from designhub.api.v1.users import UserResponse
from designhub.config import get_settings
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.exceptions import AuthenticationMissing, AuthorizationDenied, ValidationFailed
from designhub.models.user import User
from designhub.services.access_control import Context
from designhub.services.password_reset import (
    deliver_reset_link,
    find_valid_token,
    issue_reset_token,
    reset_link,
)
from designhub.services.security import create_access_token, hash_password, verify_password

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class LoginRequest(APIModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(APIModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class ProfileUpdate(APIModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    phone: str | None = Field(None, max_length=32)
    avatar_url: str | None = Field(None, max_length=500)


class PasswordChange(APIModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class ForgotPasswordRequest(APIModel):
    email: EmailStr


class ResetPasswordRequest(APIModel):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=8, max_length=128)


class ResetRequested(APIModel):
    # Only populated outside production
    reset_token: str | None = None


class ResetTokenStatus(APIModel):
    valid: bool
    email: str


@router.post("/login", response_model=Envelope[TokenResponse])
async def login(data: LoginRequest, db: DBSession) -> dict:
    """Exchange email and password for an access token."""
    result = await db.execute(select(User).where(func.lower(User.email) == data.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(user.password_hash, data.password):
        logger.info("login_failed", email=data.email.lower())
        raise AuthenticationMissing("Invalid email or password")
    if not user.is_active:
        raise AuthorizationDenied("User account is disabled")

    user.last_login_at = utc_now()
    user = await refetch(db, user)
    await db.commit()

    token = create_access_token(user.id, user.role)
    logger.info("user_logged_in", user_id=str(user.id), role=user.role)
    return ok(
        {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": settings.jwt_access_token_expire_minutes * 60,
            "user": user,
        }
    )


@router.get("/me", response_model=Envelope[UserResponse])
async def get_current_user_info(ctx: Context) -> dict:
    """Get current authenticated user's information."""
    return ok(ctx.user)


@router.patch("/me", response_model=Envelope[UserResponse])
async def update_profile(data: ProfileUpdate, ctx: Context, db: DBSession) -> dict:
    """Update the caller's own name, phone or avatar."""
    user = ctx.user
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates:
        if updates["name"] is None:
            raise ValidationFailed("Name cannot be empty", field="name")
        updates["name"] = updates["name"].strip()
    for field, value in updates.items():
        setattr(user, field, value)

    user = await refetch(db, user)
    await db.commit()

    logger.info("profile_updated", user_id=str(user.id), fields=sorted(updates))
    return ok(user, "Profile updated successfully")


@router.post("/change-password", response_model=Envelope[None])
async def change_password(data: PasswordChange, ctx: Context, db: DBSession) -> dict:
    user = ctx.user
    if not verify_password(user.password_hash, data.current_password):
        raise ValidationFailed("Current password is incorrect", field="currentPassword")
    if data.current_password == data.new_password:
        raise ValidationFailed(
            "New password must be different from the current password", field="newPassword"
        )

    user.password_hash = hash_password(data.new_password)
    await db.commit()

    logger.info("password_changed", user_id=str(user.id))
    return ok(None, "Password changed successfully")


FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent"


@router.post("/forgot-password", response_model=Envelope[ResetRequested])
async def forgot_password(
    data: ForgotPasswordRequest, db: DBSession, background_tasks: BackgroundTasks
) -> dict:
    """Start a password reset.

    The response is the same whether or not the email belongs to an active
    account, so the endpoint cannot be used to enumerate users.
    """
    result = await db.execute(select(User).where(func.lower(User.email) == data.email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        logger.info("password_reset_unknown_email", email=data.email.lower())
        return ok({"reset_token": None}, FORGOT_PASSWORD_MESSAGE)

    token = await issue_reset_token(db, user)
    await db.commit()
    background_tasks.add_task(deliver_reset_link, user.email, reset_link(token))

    logger.info("password_reset_requested", user_id=str(user.id))
    exposed = None if settings.environment == "production" else token
    return ok({"reset_token": exposed}, FORGOT_PASSWORD_MESSAGE)


@router.get("/reset-password", response_model=Envelope[ResetTokenStatus])
async def validate_reset_token(db: DBSession, token: str = Query(..., min_length=1)) -> dict:
    record = await find_valid_token(db, token)
    user = await db.get(User, record.user_id)
    return ok({"valid": True, "email": user.email})


@router.post("/reset-password", response_model=Envelope[None])
async def reset_password(data: ResetPasswordRequest, db: DBSession) -> dict:
    """Set a new password with a reset token. Each token works once."""
    record = await find_valid_token(db, data.token)
    user = await db.get(User, record.user_id)

    user.password_hash = hash_password(data.password)
    record.used_at = utc_now()
    await db.commit()

    logger.info("password_reset_completed", user_id=str(user.id))
    return ok(None, "Password has been reset successfully")
