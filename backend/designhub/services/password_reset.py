"""Single-use password reset tokens.

The raw token only ever leaves the server inside the reset link; the
database keeps its SHA-256 digest, so a leaked table cannot be replayed.
"""

import hashlib
import secrets
from datetime import timedelta
from urllib.parse import urlencode

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.config import get_settings
from designhub.db.base import utc_now
from designhub.exceptions import ValidationFailed
from designhub.models.user import PasswordResetToken, User

logger = structlog.get_logger()
settings = get_settings()


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def reset_link(token: str) -> str:
    return f"{settings.password_reset_url}?{urlencode({'token': token})}"


async def issue_reset_token(db: AsyncSession, user: User) -> str:
    """Create a token for ``user``, retiring any earlier unused ones.

    Returns:
        The raw token; callers deliver it and never store it.
    """
    now = utc_now()
    await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.user_id == user.id, PasswordResetToken.used_at.is_(None))
        .values(used_at=now)
    )
    token = secrets.token_urlsafe(32)
    db.add(
        PasswordResetToken(
            user_id=user.id,
            token_hash=token_digest(token),
            expires_at=now + timedelta(minutes=settings.password_reset_ttl_minutes),
        )
    )
    await db.flush()
    return token


async def find_valid_token(db: AsyncSession, token: str) -> PasswordResetToken:
    """Look up an unused, unexpired token of an active user.

    Raises:
        ValidationFailed: token is unknown, used or expired
    """
    result = await db.execute(
        select(PasswordResetToken)
        .join(User, User.id == PasswordResetToken.user_id)
        .where(
            PasswordResetToken.token_hash == token_digest(token),
            PasswordResetToken.used_at.is_(None),
            PasswordResetToken.expires_at > utc_now(),
            User.is_active.is_(True),
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ValidationFailed("Invalid or expired reset token", field="token")
    return record


def deliver_reset_link(email: str, link: str) -> None:
    """Record a reset link for out-of-band delivery. The API sends no mail itself.

    The link is a credential, so it is only written to the log outside production.
    """
    if settings.environment == "production":
        logger.info("password_reset_link_issued", email=email)
    else:
        logger.info("password_reset_link_issued", email=email, link=link)
