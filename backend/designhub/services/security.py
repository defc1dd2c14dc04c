"""Password hashing and access tokens."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from designhub.config import get_settings
from designhub.exceptions import AuthenticationMissing

settings = get_settings()


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_access_token(user_id: UUID, role: str, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    to_encode = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> UUID:
    """Return the user id in a valid access token.

    Raises:
        AuthenticationMissing: token is malformed, expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise AuthenticationMissing("Invalid token") from None

    subject = payload.get("sub")
    if subject is None or payload.get("type") != "access":
        raise AuthenticationMissing("Invalid token")
    try:
        return UUID(subject)
    except ValueError:
        raise AuthenticationMissing("Invalid token") from None
