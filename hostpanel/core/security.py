"""Password hashing and JWT handling for panel profiles."""

from datetime import datetime, timedelta, UTC
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from jose import JWTError, jwt

from hostpanel.config import settings

ph = PasswordHasher()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its Argon2 hash."""
    try:
        return ph.verify(hashed_password, plain_password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def get_password_hash(password: str) -> str:
    return ph.hash(password)


def _encode(profile_id: str, token_type: str, lifetime: timedelta) -> str:
    claims = {
        "sub": profile_id,
        "type": token_type,
        "exp": datetime.now(UTC) + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(
    profile_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Short-lived token sent as ``Authorization: Bearer``."""
    return _encode(
        profile_id,
        "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(
    profile_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    return _encode(
        profile_id,
        "refresh",
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_token_pair(profile_id: str) -> dict:
    """Access and refresh tokens for a freshly authenticated profile."""
    return {
        "access_token": create_access_token(profile_id),
        "refresh_token": create_refresh_token(profile_id),
        "token_type": "bearer",
    }


def verify_token(token: str, token_type: str = "access") -> Optional[str]:
    """Return the profile id carried by a valid token of the given type."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != token_type:
        return None
    return payload.get("sub")
