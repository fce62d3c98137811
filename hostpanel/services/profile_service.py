"""Profile bootstrap helpers."""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.core.exceptions import ConflictError, ValidationError
from hostpanel.core.security import get_password_hash
from hostpanel.models import Profile
from hostpanel.utils.logger import get_logger

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


async def create_profile(
    session: AsyncSession,
    email: str,
    username: str,
    password: str,
    admin: bool = False,
) -> Profile:
    """
    Create an active profile with an Argon2-hashed password.

    Raises:
        ValidationError: Missing fields, malformed email or short password
        ConflictError: Email or username already used
    """
    if not email or not username or not password:
        raise ValidationError("Email, username and password are required")
    if "@" not in email:
        raise ValidationError("Email must be a valid address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    result = await session.execute(
        select(Profile).where((Profile.email == email) | (Profile.username == username))
    )
    existing = result.scalars().first()
    if existing is not None:
        field = "email" if existing.email == email else "username"
        raise ConflictError(f"A profile with this {field} already exists")

    profile = Profile(
        email=email,
        username=username,
        hashed_password=get_password_hash(password),
        is_active=True,
        admin=admin,
    )
    session.add(profile)
    await session.commit()
    await session.refresh(profile)

    logger.info("Profile created", extra={"profile_id": profile.id, "admin": admin})
    return profile
