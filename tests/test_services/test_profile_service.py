"""Tests for profile bootstrap."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hostpanel.core.exceptions import ConflictError, ValidationError
from hostpanel.core.security import verify_password
from hostpanel.services.profile_service import create_profile


@pytest.mark.asyncio
async def test_create_profile(db_session: AsyncSession) -> None:
    profile = await create_profile(db_session, "ops@example.com", "ops", "long-password", admin=True)

    assert profile.admin is True
    assert profile.is_active is True
    assert profile.hashed_password != "long-password"
    assert verify_password("long-password", profile.hashed_password)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,username,password",
    [
        ("", "ops", "long-password"),
        ("ops.example.com", "ops", "long-password"),
        ("ops@example.com", "ops", "short"),
    ],
)
async def test_invalid_input(db_session: AsyncSession, email, username, password) -> None:
    with pytest.raises(ValidationError):
        await create_profile(db_session, email, username, password)


@pytest.mark.asyncio
async def test_duplicate_email(db_session: AsyncSession, owner) -> None:
    with pytest.raises(ConflictError, match="email"):
        await create_profile(db_session, owner.email, "someone", "long-password")


@pytest.mark.asyncio
async def test_duplicate_username(db_session: AsyncSession, owner) -> None:
    with pytest.raises(ConflictError, match="username"):
        await create_profile(db_session, "new@example.com", owner.username, "long-password")
