"""Authentication endpoints: login, refresh, current profile."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import select

from hostpanel.api.deps import CurrentProfile, DbSession
from hostpanel.core.exceptions import AuthenticationError
from hostpanel.core.security import create_token_pair, verify_password, verify_token
from hostpanel.middleware.rate_limit import limiter, per_minute
from hostpanel.models import Profile
from hostpanel.schemas import ProfileResponse, RefreshTokenRequest, Token
from hostpanel.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _ensure_active(profile: Profile) -> None:
    if not profile.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive profile")


@router.post("/login", response_model=Token)
@limiter.limit(per_minute(10))
async def login(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: DbSession,
) -> Token:
    """
    OAuth2 compatible token login.

    The username field accepts either the username or the email.
    """
    result = await db.execute(
        select(Profile).where(
            (Profile.username == form_data.username) | (Profile.email == form_data.username)
        )
    )
    profile = result.scalars().first()

    if not profile or not verify_password(form_data.password, profile.hashed_password):
        logger.warning("Login failed", extra={"login": form_data.username})
        raise AuthenticationError("Incorrect username or password")

    _ensure_active(profile)
    logger.info("Login succeeded", extra={"profile_id": profile.id})
    return Token(**create_token_pair(profile.id))


@router.post("/refresh", response_model=Token)
async def refresh_token(refresh_request: RefreshTokenRequest, db: DbSession) -> Token:
    """Exchange a refresh token for a new token pair."""
    profile_id = verify_token(refresh_request.refresh_token, token_type="refresh")
    if profile_id is None:
        raise AuthenticationError("Invalid refresh token")

    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise AuthenticationError("Profile not found")

    _ensure_active(profile)
    return Token(**create_token_pair(profile.id))


@router.get("/me", response_model=ProfileResponse)
async def me(current_profile: CurrentProfile) -> Profile:
    return current_profile
