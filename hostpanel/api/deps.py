"""Dependencies for API endpoints."""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from hostpanel.config import settings
from hostpanel.core.exceptions import AuthenticationError
from hostpanel.core.security import verify_token
from hostpanel.database import get_async_session
from hostpanel.models import Profile
from hostpanel.services.allocation_service import AllocationService
from hostpanel.services.core_service import CoreService
from hostpanel.services.database_host_service import DatabaseHostService
from hostpanel.services.database_service import DatabaseService
from hostpanel.services.node_helper_service import NodeHelperService
from hostpanel.services.node_service import NodeService
from hostpanel.services.server_service import ServerService
from hostpanel.utils.context import set_context

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async for session in get_async_session():
        yield session


async def get_current_profile(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Resolve the bearer token to an active profile."""
    profile_id = verify_token(token, token_type="access")
    if profile_id is None:
        raise AuthenticationError("Could not validate credentials")

    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise AuthenticationError("Profile not found")

    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive profile",
        )

    set_context(user_id=profile.id, user_name=profile.username)
    return profile


async def get_current_admin(
    profile: Annotated[Profile, Depends(get_current_profile)],
) -> Profile:
    """Require the admin flag."""
    if not profile.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions. Admin required.",
        )
    return profile


def get_daemon_token() -> str:
    """Shared secret sent to node daemons."""
    return settings.DAEMON_TOKEN


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentProfile = Annotated[Profile, Depends(get_current_profile)]
CurrentAdmin = Annotated[Profile, Depends(get_current_admin)]
DaemonToken = Annotated[str, Depends(get_daemon_token)]


def get_node_service() -> NodeService:
    return NodeService()


def get_allocation_service() -> AllocationService:
    return AllocationService()


def get_core_service() -> CoreService:
    return CoreService()


def get_database_host_service() -> DatabaseHostService:
    return DatabaseHostService()


def get_database_service() -> DatabaseService:
    return DatabaseService()


def get_server_service() -> ServerService:
    return ServerService()


def get_node_helper_service() -> NodeHelperService:
    return NodeHelperService()
