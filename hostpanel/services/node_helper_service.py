"""Answers to node daemon callbacks: server permissions, SFTP logins and admin lookups."""

import secrets
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from hostpanel.core.security import verify_password
from hostpanel.models import Profile, Server
from hostpanel.services.server_service import ensure_can_manage
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer

logger = get_logger(__name__)
tracer = get_tracer()


def check_daemon_token(token: Optional[str], expected: str) -> None:
    """
    Raises:
        ValidationError: No token was sent
        PermissionDeniedError: The token does not match
    """
    if not token:
        raise ValidationError("Token is required")
    if not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning("Daemon callback with invalid token")
        raise PermissionDeniedError("Invalid token")


class NodeHelperService:
    """Read-only checks performed on behalf of node daemons."""

    async def _profile(self, session: AsyncSession, profile_id: str) -> Profile:
        profile = await session.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError("User not found")
        return profile

    async def _server(self, session: AsyncSession, server_id: str) -> Server:
        server = await session.get(Server, server_id)
        if server is None:
            raise NotFoundError(f"Server '{server_id}' not found")
        return server

    async def has_permission(
        self, session: AsyncSession, profile_id: str, server_id: str
    ) -> bool:
        """Whether the profile owns the server or is an admin."""
        with tracer.start_as_current_span("service.node_helper.permission"):
            profile = await self._profile(session, profile_id)
            server = await self._server(session, server_id)
            try:
                ensure_can_manage(profile, server)
            except PermissionDeniedError:
                return False
            return True

    async def verify_sftp(
        self, session: AsyncSession, username: str, password: str, server_id: str
    ) -> bool:
        """
        Check SFTP credentials, then the same owner-or-admin rule.

        Raises:
            NotFoundError: Unknown username or server
            PermissionDeniedError: Wrong password or inactive profile
        """
        with tracer.start_as_current_span("service.node_helper.verify_sftp"):
            result = await session.execute(select(Profile).where(Profile.username == username))
            profile = result.scalars().first()
            if profile is None:
                raise NotFoundError("User not found")
            if not profile.is_active or not verify_password(password, profile.hashed_password):
                logger.warning(
                    "SFTP login rejected",
                    extra={"login": username, "target_server": server_id},
                )
                raise PermissionDeniedError("Invalid password")

            server = await self._server(session, server_id)
            try:
                ensure_can_manage(profile, server)
            except PermissionDeniedError:
                return False
            return True

    async def is_admin(self, session: AsyncSession, profile_id: str) -> bool:
        return (await self._profile(session, profile_id)).admin
