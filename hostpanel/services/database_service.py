"""Provisioning of MySQL databases for servers."""

import re
import secrets
import string
import time
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from hostpanel.clients.mysql import MySQLClient, MySQLError
from hostpanel.config import settings
from hostpanel.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from hostpanel.models import DatabaseHost, Profile, Server
from hostpanel.services.database_host_service import DatabaseHostService
from hostpanel.services.server_service import ensure_can_manage
from hostpanel.utils.context import operation_context
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes, add_span_event

logger = get_logger(__name__)
tracer = get_tracer()

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*_-"


def generate_password(length: Optional[int] = None) -> str:
    """Random password drawn from letters, digits and ``!@#$%^&*_-``."""
    length = length or settings.DATABASE_PASSWORD_LENGTH
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def derive_names(server_id: str, requested_name: str) -> Tuple[str, str]:
    """
    Database and user names for a server.

    ``requested_name`` is lower-cased and reduced to ``[a-z0-9_]`` (at most
    20 characters, ``db`` when nothing is left). The short server id is the
    part before its first dash.

    Returns:
        ``(database_name, username)``, at most 64 and 32 characters
    """
    short = server_id.split("-")[0]
    safe = re.sub(r"[^a-z0-9_]", "", requested_name.lower())[:20] or "db"
    return f"s{short}_{safe}"[:64], f"u{short}_{safe}"[:32]


class DatabaseService:
    """Create and drop databases on the configured MySQL hosts."""

    def __init__(
        self,
        client_factory: Callable[..., MySQLClient] = MySQLClient,
        hosts: Optional[DatabaseHostService] = None,
    ):
        self.client_factory = client_factory
        self.hosts = hosts or DatabaseHostService(client_factory)

    def _client(self, host: DatabaseHost) -> MySQLClient:
        return self.client_factory(
            host=host.host,
            port=host.port,
            username=host.username,
            password=host.password,
        )

    async def select_host(self, session: AsyncSession) -> DatabaseHost:
        """
        First host, in listing order, that answers a probe.

        Raises:
            ValidationError: If no host is configured
            UpstreamUnavailableError: If no host answers
        """
        hosts = await self.hosts.list(session)
        if not hosts:
            raise ValidationError("No database host is configured")

        for host in hosts:
            try:
                await self._client(host).ping(settings.MYSQL_PROBE_TIMEOUT)
            except MySQLError as e:
                logger.warning(
                    "Database host unreachable, trying next",
                    extra={"database_host_id": host.id, "error": str(e)},
                )
                continue
            add_span_event("database_host_selected", {"database_host.id": host.id})
            return host

        raise UpstreamUnavailableError("No database host is available")

    async def create(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        requested_name: str,
    ) -> Dict[str, Any]:
        """
        Provision a database and user for a server.

        Returns:
            The database record stored on the server

        Raises:
            NotFoundError: Server missing
            PermissionDeniedError: Caller is neither owner nor admin
            ValidationError: Quota reached or no host configured
            ConflictError: The server already has a database with that name
            UpstreamUnavailableError: No host answered
            InternalError: The DDL failed (cleanup attempted)
        """
        with tracer.start_as_current_span("service.database.create"), operation_context(
            "server.database.create", user_id=profile.id, server_id=server_id
        ):
            server = await session.get(Server, server_id)
            if server is None:
                raise NotFoundError(f"Server '{server_id}' not found")
            ensure_can_manage(profile, server)

            if len(server.databases) >= server.databases_quantity:
                raise ValidationError(
                    f"Database limit reached ({server.databases_quantity})"
                )

            db_name, username = derive_names(server.id, requested_name)
            if any(d.get("name") == db_name for d in server.databases):
                raise ConflictError(f"Database '{db_name}' already exists")

            host = await self.select_host(session)
            add_span_attributes(
                **{"database.name": db_name, "database_host.id": host.id}
            )

            password = generate_password()
            try:
                await self._client(host).create_database(db_name, username, password)
            except MySQLError as e:
                raise InternalError(f"Failed to create database: {e}") from e

            record = {
                "id": db_name,
                "host_id": host.id,
                "host": host.host,
                "port": host.port,
                "phpmyadmin_link": host.phpmyadmin_link,
                "name": db_name,
                "username": username,
                "password": password,
                "created_at": int(time.time() * 1000),
            }
            server.databases = [*server.databases, record]
            session.add(server)
            await session.commit()
            await session.refresh(server)

            logger.info(
                "Database created",
                extra={"database": db_name, "database_host_id": host.id},
            )
            return record

    async def delete(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        name: str,
    ) -> None:
        """
        Drop a server's database and its user, then forget the record.

        Raises:
            NotFoundError: Server, record or host missing
            PermissionDeniedError: Caller is neither owner nor admin
            InternalError: The drop failed; the record is kept
        """
        with tracer.start_as_current_span("service.database.delete"), operation_context(
            "server.database.delete", user_id=profile.id, server_id=server_id
        ):
            server = await session.get(Server, server_id)
            if server is None:
                raise NotFoundError(f"Server '{server_id}' not found")
            ensure_can_manage(profile, server)

            record = next((d for d in server.databases if d.get("name") == name), None)
            if record is None:
                raise NotFoundError(f"Database '{name}' not found")

            host = await session.get(DatabaseHost, record["host_id"])
            if host is None:
                raise NotFoundError(
                    f"Database host '{record['host_id']}' no longer exists"
                )

            try:
                await self._client(host).drop_database(record["name"], record["username"])
            except MySQLError as e:
                logger.error(
                    "Failed to drop database",
                    extra={"database": name, "database_host_id": host.id, "error": str(e)},
                )
                raise InternalError(f"Failed to delete database: {e}") from e

            server.databases = [d for d in server.databases if d.get("name") != name]
            session.add(server)
            await session.commit()

            logger.info("Database deleted", extra={"database": name})
