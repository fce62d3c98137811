"""Database host pool service."""

from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.clients.mysql import MySQLClient, MySQLError
from hostpanel.core.exceptions import ConflictError, NotFoundError, ValidationError
from hostpanel.models import DatabaseHost
from hostpanel.schemas.database_host import DatabaseHostCreate, DatabaseHostUpdate
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes

logger = get_logger(__name__)
tracer = get_tracer()

ClientFactory = Callable[..., MySQLClient]


class DatabaseHostService:
    """CRUD over MySQL connection profiles.

    Every create and update opens a test connection with the resulting
    credentials before anything is stored.
    """

    def __init__(self, client_factory: ClientFactory = MySQLClient):
        self.client_factory = client_factory

    async def list(self, session: AsyncSession) -> List[DatabaseHost]:
        """Hosts in listing order, which is also the provisioning order."""
        result = await session.execute(
            select(DatabaseHost).order_by(DatabaseHost.created_at, DatabaseHost.name)
        )
        return list(result.scalars().all())

    async def get(self, session: AsyncSession, host_id: str) -> DatabaseHost:
        host = await session.get(DatabaseHost, host_id)
        if host is None:
            raise NotFoundError(f"Database host '{host_id}' not found")
        return host

    async def find_by_name(
        self, session: AsyncSession, name: str
    ) -> Optional[DatabaseHost]:
        result = await session.execute(
            select(DatabaseHost).where(DatabaseHost.name == name)
        )
        return result.scalars().first()

    async def test_connection(
        self, host: str, port: int, username: str, password: str
    ) -> None:
        """
        Open a connection and run ``SELECT 1``.

        Raises:
            ValidationError: If the host cannot be used
        """
        client = self.client_factory(
            host=host, port=port, username=username, password=password
        )
        try:
            await client.ping()
        except MySQLError as e:
            logger.warning(
                "MySQL connection test failed",
                extra={"db_host": host, "port": port, "error": str(e)},
            )
            raise ValidationError(f"Failed to connect to MySQL: {e}") from e

    async def create(
        self, session: AsyncSession, data: DatabaseHostCreate
    ) -> DatabaseHost:
        """
        Register a host after a successful connection test.

        Raises:
            ConflictError: If the name is taken
            ValidationError: If the connection test fails
        """
        with tracer.start_as_current_span("service.database_host.create"):
            add_span_attributes(**{"database_host.name": data.name})
            if await self.find_by_name(session, data.name) is not None:
                raise ConflictError(f"A database host named '{data.name}' already exists")

            await self.test_connection(data.host, data.port, data.username, data.password)

            host = DatabaseHost(**data.model_dump())
            session.add(host)
            await session.commit()
            await session.refresh(host)

            logger.info(
                "Database host created",
                extra={"database_host_id": host.id, "db_host": host.host},
            )
            return host

    async def update(
        self, session: AsyncSession, host_id: str, data: DatabaseHostUpdate
    ) -> DatabaseHost:
        """
        Merge ``data`` into the stored profile, test it, then save.

        Raises:
            NotFoundError: If the host does not exist
            ConflictError: If the new name belongs to another host
            ValidationError: If the merged profile cannot connect
        """
        with tracer.start_as_current_span("service.database_host.update"):
            add_span_attributes(**{"database_host.id": host_id})
            host = await self.get(session, host_id)
            changes = data.model_dump(exclude_unset=True, exclude_none=True)

            if "name" in changes:
                existing = await self.find_by_name(session, changes["name"])
                if existing is not None and existing.id != host_id:
                    raise ConflictError(
                        f"A database host named '{changes['name']}' already exists"
                    )

            merged = {
                "host": changes.get("host", host.host),
                "port": changes.get("port", host.port),
                "username": changes.get("username", host.username),
                "password": changes.get("password", host.password),
            }
            await self.test_connection(**merged)

            for field, value in changes.items():
                setattr(host, field, value)

            session.add(host)
            await session.commit()
            await session.refresh(host)

            logger.info(
                "Database host updated",
                extra={"database_host_id": host.id, "fields": sorted(changes)},
            )
            return host

    async def delete(self, session: AsyncSession, host_id: str) -> None:
        host = await self.get(session, host_id)
        await session.delete(host)
        await session.commit()
        logger.info("Database host deleted", extra={"database_host_id": host_id})
