"""MySQL client used to probe database hosts and run provisioning DDL."""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence, Tuple

import aiomysql

from hostpanel.config import settings
from hostpanel.utils.logger import get_logger, log_timer
from hostpanel.utils.telemetry import get_tracer, add_span_attributes, add_span_event

logger = get_logger(__name__)
tracer = get_tracer()

Statement = Tuple[str, Sequence[str]]


class MySQLError(Exception):
    """Connection or statement failure on a database host."""

    pass


def _ssl_context() -> Optional[ssl.SSLContext]:
    """TLS without certificate verification, enabled by ``MYSQL_SSL``."""
    if not settings.MYSQL_SSL:
        return None
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _quote(identifier: str) -> str:
    return "`" + identifier.replace("`", "``") + "`"


class MySQLClient:
    """Async client bound to one database host profile.

    Names passed to the DDL helpers are expected to be sanitized already
    (``[a-z0-9_]``); user names and passwords are sent as bound arguments.
    """

    def __init__(self, host: str, port: int, username: str, password: str):
        self.host = host
        self.port = port
        self.username = username
        self.password = password

    @classmethod
    def for_host(cls, database_host) -> "MySQLClient":
        """Build a client from a ``DatabaseHost`` record or schema."""
        return cls(
            host=database_host.host,
            port=database_host.port,
            username=database_host.username,
            password=database_host.password,
        )

    @asynccontextmanager
    async def connect(self, timeout: Optional[int] = None) -> AsyncIterator:
        """Open a short-lived autocommit connection."""
        try:
            conn = await aiomysql.connect(
                host=self.host,
                port=self.port,
                user=self.username,
                password=self.password,
                connect_timeout=timeout or settings.MYSQL_CONNECT_TIMEOUT,
                ssl=_ssl_context(),
                autocommit=True,
            )
        except (aiomysql.Error, OSError, asyncio.TimeoutError) as e:
            raise MySQLError(str(e) or type(e).__name__) from e

        try:
            yield conn
        finally:
            conn.close()

    async def execute(self, statements: Sequence[Statement]) -> None:
        """Run statements in order on one connection, stopping at the first failure."""
        async with self.connect() as conn:
            async with conn.cursor() as cursor:
                for sql, args in statements:
                    try:
                        await cursor.execute(sql, args or None)
                    except aiomysql.Error as e:
                        raise MySQLError(str(e)) from e

    async def ping(self, timeout: Optional[int] = None) -> None:
        """
        Round-trip ``SELECT 1``.

        Raises:
            MySQLError: If the host cannot be reached or the query fails
        """
        with tracer.start_as_current_span("mysql.ping"):
            add_span_attributes(**{"mysql.host": self.host, "mysql.port": self.port})
            async with self.connect(timeout or settings.MYSQL_PROBE_TIMEOUT) as conn:
                async with conn.cursor() as cursor:
                    try:
                        await cursor.execute("SELECT 1")
                        await cursor.fetchone()
                    except aiomysql.Error as e:
                        raise MySQLError(str(e)) from e

    async def create_database(self, db_name: str, username: str, password: str) -> None:
        """
        Create a database and a user owning it.

        On failure the database and user are dropped best-effort and the
        original error is raised.

        Raises:
            MySQLError: If any statement fails
        """
        with tracer.start_as_current_span("mysql.create_database") as span:
            add_span_attributes(
                **{"mysql.host": self.host, "mysql.database": db_name}
            )
            logger.info(
                "Creating database",
                extra={"db_host": self.host, "database": db_name, "db_user": username},
            )

            try:
                with log_timer("mysql_create_database", logger):
                    await self.execute(
                        [
                            (f"CREATE DATABASE {_quote(db_name)}", ()),
                            (
                                "CREATE USER IF NOT EXISTS %s@'%%' IDENTIFIED BY %s",
                                (username, password),
                            ),
                            (
                                f"GRANT ALL PRIVILEGES ON {_quote(db_name)}.* TO %s@'%%'",
                                (username,),
                            ),
                            ("FLUSH PRIVILEGES", ()),
                        ]
                    )
            except MySQLError as e:
                span.record_exception(e)
                logger.error(
                    "Database creation failed, cleaning up",
                    extra={"db_host": self.host, "database": db_name, "error": str(e)},
                )
                await self._cleanup(db_name, username)
                raise

            add_span_event("database_created", {"database": db_name})

    async def _cleanup(self, db_name: str, username: str) -> None:
        for sql, args in (
            (f"DROP DATABASE IF EXISTS {_quote(db_name)}", ()),
            ("DROP USER IF EXISTS %s@'%%'", (username,)),
        ):
            try:
                await self.execute([(sql, args)])
            except MySQLError as e:
                logger.error(
                    "Cleanup statement failed",
                    extra={"db_host": self.host, "statement": sql, "error": str(e)},
                )

    async def drop_database(self, db_name: str, username: str) -> None:
        """
        Drop the user, then the database, then flush privileges.

        Raises:
            MySQLError: If any statement fails
        """
        with tracer.start_as_current_span("mysql.drop_database"):
            add_span_attributes(
                **{"mysql.host": self.host, "mysql.database": db_name}
            )
            logger.info(
                "Dropping database",
                extra={"db_host": self.host, "database": db_name, "db_user": username},
            )
            with log_timer("mysql_drop_database", logger):
                await self.execute(
                    [
                        ("DROP USER IF EXISTS %s@'%%'", (username,)),
                        (f"DROP DATABASE IF EXISTS {_quote(db_name)}", ()),
                        ("FLUSH PRIVILEGES", ()),
                    ]
                )
