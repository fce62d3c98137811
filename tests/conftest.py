"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DAEMON_TOKEN", "test-daemon-token")

from typing import AsyncGenerator, Dict, List, Tuple  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from opentelemetry import trace  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from hostpanel.api.deps import (  # noqa: E402
    get_database_host_service,
    get_database_service,
    get_db,
    get_node_service,
    get_server_service,
)
from hostpanel.clients.daemon import DaemonError, NodeHealth, NodeStatus  # noqa: E402
from hostpanel.clients.mysql import MySQLError  # noqa: E402
from hostpanel.core.security import create_access_token  # noqa: E402
from hostpanel.main import app  # noqa: E402
from hostpanel.middleware.rate_limit import limiter  # noqa: E402
from hostpanel.models import Allocation, Core, DatabaseHost, Node, Profile  # noqa: E402
from hostpanel.services.database_host_service import DatabaseHostService  # noqa: E402
from hostpanel.services.database_service import DatabaseService  # noqa: E402
from hostpanel.services.node_service import NodeService  # noqa: E402
from hostpanel.services.profile_service import create_profile  # noqa: E402
from hostpanel.services.server_service import ServerService  # noqa: E402


class FakeDaemon:
    """Stands in for ``DaemonClient``; used as the daemon factory of the services."""

    def __init__(self):
        self.online = True
        self.failing: set = set()
        self.calls: List[Tuple[str, tuple]] = []
        self.tokens: List[str] = []

    def __call__(self, node: Node, token: str) -> "FakeDaemon":
        self.tokens.append(token)
        return self

    async def __aenter__(self) -> "FakeDaemon":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    def called(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    async def _record(self, name: str, *args) -> Dict:
        self.calls.append((name, args))
        if name in self.failing:
            raise DaemonError(f"{name} rejected by daemon")
        return {"status": "success"}

    async def get_status(self) -> NodeHealth:
        if self.online:
            return NodeHealth(NodeStatus.ONLINE)
        return NodeHealth(NodeStatus.OFFLINE, "Connection refused")

    async def create_server(self, server_id, user_id):
        return await self._record("create_server", server_id, user_id)

    async def delete_server(self, server_id, user_id):
        return await self._record("delete_server", server_id, user_id)

    async def send_action(self, payload):
        return await self._record("send_action", payload)

    async def server_status(self, server_id):
        return await self._record("server_status", server_id)

    async def server_usage(self, server_id, user_id):
        return await self._record("server_usage", server_id, user_id)

    async def file_manager(self, operation, payload):
        return await self._record("file_manager", operation, payload)


class FakeMySQL:
    """Stands in for ``MySQLClient``; one instance tracks every host."""

    def __init__(self):
        self.unreachable: set = set()
        self.fail_create = False
        self.fail_drop = False
        self.pinged: List[str] = []
        self.created: List[Tuple[str, str, str]] = []
        self.dropped: List[Tuple[str, str, str]] = []

    def __call__(self, host, port, username, password) -> "_FakeMySQLClient":
        return _FakeMySQLClient(self, host)


class _FakeMySQLClient:
    def __init__(self, fake: FakeMySQL, host: str):
        self.fake = fake
        self.host = host

    async def ping(self, timeout=None) -> None:
        self.fake.pinged.append(self.host)
        if self.host in self.fake.unreachable:
            raise MySQLError(f"Can't connect to MySQL server on '{self.host}'")

    async def create_database(self, db_name, username, password) -> None:
        if self.fake.fail_create:
            raise MySQLError("Access denied for user")
        self.fake.created.append((self.host, db_name, username))

    async def drop_database(self, db_name, username) -> None:
        if self.fake.fail_drop:
            raise MySQLError("Lost connection to MySQL server")
        self.fake.dropped.append((self.host, db_name, username))


@pytest_asyncio.fixture(scope="function")
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Fresh SQLite database for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hostpanel.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def fake_daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def fake_mysql() -> FakeMySQL:
    return FakeMySQL()


@pytest.fixture
def server_service(fake_daemon: FakeDaemon) -> ServerService:
    return ServerService(daemon_factory=fake_daemon)


@pytest.fixture
def database_service(fake_mysql: FakeMySQL) -> DatabaseService:
    return DatabaseService(client_factory=fake_mysql)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, fake_daemon: FakeDaemon, fake_mysql: FakeMySQL
) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test database and the fake daemon/MySQL."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_server_service] = lambda: ServerService(
        daemon_factory=fake_daemon
    )
    app.dependency_overrides[get_node_service] = lambda: NodeService(
        daemon_factory=fake_daemon
    )
    app.dependency_overrides[get_database_service] = lambda: DatabaseService(
        client_factory=fake_mysql
    )
    app.dependency_overrides[get_database_host_service] = lambda: DatabaseHostService(
        client_factory=fake_mysql
    )
    limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> Profile:
    return await create_profile(
        db_session, "admin@example.com", "admin", "admin-password", admin=True
    )


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> Profile:
    return await create_profile(db_session, "owner@example.com", "owner", "owner-password")


@pytest_asyncio.fixture
async def stranger(db_session: AsyncSession) -> Profile:
    return await create_profile(
        db_session, "stranger@example.com", "stranger", "stranger-password"
    )


def auth_headers(profile: Profile) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(profile.id)}"}


@pytest.fixture
def admin_headers(admin: Profile) -> Dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def owner_headers(owner: Profile) -> Dict[str, str]:
    return auth_headers(owner)


@pytest.fixture
def stranger_headers(stranger: Profile) -> Dict[str, str]:
    return auth_headers(stranger)


async def _save(session: AsyncSession, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def node(db_session: AsyncSession) -> Node:
    return await _save(
        db_session, Node(name="node-1", ip="10.0.0.1", port=8080, sftp_port=2022)
    )


@pytest_asyncio.fixture
async def other_node(db_session: AsyncSession) -> Node:
    return await _save(
        db_session, Node(name="node-2", ip="10.0.0.2", port=8080, sftp_port=2022)
    )


@pytest_asyncio.fixture
async def core(db_session: AsyncSession) -> Core:
    return await _save(
        db_session,
        Core(
            name="Minecraft",
            startup_command="java -jar {{SERVER_JAR}}",
            stop_command="stop",
            docker_images=[{"name": "Java 17", "image": "example/java:17"}],
            variables=[
                {
                    "name": "Server jar",
                    "description": "Jar file to run",
                    "env_variable": "SERVER_JAR",
                    "rules": "required|default:server.jar",
                }
            ],
        ),
    )


@pytest_asyncio.fixture
async def allocation(db_session: AsyncSession, node: Node) -> Allocation:
    return await _save(db_session, Allocation(node_id=node.id, ip="10.0.0.1", port=25565))


@pytest_asyncio.fixture
async def spare_allocations(db_session: AsyncSession, node: Node) -> List[Allocation]:
    created = []
    for port in (25566, 25567, 25568):
        created.append(
            await _save(db_session, Allocation(node_id=node.id, ip="10.0.0.1", port=port))
        )
    return created


@pytest_asyncio.fixture
async def database_hosts(db_session: AsyncSession) -> List[DatabaseHost]:
    h1 = await _save(
        db_session,
        DatabaseHost(
            name="h1", host="10.0.1.1", port=3306, username="root", password="secret-1"
        ),
    )
    h2 = await _save(
        db_session,
        DatabaseHost(
            name="h2",
            host="10.0.1.2",
            port=3307,
            username="root",
            password="secret-2",
            phpmyadmin_link="https://pma.example.com",
        ),
    )
    return [h1, h2]


@pytest.fixture(scope="session", autouse=True)
def shutdown_tracer_provider():
    """Flush and shut down the tracer provider once the session ends."""
    yield

    tracer_provider = trace.get_tracer_provider()
    if hasattr(tracer_provider, "force_flush"):
        tracer_provider.force_flush(timeout_millis=5000)
    if hasattr(tracer_provider, "shutdown"):
        tracer_provider.shutdown()
