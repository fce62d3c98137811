"""Tests for server lifecycle orchestration."""

from typing import List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UpstreamUnavailableError,
    ValidationError,
)
from hostpanel.models import Allocation, Core, Node, Profile, Server, ServerStatus
from hostpanel.schemas.server import ServerCreate, ServerUpdate
from hostpanel.services.allocation_service import AllocationService
from hostpanel.services.server_service import (
    ServerService,
    build_file_manager_payload,
    ensure_can_manage,
)

TOKEN = "node-token"


def _create_data(owner: Profile, core: Core, node: Node, allocation: Allocation, **overrides):
    data = dict(
        name="survival",
        owner_id=owner.id,
        core_id=core.id,
        node_id=node.id,
        primary_allocation_id=allocation.id,
        docker_image="example/java:17",
        additional_allocations_limit=2,
        databases_quantity=1,
    )
    data.update(overrides)
    return ServerCreate(**data)


class RacingAllocations(AllocationService):
    """Allocation pool where some allocations are grabbed by someone else first."""

    def __init__(self, lost: List[str]):
        self.lost = lost

    async def assign(self, session, allocation_id, server_id, node_id=None):
        if allocation_id in self.lost:
            raise ConflictError(f"Allocation '{allocation_id}' is not available")
        await super().assign(session, allocation_id, server_id, node_id=node_id)


async def _servers(session: AsyncSession) -> List[Server]:
    result = await session.execute(select(Server))
    return list(result.scalars().all())


@pytest_asyncio.fixture
async def server(
    db_session: AsyncSession,
    server_service: ServerService,
    admin: Profile,
    owner: Profile,
    core: Core,
    node: Node,
    allocation: Allocation,
) -> Server:
    server = await server_service.create(
        db_session, admin, _create_data(owner, core, node, allocation), TOKEN
    )
    return server


@pytest.mark.asyncio
class TestCreate:
    """Tests for ServerService.create."""

    async def test_create_server(
        self, db_session, server_service, fake_daemon, admin, owner, core, node, allocation
    ):
        """Defaults are applied, the daemon is called and the allocation is taken."""
        server = await server_service.create(
            db_session, admin, _create_data(owner, core, node, allocation), TOKEN
        )

        assert server.environment == {"SERVER_JAR": "server.jar"}
        assert server.core_name == "Minecraft"
        assert server.status == "stopped"
        assert server.additional_allocation_ids == []
        assert fake_daemon.called("create_server") == [(server.id, admin.id)]
        assert fake_daemon.tokens[-1] == TOKEN

        await db_session.refresh(allocation)
        assert allocation.assigned_to == server.id

    async def test_unknown_owner(self, db_session, server_service, admin, owner, core, node, allocation):
        """Test an unknown owner id."""
        data = _create_data(owner, core, node, allocation, owner_id="nobody")
        with pytest.raises(NotFoundError, match="Owner"):
            await server_service.create(db_session, admin, data, TOKEN)

    async def test_unknown_core(self, db_session, server_service, admin, owner, core, node, allocation):
        """Test an unknown core id."""
        data = _create_data(owner, core, node, allocation, core_id="missing")
        with pytest.raises(NotFoundError):
            await server_service.create(db_session, admin, data, TOKEN)

    async def test_unknown_node(self, db_session, server_service, admin, owner, core, node, allocation):
        """Test an unknown node id."""
        data = _create_data(owner, core, node, allocation, node_id="missing")
        with pytest.raises(NotFoundError):
            await server_service.create(db_session, admin, data, TOKEN)

    async def test_unknown_allocation(
        self, db_session, server_service, admin, owner, core, node, allocation
    ):
        """Test an unknown primary allocation."""
        data = _create_data(owner, core, node, allocation, primary_allocation_id="missing")
        with pytest.raises(NotFoundError):
            await server_service.create(db_session, admin, data, TOKEN)

    async def test_allocation_on_other_node(
        self, db_session, server_service, fake_daemon, admin, owner, core, node, other_node, allocation
    ):
        """Test an allocation that belongs to another node."""
        data = _create_data(owner, core, other_node, allocation)
        with pytest.raises(ValidationError):
            await server_service.create(db_session, admin, data, TOKEN)
        assert fake_daemon.calls == []

    async def test_allocation_in_use(
        self, db_session, server_service, fake_daemon, admin, owner, core, node, allocation
    ):
        """Test an allocation already held by a server."""
        await AllocationService().assign(db_session, allocation.id, "someone-else")

        with pytest.raises(ConflictError):
            await server_service.create(
                db_session, admin, _create_data(owner, core, node, allocation), TOKEN
            )
        assert fake_daemon.calls == []

    async def test_invalid_environment(
        self, db_session, server_service, fake_daemon, admin, owner, core, node, allocation
    ):
        """Rule violations stop creation before the daemon is contacted."""
        core.variables = [
            *core.variables,
            {"name": "Players", "env_variable": "MAX_PLAYERS", "rules": "number"},
        ]
        db_session.add(core)
        await db_session.commit()

        data = _create_data(owner, core, node, allocation, environment={"MAX_PLAYERS": "lots"})
        with pytest.raises(ValidationError):
            await server_service.create(db_session, admin, data, TOKEN)
        assert fake_daemon.calls == []

    async def test_daemon_failure_leaves_nothing(
        self, db_session, server_service, fake_daemon, admin, owner, core, node, allocation
    ):
        """Test that a daemon failure rolls the creation back."""
        fake_daemon.failing.add("create_server")

        with pytest.raises(UpstreamUnavailableError):
            await server_service.create(
                db_session, admin, _create_data(owner, core, node, allocation), TOKEN
            )

        assert await _servers(db_session) == []
        await db_session.refresh(allocation)
        assert allocation.assigned_to is None

    async def test_lost_allocation_race_removes_record(
        self, db_session, fake_daemon, admin, owner, core, node, allocation
    ):
        """If the allocation is taken between check and assignment the record is discarded."""
        service = ServerService(
            daemon_factory=fake_daemon, allocations=RacingAllocations([allocation.id])
        )

        with pytest.raises(ConflictError):
            await service.create(
                db_session, admin, _create_data(owner, core, node, allocation), TOKEN
            )

        assert await _servers(db_session) == []


@pytest.mark.asyncio
class TestDelete:
    async def test_delete_releases_allocations(
        self, db_session, server_service, fake_daemon, admin, server, allocation
    ):
        """Test that deletion frees the allocations."""
        await server_service.delete(db_session, admin, server.id, TOKEN)

        assert fake_daemon.called("delete_server") == [(server.id, admin.id)]
        assert await _servers(db_session) == []
        await db_session.refresh(allocation)
        assert allocation.assigned_to is None

    async def test_daemon_failure_keeps_everything(
        self, db_session, server_service, fake_daemon, admin, server, allocation
    ):
        """Test that a daemon failure keeps the server."""
        fake_daemon.failing.add("delete_server")

        with pytest.raises(UpstreamUnavailableError):
            await server_service.delete(db_session, admin, server.id, TOKEN)

        assert len(await _servers(db_session)) == 1
        await db_session.refresh(allocation)
        assert allocation.assigned_to == server.id

    async def test_missing_server(self, db_session, server_service, admin):
        """Test a missing server id."""
        with pytest.raises(NotFoundError):
            await server_service.delete(db_session, admin, "missing", TOKEN)


@pytest.mark.asyncio
class TestUpdate:
    """Tests for the admin edit."""

    async def test_plain_fields(self, db_session, server_service, server):
        """Test updating resource fields."""
        updated = await server_service.update(
            db_session, server.id, ServerUpdate(ram=2048, name="creative")
        )
        assert updated.ram == 2048
        assert updated.name == "creative"

    async def test_add_and_remove_additional(
        self, db_session, server_service, server, spare_allocations
    ):
        """Test changing the additional allocations."""
        first, second, _ = spare_allocations
        await server_service.update(
            db_session, server.id, ServerUpdate(additional_allocation_ids=[first.id, second.id])
        )
        await db_session.refresh(first)
        assert first.assigned_to == server.id

        updated = await server_service.update(
            db_session, server.id, ServerUpdate(additional_allocation_ids=[second.id])
        )

        assert updated.additional_allocation_ids == [second.id]
        await db_session.refresh(first)
        await db_session.refresh(second)
        assert first.assigned_to is None
        assert second.assigned_to == server.id

    async def test_duplicates_and_primary_dropped(
        self, db_session, server_service, server, allocation, spare_allocations
    ):
        """Test that duplicates and the primary are dropped from the extras."""
        first = spare_allocations[0]
        updated = await server_service.update(
            db_session,
            server.id,
            ServerUpdate(additional_allocation_ids=[first.id, first.id, allocation.id]),
        )
        assert updated.additional_allocation_ids == [first.id]

    async def test_swap_primary(self, db_session, server_service, server, allocation, spare_allocations):
        """Test replacing the primary allocation."""
        new_primary = spare_allocations[0]
        updated = await server_service.update(
            db_session, server.id, ServerUpdate(primary_allocation_id=new_primary.id)
        )

        assert updated.primary_allocation_id == new_primary.id
        await db_session.refresh(allocation)
        await db_session.refresh(new_primary)
        assert allocation.assigned_to is None
        assert new_primary.assigned_to == server.id

    async def test_quota_checked_before_any_change(
        self, db_session, server_service, server, spare_allocations
    ):
        """Test that the quota is checked before anything changes."""
        ids = [a.id for a in spare_allocations]
        with pytest.raises(ValidationError, match="At most 2"):
            await server_service.update(
                db_session, server.id, ServerUpdate(additional_allocation_ids=ids, ram=1)
            )

        for a in spare_allocations:
            await db_session.refresh(a)
            assert a.assigned_to is None
        assert (await db_session.get(Server, server.id)).ram == 1024

    async def test_allocation_on_other_node(
        self, db_session, server_service, server, other_node, spare_allocations
    ):
        """Test an allocation that belongs to another node."""
        foreign = Allocation(node_id=other_node.id, ip="10.0.0.2", port=30000)
        db_session.add(foreign)
        await db_session.commit()

        with pytest.raises(ValidationError, match="another node"):
            await server_service.update(
                db_session,
                server.id,
                ServerUpdate(additional_allocation_ids=[spare_allocations[0].id, foreign.id]),
            )

        await db_session.refresh(spare_allocations[0])
        assert spare_allocations[0].assigned_to is None

    async def test_allocation_in_use(self, db_session, server_service, server, spare_allocations):
        """Test an allocation already held by a server."""
        await AllocationService().assign(db_session, spare_allocations[1].id, "other-server")

        with pytest.raises(ConflictError):
            await server_service.update(
                db_session,
                server.id,
                ServerUpdate(
                    additional_allocation_ids=[spare_allocations[0].id, spare_allocations[1].id]
                ),
            )

    async def test_lost_race_rolls_back_new_assignments(
        self, db_session, fake_daemon, server, spare_allocations
    ):
        """Test that a lost assignment race undoes earlier assignments."""
        first, second, _ = spare_allocations
        service = ServerService(
            daemon_factory=fake_daemon, allocations=RacingAllocations([second.id])
        )

        with pytest.raises(ConflictError):
            await service.update(
                db_session, server.id, ServerUpdate(additional_allocation_ids=[first.id, second.id])
            )

        await db_session.refresh(first)
        assert first.assigned_to is None
        assert (await db_session.get(Server, server.id)).additional_allocation_ids == []

    async def test_unknown_owner(self, db_session, server_service, server):
        """Test an unknown owner id."""
        with pytest.raises(NotFoundError):
            await server_service.update(db_session, server.id, ServerUpdate(owner_id="nobody"))

    async def test_change_core_revalidates_environment(
        self, db_session, server_service, server
    ):
        """Test that a core change revalidates the environment."""
        other = Core(
            name="Bedrock",
            variables=[{"name": "Level", "env_variable": "LEVEL", "rules": "required|default:world"}],
        )
        db_session.add(other)
        await db_session.commit()

        updated = await server_service.update(db_session, server.id, ServerUpdate(core_id=other.id))

        assert updated.core_name == "Bedrock"
        assert updated.environment["LEVEL"] == "world"

    async def test_invalid_environment(self, db_session, server_service, server):
        """Test rejection of an environment that breaks the rules."""
        core = await db_session.get(Core, server.core_id)
        core.variables = [{"name": "Jar", "env_variable": "SERVER_JAR", "rules": "required"}]
        db_session.add(core)
        await db_session.commit()

        with pytest.raises(ValidationError):
            await server_service.update(
                db_session, server.id, ServerUpdate(environment={"SERVER_JAR": ""})
            )
        assert (await db_session.get(Server, server.id)).environment == {
            "SERVER_JAR": "server.jar"
        }


@pytest.mark.asyncio
class TestSelfService:
    """Owner operations on their own server."""

    async def test_stranger_denied(self, db_session, server_service, stranger, server):
        """Test that other users are denied."""
        with pytest.raises(PermissionDeniedError):
            await server_service.get(db_session, stranger, server.id)

    async def test_admin_allowed(self, db_session, server_service, admin, server):
        """Test that admins may manage any server."""
        assert (await server_service.get(db_session, admin, server.id)).id == server.id

    async def test_get_detail(self, db_session, server_service, owner, node, allocation, server):
        """Test that the detail view resolves node, owner and primary allocation."""
        server.status = ServerStatus.STARTING.value
        db_session.add(server)
        await db_session.commit()

        detail = await server_service.get_detail(db_session, owner, server.id)

        assert detail.status == "initializing"
        assert detail.owner.username == "owner"
        assert (detail.node.ip, detail.node.sftp_port) == (node.ip, node.sftp_port)
        assert detail.primary_allocation.port == allocation.port
        assert detail.core.name == "Minecraft"

    async def test_get_detail_missing_allocation(
        self, db_session, server_service, owner, allocation, server
    ):
        """Test that a primary allocation deleted out of band shows as None."""
        await db_session.delete(await db_session.get(Allocation, allocation.id))
        await db_session.commit()

        detail = await server_service.get_detail(db_session, owner, server.id)

        assert detail.primary_allocation is None

    async def test_get_detail_stranger_denied(self, db_session, server_service, stranger, server):
        """Test that the detail view applies the owner-or-admin rule."""
        with pytest.raises(PermissionDeniedError):
            await server_service.get_detail(db_session, stranger, server.id)

    async def test_list_for(self, db_session, server_service, admin, owner, server):
        """Test listing the servers of a profile."""
        assert [s.id for s in await server_service.list_for(db_session, owner)] == [server.id]
        assert await server_service.list_for(db_session, admin) == []
        others = await server_service.list_for(db_session, admin, others=True)
        assert [s.id for s in others] == [server.id]

    async def test_list_others_ignored_for_non_admin(self, db_session, server_service, owner, server):
        """Test that the others flag needs an admin."""
        assert len(await server_service.list_for(db_session, owner, others=True)) == 1

    async def test_add_allocation(self, db_session, server_service, owner, server, spare_allocations):
        """Test taking a free allocation."""
        added = await server_service.add_allocation(db_session, owner, server.id)

        assert added.id in {a.id for a in spare_allocations}
        assert added.assigned_to == server.id
        refreshed = await db_session.get(Server, server.id)
        assert refreshed.additional_allocation_ids == [added.id]

    async def test_add_allocation_quota(self, db_session, server_service, owner, server, spare_allocations):
        """Test the additional allocation quota."""
        await server_service.add_allocation(db_session, owner, server.id)
        await server_service.add_allocation(db_session, owner, server.id)

        with pytest.raises(ValidationError, match="limit"):
            await server_service.add_allocation(db_session, owner, server.id)

    async def test_add_allocation_none_free(self, db_session, server_service, owner, server):
        """Test taking an allocation when none is free."""
        with pytest.raises(ValidationError, match="No free allocations"):
            await server_service.add_allocation(db_session, owner, server.id)

    async def test_remove_allocation(self, db_session, server_service, owner, server, spare_allocations):
        """Test giving an additional allocation back."""
        added = await server_service.add_allocation(db_session, owner, server.id)

        updated = await server_service.remove_allocation(db_session, owner, server.id, added.id)

        assert updated.additional_allocation_ids == []
        await db_session.refresh(added)
        assert added.assigned_to is None

    async def test_remove_unattached(self, db_session, server_service, owner, server, allocation):
        """The primary allocation cannot be removed this way."""
        with pytest.raises(ValidationError):
            await server_service.remove_allocation(db_session, owner, server.id, allocation.id)

    async def test_edit_name(self, db_session, server_service, owner, server):
        """Test renaming a server."""
        updated = await server_service.edit_name(db_session, owner, server.id, "hardcore", "No mercy")
        assert updated.name == "hardcore"
        assert updated.description == "No mercy"

    async def test_edit_startup(self, db_session, server_service, owner, server):
        """Test editing the startup settings."""
        updated = await server_service.edit_startup(
            db_session, owner, server.id, {"SERVER_JAR": "paper.jar"}, docker_image="example/java:21"
        )
        assert updated.environment == {"SERVER_JAR": "paper.jar"}
        assert updated.docker_image == "example/java:21"

    async def test_edit_startup_keeps_image_when_omitted(self, db_session, server_service, owner, server):
        """Test that an omitted image keeps the current one."""
        updated = await server_service.edit_startup(db_session, owner, server.id, {})
        assert updated.environment == {"SERVER_JAR": "server.jar"}
        assert updated.docker_image == "example/java:17"


@pytest.mark.asyncio
class TestDaemonPassthrough:
    async def test_start_payload(self, db_session, server_service, fake_daemon, owner, server, allocation):
        """Test the payload sent for a start."""
        await server_service.send_action(db_session, owner, server.id, "start", TOKEN)

        payload = fake_daemon.called("send_action")[0][0]
        assert payload["serverId"] == server.id
        assert payload["action"] == "start"
        assert payload["userUuid"] == owner.id
        assert payload["memory"] == 1024
        assert payload["environment"] == {"SERVER_JAR": "server.jar"}
        assert payload["primaryAllocation"]["port"] == allocation.port
        assert payload["additionalAllocation"] == []
        assert payload["core"]["startupCommand"] == "java -jar {{SERVER_JAR}}"

    async def test_stop_sends_stop_command(self, db_session, server_service, fake_daemon, owner, server):
        """Test that stop sends the core stop command."""
        await server_service.send_action(db_session, owner, server.id, "stop", TOKEN)

        payload = fake_daemon.called("send_action")[0][0]
        assert payload["command"] == "stop"
        assert "core" not in payload

    async def test_console_command(self, db_session, server_service, fake_daemon, owner, server):
        """Test sending a console command."""
        await server_service.send_action(db_session, owner, server.id, "command", TOKEN, command="say hi")
        assert fake_daemon.called("send_action")[0][0]["command"] == "say hi"

    async def test_command_requires_text(self, db_session, server_service, owner, server):
        """Test that a command needs text."""
        with pytest.raises(ValidationError):
            await server_service.send_action(db_session, owner, server.id, "command", TOKEN)

    async def test_unknown_action(self, db_session, server_service, owner, server):
        """Test rejection of an unknown action."""
        with pytest.raises(ValidationError):
            await server_service.send_action(db_session, owner, server.id, "explode", TOKEN)

    async def test_offline_node(self, db_session, server_service, fake_daemon, owner, server):
        """Test actions against an offline node."""
        fake_daemon.online = False

        with pytest.raises(UpstreamUnavailableError, match="offline"):
            await server_service.send_action(db_session, owner, server.id, "start", TOKEN)
        assert fake_daemon.called("send_action") == []

    async def test_daemon_rejects_action(self, db_session, server_service, fake_daemon, owner, server):
        """Test a daemon error during an action."""
        fake_daemon.failing.add("send_action")
        with pytest.raises(UpstreamUnavailableError):
            await server_service.send_action(db_session, owner, server.id, "restart", TOKEN)

    async def test_status_and_usage(self, db_session, server_service, fake_daemon, owner, server):
        """Test status and usage passthrough."""
        await server_service.get_runtime_status(db_session, owner, server.id, TOKEN)
        await server_service.get_usage(db_session, owner, server.id, TOKEN)

        assert fake_daemon.called("server_status") == [(server.id,)]
        assert fake_daemon.called("server_usage") == [(server.id, owner.id)]

    async def test_file_manager(self, db_session, server_service, fake_daemon, owner, server):
        """Test a file manager call."""
        await server_service.file_manager(
            db_session, owner, server.id, "read", {"path": "server.properties", "junk": 1}, TOKEN
        )

        operation, payload = fake_daemon.called("file_manager")[0]
        assert operation == "read"
        assert payload == {"path": "server.properties", "serverId": server.id, "userUuid": owner.id}

    async def test_file_manager_unknown_operation(self, db_session, server_service, owner, server):
        """Test an unknown file operation."""
        with pytest.raises(ValidationError):
            await server_service.file_manager(db_session, owner, server.id, "chmod", {}, TOKEN)

    async def test_file_manager_denied(self, db_session, server_service, stranger, server):
        """Test that other users cannot touch files."""
        with pytest.raises(PermissionDeniedError):
            await server_service.file_manager(db_session, stranger, server.id, "list", {}, TOKEN)


class TestFileManagerPayload:
    """Tests for build_file_manager_payload."""

    def test_list_passes_path(self):
        """Test that list forwards the path."""
        assert build_file_manager_payload("list", {"path": "/"}) == {"path": "/"}

    @pytest.mark.parametrize(
        "operation,body",
        [
            ("write", {"path": "a.txt"}),
            ("rename", {"path": "a.txt"}),
            ("read", {}),
            ("download", {"path": 5}),
            ("mkdir", {"path": "  "}),
            ("move", {"from": "a"}),
            ("upload", {"path": "a.txt"}),
            ("unarchive", {"path": "a.zip"}),
            ("mass", {"action": "chmod", "paths": ["a"]}),
            ("mass", {"action": "delete", "paths": []}),
        ],
    )
    def test_missing_arguments(self, operation, body):
        """Test file operations with missing arguments."""
        with pytest.raises(ValidationError):
            build_file_manager_payload(operation, body)

    def test_mass(self):
        """Test mass file operations."""
        payload = build_file_manager_payload("mass", {"action": "archive", "paths": ["a", "b"]})
        assert payload == {"action": "archive", "paths": ["a", "b"]}

    def test_unarchive(self):
        """Test the unarchive operation."""
        payload = build_file_manager_payload("unarchive", {"path": "a.zip", "destination": "out"})
        assert payload == {"path": "a.zip", "destination": "out"}

    def test_upload_accepts_plain_content(self):
        """Test upload with plain content."""
        payload = build_file_manager_payload("upload", {"path": "a.txt", "content": "hi"})
        assert payload["content"] == "hi"


class TestEnsureCanManage:
    def test_owner_and_admin(self):
        """Test the owner-or-admin rule."""
        server = Server(name="s", owner_id="p1", core_id="c", node_id="n", primary_allocation_id="a")
        ensure_can_manage(Profile(id="p1", username="u", email="e", hashed_password="x"), server)
        ensure_can_manage(
            Profile(id="p2", username="a", email="f", hashed_password="x", admin=True), server
        )

        with pytest.raises(PermissionDeniedError):
            ensure_can_manage(
                Profile(id="p3", username="b", email="g", hashed_password="x"), server
            )
