"""Tests for the node registry."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hostpanel.clients.daemon import NodeStatus
from hostpanel.core.exceptions import ConflictError, NotFoundError
from hostpanel.models import Core, Node, Server
from hostpanel.schemas.node import NodeCreate, NodeUpdate
from hostpanel.services.node_service import NodeService


def _node_data(name: str = "eu-1") -> NodeCreate:
    return NodeCreate(name=name, ip="10.0.0.9", port=8080, sftp_port=2022, location="Frankfurt")


@pytest.mark.asyncio
async def test_create_node(db_session: AsyncSession) -> None:
    """Test registering a node."""
    node = await NodeService().create(db_session, _node_data())

    assert node.id is not None
    assert node.name == "eu-1"
    assert node.use_tls is False
    assert node.base_url == "http://10.0.0.9:8080"


@pytest.mark.asyncio
async def test_create_duplicate_name(db_session: AsyncSession) -> None:
    service = NodeService()
    await service.create(db_session, _node_data())

    with pytest.raises(ConflictError):
        await service.create(db_session, _node_data())


@pytest.mark.asyncio
async def test_names_are_case_sensitive(db_session: AsyncSession) -> None:
    service = NodeService()
    await service.create(db_session, _node_data("eu-1"))

    node = await service.create(db_session, _node_data("EU-1"))
    assert node.name == "EU-1"


@pytest.mark.asyncio
async def test_update_keeps_own_name(db_session: AsyncSession, node: Node) -> None:
    """Renaming a node to its current name is not a conflict."""
    updated = await NodeService().update(
        db_session, node.id, NodeUpdate(name=node.name, use_tls=True)
    )

    assert updated.name == node.name
    assert updated.base_url.startswith("https://")


@pytest.mark.asyncio
async def test_update_to_taken_name(db_session: AsyncSession, node: Node, other_node: Node) -> None:
    with pytest.raises(ConflictError):
        await NodeService().update(db_session, other_node.id, NodeUpdate(name=node.name))


@pytest.mark.asyncio
async def test_update_clears_location(db_session: AsyncSession) -> None:
    service = NodeService()
    node = await service.create(db_session, _node_data())

    updated = await service.update(db_session, node.id, NodeUpdate(location=None))
    assert updated.location is None
    assert updated.ip == "10.0.0.9"


@pytest.mark.asyncio
async def test_update_missing(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await NodeService().update(db_session, "missing", NodeUpdate(name="x"))


@pytest.mark.asyncio
async def test_delete_node(db_session: AsyncSession, node: Node) -> None:
    service = NodeService()
    await service.delete(db_session, node.id)

    with pytest.raises(NotFoundError):
        await service.get(db_session, node.id)


@pytest.mark.asyncio
async def test_delete_node_with_servers(
    db_session: AsyncSession, node: Node, core: Core, owner
) -> None:
    """A node that still hosts servers cannot be deleted."""
    db_session.add(
        Server(
            name="survival",
            owner_id=owner.id,
            core_id=core.id,
            node_id=node.id,
            primary_allocation_id="a-1",
        )
    )
    await db_session.commit()

    with pytest.raises(ConflictError, match="dependents"):
        await NodeService().delete(db_session, node.id)


@pytest.mark.asyncio
async def test_get_health(db_session: AsyncSession, node: Node, fake_daemon) -> None:
    service = NodeService(daemon_factory=fake_daemon)

    health = await service.get_health(db_session, node.id, "secret")
    assert health.status == NodeStatus.ONLINE
    assert fake_daemon.tokens == ["secret"]

    fake_daemon.online = False
    health = await service.get_health(db_session, node.id, "secret")
    assert health.status == NodeStatus.OFFLINE
    assert health.error
