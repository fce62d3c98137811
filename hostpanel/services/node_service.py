"""Node registry service."""

from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.clients.daemon import DaemonClient, NodeHealth
from hostpanel.core.exceptions import ConflictError, NotFoundError
from hostpanel.models import Node, Server
from hostpanel.schemas.node import NodeCreate, NodeUpdate
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes

logger = get_logger(__name__)
tracer = get_tracer()


class NodeService:
    """Service for node registry operations."""

    def __init__(self, daemon_factory: Callable[[Node, str], DaemonClient] = DaemonClient):
        self.daemon_factory = daemon_factory

    async def get(self, session: AsyncSession, node_id: str) -> Node:
        """
        Get a node by id.

        Raises:
            NotFoundError: If the node does not exist
        """
        node = await session.get(Node, node_id)
        if node is None:
            raise NotFoundError(f"Node '{node_id}' not found")
        return node

    async def list(self, session: AsyncSession) -> List[Node]:
        result = await session.execute(select(Node).order_by(Node.created_at))
        return list(result.scalars().all())

    async def find_by_name(self, session: AsyncSession, name: str) -> Optional[Node]:
        """Exact, case-sensitive name lookup."""
        result = await session.execute(select(Node).where(Node.name == name))
        return result.scalars().first()

    async def _ensure_name_free(
        self, session: AsyncSession, name: str, node_id: Optional[str] = None
    ) -> None:
        existing = await self.find_by_name(session, name)
        if existing is not None and existing.id != node_id:
            raise ConflictError(f"A node named '{name}' already exists")

    async def create(self, session: AsyncSession, data: NodeCreate) -> Node:
        """
        Register a node.

        Raises:
            ConflictError: If another node already uses the name
        """
        with tracer.start_as_current_span("service.node.create"):
            add_span_attributes(**{"node.name": data.name})
            await self._ensure_name_free(session, data.name)

            node = Node(**data.model_dump())
            session.add(node)
            await session.commit()
            await session.refresh(node)

            logger.info(
                "Node created",
                extra={"node_id": node.id, "node_name": node.name, "ip": node.ip},
            )
            return node

    async def update(
        self, session: AsyncSession, node_id: str, data: NodeUpdate
    ) -> Node:
        """
        Edit a node. A node may keep its own name.

        Raises:
            NotFoundError: If the node does not exist
            ConflictError: If the new name belongs to another node
        """
        with tracer.start_as_current_span("service.node.update"):
            add_span_attributes(**{"node.id": node_id})
            node = await self.get(session, node_id)
            changes = data.model_dump(exclude_unset=True)

            if changes.get("name") is not None:
                await self._ensure_name_free(session, changes["name"], node_id)

            for field, value in changes.items():
                if value is not None or field == "location":
                    setattr(node, field, value)

            session.add(node)
            await session.commit()
            await session.refresh(node)

            logger.info(
                "Node updated",
                extra={"node_id": node.id, "fields": sorted(changes)},
            )
            return node

    async def delete(self, session: AsyncSession, node_id: str) -> None:
        """
        Delete a node that no server references.

        Raises:
            NotFoundError: If the node does not exist
            ConflictError: If any server is placed on the node
        """
        with tracer.start_as_current_span("service.node.delete"):
            add_span_attributes(**{"node.id": node_id})
            node = await self.get(session, node_id)

            result = await session.execute(
                select(func.count()).select_from(Server).where(Server.node_id == node_id)
            )
            servers = result.scalar_one()
            if servers:
                logger.warning(
                    "Refusing to delete node with servers",
                    extra={"node_id": node_id, "servers": servers},
                )
                raise ConflictError(
                    f"Node '{node.name}' has dependents: {servers} server(s) use it"
                )

            await session.delete(node)
            await session.commit()
            logger.info("Node deleted", extra={"node_id": node_id})

    async def get_health(
        self, session: AsyncSession, node_id: str, token: str
    ) -> NodeHealth:
        """Probe the node's daemon. Offline is reported, not raised."""
        node = await self.get(session, node_id)
        async with self.daemon_factory(node, token) as client:
            return await client.get_status()
