"""Allocation pool service.

Allocations are IP:port pairs owned by a node. ``assign`` and ``release`` are
conditional updates so that two servers can never hold the same allocation,
even when requests race.
"""

from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.config import settings
from hostpanel.core.exceptions import ConflictError, NotFoundError, ValidationError
from hostpanel.models import Allocation, Node
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes, add_span_event

logger = get_logger(__name__)
tracer = get_tracer()


def parse_port_range(ports: str, limit: Optional[int] = None) -> range:
    """
    Parse ``"start-end"`` or a single port into an inclusive range.

    Args:
        ports: Port string, e.g. ``"25565"`` or ``"25565-25570"``
        limit: Maximum number of ports, defaults to ``ALLOCATION_BATCH_LIMIT``

    Raises:
        ValidationError: On non-numeric parts, start > end, out-of-range ports
            or a span larger than the limit
    """
    limit = limit or settings.ALLOCATION_BATCH_LIMIT
    parts = [p.strip() for p in (ports or "").split("-")]

    if len(parts) not in (1, 2) or not all(p.isdigit() for p in parts):
        raise ValidationError(f"Invalid ports '{ports}'")

    start = int(parts[0])
    end = int(parts[-1])

    if start > end:
        raise ValidationError("Start port must not be greater than end port")
    if start < 1 or end > 65535:
        raise ValidationError("Ports must be between 1 and 65535")
    if end - start + 1 > limit:
        raise ValidationError(f"At most {limit} ports can be created at once")

    return range(start, end + 1)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


class AllocationService:
    """Service for allocation pool operations."""

    async def list_by_node(self, session: AsyncSession, node_id: str) -> List[Allocation]:
        result = await session.execute(
            select(Allocation)
            .where(Allocation.node_id == node_id)
            .order_by(Allocation.port)
        )
        return list(result.scalars().all())

    async def list_unassigned(
        self, session: AsyncSession, node_id: str
    ) -> List[Allocation]:
        """Allocations on the node that no server holds."""
        result = await session.execute(
            select(Allocation).where(
                Allocation.node_id == node_id,
                Allocation.assigned_to.is_(None),
            )
        )
        return list(result.scalars().all())

    async def get(self, session: AsyncSession, allocation_id: str) -> Allocation:
        """
        Get an allocation by id.

        Raises:
            NotFoundError: If the allocation does not exist
        """
        allocation = await session.get(Allocation, allocation_id)
        if allocation is None:
            raise NotFoundError(f"Allocation '{allocation_id}' not found")
        return allocation

    async def get_many(
        self, session: AsyncSession, allocation_ids: Iterable[str]
    ) -> List[Allocation]:
        """Load allocations in the given order, skipping unknown ids."""
        ids = list(allocation_ids)
        if not ids:
            return []
        result = await session.execute(select(Allocation).where(Allocation.id.in_(ids)))
        by_id = {a.id: a for a in result.scalars().all()}
        return [by_id[i] for i in ids if i in by_id]

    async def create_range(
        self,
        session: AsyncSession,
        node_id: str,
        ip: str,
        external_ip: Optional[str],
        ports: str,
    ) -> List[Allocation]:
        """
        Create unassigned allocations for every port in range not yet on the node.

        Returns:
            Only the newly created allocations

        Raises:
            ValidationError: If the port range is malformed or too large
            NotFoundError: If the node does not exist
        """
        with tracer.start_as_current_span("service.allocation.create_range"):
            port_range = parse_port_range(ports)
            add_span_attributes(
                **{
                    "node.id": node_id,
                    "allocation.ip": ip,
                    "allocation.ports": ports,
                }
            )

            if await session.get(Node, node_id) is None:
                raise NotFoundError(f"Node '{node_id}' not found")

            result = await session.execute(
                select(Allocation.port).where(
                    Allocation.node_id == node_id,
                    Allocation.port.in_(list(port_range)),
                )
            )
            existing = {row[0] for row in result.all()}

            created = [
                Allocation(
                    node_id=node_id,
                    ip=ip,
                    external_ip=_blank_to_none(external_ip),
                    port=port,
                )
                for port in port_range
                if port not in existing
            ]
            session.add_all(created)
            await session.commit()
            for allocation in created:
                await session.refresh(allocation)

            logger.info(
                "Allocations created",
                extra={
                    "node_id": node_id,
                    "ip": ip,
                    "created_count": len(created),
                    "skipped_count": len(existing),
                },
            )
            return created

    async def update_external_ip(
        self, session: AsyncSession, allocation_id: str, external_ip: Optional[str]
    ) -> Allocation:
        """Set the display address; blank values clear it."""
        allocation = await self.get(session, allocation_id)
        allocation.external_ip = _blank_to_none(external_ip)
        session.add(allocation)
        await session.commit()
        await session.refresh(allocation)
        return allocation

    async def delete(self, session: AsyncSession, allocation_id: str) -> None:
        """
        Delete an allocation that no server holds.

        Raises:
            NotFoundError: If the allocation does not exist
            ConflictError: If the allocation is assigned
        """
        with tracer.start_as_current_span("service.allocation.delete"):
            add_span_attributes(**{"allocation.id": allocation_id})
            allocation = await self.get(session, allocation_id)
            if allocation.assigned_to is not None:
                raise ConflictError(
                    f"Allocation {allocation.ip}:{allocation.port} is assigned to a server"
                )
            await session.delete(allocation)
            await session.commit()
            logger.info("Allocation deleted", extra={"allocation_id": allocation_id})

    async def assign(
        self,
        session: AsyncSession,
        allocation_id: str,
        server_id: str,
        node_id: Optional[str] = None,
    ) -> None:
        """
        Give an unassigned allocation to a server.

        The update only matches while ``assigned_to`` is still empty (and, if
        given, the allocation sits on ``node_id``).

        Raises:
            ConflictError: If the allocation is missing or already held
        """
        with tracer.start_as_current_span("service.allocation.assign"):
            add_span_attributes(
                **{"allocation.id": allocation_id, "server.id": server_id}
            )
            stmt = (
                update(Allocation)
                .where(Allocation.id == allocation_id)
                .where(Allocation.assigned_to.is_(None))
                .values(assigned_to=server_id)
                .execution_options(synchronize_session=False)
            )
            if node_id is not None:
                stmt = stmt.where(Allocation.node_id == node_id)

            result = await session.execute(stmt)
            await session.commit()

            if result.rowcount != 1:
                logger.warning(
                    "Allocation assignment lost",
                    extra={"allocation_id": allocation_id, "server_id": server_id},
                )
                raise ConflictError(
                    f"Allocation '{allocation_id}' is not available"
                )

            await self._expire(session, allocation_id)
            add_span_event("allocation_assigned", {"allocation.id": allocation_id})
            logger.info(
                "Allocation assigned",
                extra={"allocation_id": allocation_id, "server_id": server_id},
            )

    async def release(
        self, session: AsyncSession, allocation_id: str, server_id: str
    ) -> bool:
        """
        Clear ``assigned_to`` if the allocation is still held by ``server_id``.

        Returns:
            True if the allocation was released
        """
        stmt = (
            update(Allocation)
            .where(Allocation.id == allocation_id)
            .where(Allocation.assigned_to == server_id)
            .values(assigned_to=None)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        await session.commit()
        await self._expire(session, allocation_id)

        released = result.rowcount == 1
        logger.info(
            "Allocation released" if released else "Allocation not held by server",
            extra={"allocation_id": allocation_id, "server_id": server_id},
        )
        return released

    async def release_many(
        self, session: AsyncSession, allocation_ids: Iterable[str], server_id: str
    ) -> int:
        """Release every allocation in ``allocation_ids`` held by ``server_id``."""
        released = 0
        for allocation_id in allocation_ids:
            if await self.release(session, allocation_id, server_id):
                released += 1
        return released

    @staticmethod
    async def _expire(session: AsyncSession, allocation_id: str) -> None:
        # Objects already loaded in the session still hold the old owner
        cached = await session.get(Allocation, allocation_id)
        if cached is not None:
            await session.refresh(cached)
