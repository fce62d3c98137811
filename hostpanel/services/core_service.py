"""Core catalogue service."""

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.core.exceptions import ConflictError, NotFoundError
from hostpanel.models import Core, Server
from hostpanel.schemas.core import CoreCreate, CoreUpdate
from hostpanel.services.variable_rules import build_default_environment
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes

logger = get_logger(__name__)
tracer = get_tracer()


class CoreService:
    """Service for workload templates."""

    async def get(self, session: AsyncSession, core_id: str) -> Core:
        core = await session.get(Core, core_id)
        if core is None:
            raise NotFoundError(f"Core '{core_id}' not found")
        return core

    async def list(self, session: AsyncSession) -> List[Core]:
        result = await session.execute(select(Core).order_by(Core.name))
        return list(result.scalars().all())

    async def find_by_name(self, session: AsyncSession, name: str) -> Optional[Core]:
        result = await session.execute(select(Core).where(Core.name == name))
        return result.scalars().first()

    async def create(
        self,
        session: AsyncSession,
        data: CoreCreate,
        creator_email: Optional[str] = None,
    ) -> Core:
        """
        Create a core.

        Raises:
            ConflictError: If the name is taken
        """
        with tracer.start_as_current_span("service.core.create"):
            add_span_attributes(**{"core.name": data.name})
            if await self.find_by_name(session, data.name) is not None:
                raise ConflictError(f"A core named '{data.name}' already exists")

            core = Core(**data.model_dump(), creator_email=creator_email)
            session.add(core)
            await session.commit()
            await session.refresh(core)

            logger.info("Core created", extra={"core_id": core.id, "core_name": core.name})
            return core

    async def update(
        self, session: AsyncSession, core_id: str, data: CoreUpdate
    ) -> Core:
        with tracer.start_as_current_span("service.core.update"):
            add_span_attributes(**{"core.id": core_id})
            core = await self.get(session, core_id)
            changes = data.model_dump(exclude_unset=True, exclude_none=True)

            if "name" in changes:
                existing = await self.find_by_name(session, changes["name"])
                if existing is not None and existing.id != core_id:
                    raise ConflictError(
                        f"A core named '{changes['name']}' already exists"
                    )

            for field, value in changes.items():
                setattr(core, field, value)

            session.add(core)
            await session.commit()
            await session.refresh(core)

            logger.info(
                "Core updated", extra={"core_id": core.id, "fields": sorted(changes)}
            )
            return core

    async def delete(self, session: AsyncSession, core_id: str) -> None:
        """
        Delete a core no server uses.

        Raises:
            NotFoundError: If the core does not exist
            ConflictError: If any server references the core
        """
        with tracer.start_as_current_span("service.core.delete"):
            core = await self.get(session, core_id)
            result = await session.execute(
                select(func.count()).select_from(Server).where(Server.core_id == core_id)
            )
            servers = result.scalar_one()
            if servers:
                raise ConflictError(
                    f"Core '{core.name}' has dependents: {servers} server(s) use it"
                )

            await session.delete(core)
            await session.commit()
            logger.info("Core deleted", extra={"core_id": core_id})

    async def default_environment(
        self, session: AsyncSession, core_id: str
    ) -> Dict[str, str]:
        """Environment pre-filled with the defaults declared by the core."""
        core = await self.get(session, core_id)
        return build_default_environment(core.variables)
