"""Core catalogue endpoints (admin)."""

from typing import Annotated, Dict, List

from fastapi import APIRouter, Depends, status

from hostpanel.api.deps import CurrentAdmin, DbSession, get_core_service
from hostpanel.models import Core
from hostpanel.schemas import CoreCreate, CoreResponse, CoreUpdate
from hostpanel.services.core_service import CoreService

router = APIRouter()

Cores = Annotated[CoreService, Depends(get_core_service)]


@router.get("", response_model=List[CoreResponse])
async def list_cores(_: CurrentAdmin, session: DbSession, cores: Cores) -> List[Core]:
    return await cores.list(session)


@router.post("", response_model=CoreResponse, status_code=status.HTTP_201_CREATED)
async def create_core(
    core_in: CoreCreate, admin: CurrentAdmin, session: DbSession, cores: Cores
) -> Core:
    return await cores.create(session, core_in, creator_email=admin.email)


@router.get("/{core_id}", response_model=CoreResponse)
async def get_core(core_id: str, _: CurrentAdmin, session: DbSession, cores: Cores) -> Core:
    return await cores.get(session, core_id)


@router.patch("/{core_id}", response_model=CoreResponse)
async def update_core(
    core_id: str,
    core_in: CoreUpdate,
    _: CurrentAdmin,
    session: DbSession,
    cores: Cores,
) -> Core:
    return await cores.update(session, core_id, core_in)


@router.delete("/{core_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_core(core_id: str, _: CurrentAdmin, session: DbSession, cores: Cores) -> None:
    await cores.delete(session, core_id)


@router.get("/{core_id}/default-environment", response_model=Dict[str, str])
async def default_environment(
    core_id: str, _: CurrentAdmin, session: DbSession, cores: Cores
) -> Dict[str, str]:
    """Environment pre-filled with the core's declared defaults."""
    return await cores.default_environment(session, core_id)
