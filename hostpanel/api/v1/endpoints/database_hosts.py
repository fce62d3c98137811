"""Database host endpoints (admin). Passwords are accepted but never returned."""

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from hostpanel.api.deps import CurrentAdmin, DbSession, get_database_host_service
from hostpanel.models import DatabaseHost
from hostpanel.schemas import (
    DatabaseHostCreate,
    DatabaseHostResponse,
    DatabaseHostUpdate,
)
from hostpanel.services.database_host_service import DatabaseHostService

router = APIRouter()

Hosts = Annotated[DatabaseHostService, Depends(get_database_host_service)]


@router.get("", response_model=List[DatabaseHostResponse])
async def list_database_hosts(
    _: CurrentAdmin, session: DbSession, hosts: Hosts
) -> List[DatabaseHost]:
    return await hosts.list(session)


@router.post("", response_model=DatabaseHostResponse, status_code=status.HTTP_201_CREATED)
async def create_database_host(
    host_in: DatabaseHostCreate, _: CurrentAdmin, session: DbSession, hosts: Hosts
) -> DatabaseHost:
    """Register a host after testing its credentials."""
    return await hosts.create(session, host_in)


@router.get("/{host_id}", response_model=DatabaseHostResponse)
async def get_database_host(
    host_id: str, _: CurrentAdmin, session: DbSession, hosts: Hosts
) -> DatabaseHost:
    return await hosts.get(session, host_id)


@router.patch("/{host_id}", response_model=DatabaseHostResponse)
async def update_database_host(
    host_id: str,
    host_in: DatabaseHostUpdate,
    _: CurrentAdmin,
    session: DbSession,
    hosts: Hosts,
) -> DatabaseHost:
    return await hosts.update(session, host_id, host_in)


@router.delete("/{host_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_database_host(
    host_id: str, _: CurrentAdmin, session: DbSession, hosts: Hosts
) -> None:
    await hosts.delete(session, host_id)
