"""Server endpoints for owners (and admins acting on any server)."""

from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query, status

from hostpanel.api.deps import (
    CurrentProfile,
    DaemonToken,
    DbSession,
    get_database_service,
    get_server_service,
)
from hostpanel.models import Allocation, Server
from hostpanel.schemas import (
    AllocationResponse,
    DatabaseCreate,
    DatabaseRecord,
    DaemonResponse,
    ServerActionRequest,
    ServerNameUpdate,
    ServerResponse,
    ServerStartupUpdate,
)
from hostpanel.schemas.server import FileManagerOperation, ServerDetailResponse
from hostpanel.services.database_service import DatabaseService
from hostpanel.services.server_service import ServerService

router = APIRouter()

Servers = Annotated[ServerService, Depends(get_server_service)]
Databases = Annotated[DatabaseService, Depends(get_database_service)]


@router.get("", response_model=List[ServerResponse])
async def list_my_servers(
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
    others: Annotated[bool, Query(description="Admins only: other users' servers")] = False,
) -> List[Server]:
    return await servers.list_for(session, profile, others=others)


@router.get("/{server_id}", response_model=ServerDetailResponse)
async def get_server(
    server_id: str, profile: CurrentProfile, session: DbSession, servers: Servers
) -> ServerDetailResponse:
    """Server page: includes the owner, node address and SFTP port, core and allocations."""
    return await servers.get_detail(session, profile, server_id)


@router.put("/{server_id}/name", response_model=ServerResponse)
async def edit_name(
    server_id: str,
    name_in: ServerNameUpdate,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
) -> Server:
    return await servers.edit_name(
        session, profile, server_id, name_in.name, name_in.description
    )


@router.put("/{server_id}/startup", response_model=ServerResponse)
async def edit_startup(
    server_id: str,
    startup_in: ServerStartupUpdate,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
) -> Server:
    """Replace the environment; values are checked against the core's rules."""
    return await servers.edit_startup(
        session, profile, server_id, startup_in.environment, startup_in.docker_image
    )


@router.post("/{server_id}/action", response_model=DaemonResponse)
async def send_action(
    server_id: str,
    action_in: ServerActionRequest,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
    token: DaemonToken,
) -> DaemonResponse:
    data = await servers.send_action(
        session, profile, server_id, action_in.action, token, command=action_in.command
    )
    return DaemonResponse(data=data)


@router.get("/{server_id}/status", response_model=DaemonResponse)
async def runtime_status(
    server_id: str,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
    token: DaemonToken,
) -> DaemonResponse:
    return DaemonResponse(
        data=await servers.get_runtime_status(session, profile, server_id, token)
    )


@router.get("/{server_id}/usage", response_model=DaemonResponse)
async def usage(
    server_id: str,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
    token: DaemonToken,
) -> DaemonResponse:
    return DaemonResponse(data=await servers.get_usage(session, profile, server_id, token))


@router.post(
    "/{server_id}/allocations",
    response_model=AllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_allocation(
    server_id: str, profile: CurrentProfile, session: DbSession, servers: Servers
) -> Allocation:
    """Attach a random free allocation of the server's node."""
    return await servers.add_allocation(session, profile, server_id)


@router.delete("/{server_id}/allocations/{allocation_id}", response_model=ServerResponse)
async def remove_allocation(
    server_id: str,
    allocation_id: str,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
) -> Server:
    return await servers.remove_allocation(session, profile, server_id, allocation_id)


@router.post(
    "/{server_id}/databases",
    response_model=DatabaseRecord,
    status_code=status.HTTP_201_CREATED,
)
async def create_database(
    server_id: str,
    database_in: DatabaseCreate,
    profile: CurrentProfile,
    session: DbSession,
    databases: Databases,
) -> Dict[str, Any]:
    return await databases.create(session, profile, server_id, database_in.name)


@router.delete("/{server_id}/databases/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_database(
    server_id: str,
    name: str,
    profile: CurrentProfile,
    session: DbSession,
    databases: Databases,
) -> None:
    await databases.delete(session, profile, server_id, name)


@router.post("/{server_id}/files/{operation}", response_model=DaemonResponse)
async def file_manager(
    server_id: str,
    operation: FileManagerOperation,
    profile: CurrentProfile,
    session: DbSession,
    servers: Servers,
    token: DaemonToken,
    body: Annotated[Dict[str, Any], Body()] = None,
) -> DaemonResponse:
    data = await servers.file_manager(
        session, profile, server_id, operation, body or {}, token
    )
    return DaemonResponse(data=data)
