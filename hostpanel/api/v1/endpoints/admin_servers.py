"""Server lifecycle endpoints (admin)."""

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from hostpanel.api.deps import CurrentAdmin, DaemonToken, DbSession, get_server_service
from hostpanel.models import Server
from hostpanel.schemas import ServerCreate, ServerResponse, ServerUpdate
from hostpanel.services.server_service import ServerService
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes

logger = get_logger(__name__)
tracer = get_tracer()

router = APIRouter()

Servers = Annotated[ServerService, Depends(get_server_service)]


@router.post("", response_model=ServerResponse, status_code=status.HTTP_201_CREATED)
async def create_server(
    server_in: ServerCreate,
    admin: CurrentAdmin,
    session: DbSession,
    servers: Servers,
    token: DaemonToken,
) -> Server:
    """Create the workload on the node, then record it and reserve its allocation."""
    with tracer.start_as_current_span("api.server.create"):
        add_span_attributes(**{"user.id": admin.id, "node.id": server_in.node_id})
        return await servers.create(session, admin, server_in, token)


@router.get("", response_model=List[ServerResponse])
async def list_servers(_: CurrentAdmin, session: DbSession, servers: Servers) -> List[Server]:
    return await servers.list_all(session)


@router.get("/{server_id}", response_model=ServerResponse)
async def get_server(
    server_id: str, admin: CurrentAdmin, session: DbSession, servers: Servers
) -> Server:
    return await servers.get(session, admin, server_id)


@router.patch("/{server_id}", response_model=ServerResponse)
async def update_server(
    server_id: str,
    server_in: ServerUpdate,
    _: CurrentAdmin,
    session: DbSession,
    servers: Servers,
) -> Server:
    return await servers.update(session, server_id, server_in)


@router.delete("/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(
    server_id: str,
    admin: CurrentAdmin,
    session: DbSession,
    servers: Servers,
    token: DaemonToken,
) -> None:
    """Delete on the node first; the record and allocations go only after that succeeds."""
    with tracer.start_as_current_span("api.server.delete"):
        add_span_attributes(**{"user.id": admin.id, "server.id": server_id})
        await servers.delete(session, admin, server_id, token)
