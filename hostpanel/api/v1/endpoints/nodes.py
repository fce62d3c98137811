"""Node registry endpoints (admin)."""

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from hostpanel.api.deps import (
    CurrentAdmin,
    DaemonToken,
    DbSession,
    get_allocation_service,
    get_node_service,
)
from hostpanel.models import Allocation, Node
from hostpanel.schemas import (
    AllocationRangeCreate,
    AllocationResponse,
    NodeCreate,
    NodeResponse,
    NodeStatusResponse,
    NodeUpdate,
)
from hostpanel.services.allocation_service import AllocationService
from hostpanel.services.node_service import NodeService
from hostpanel.utils.context import set_context

router = APIRouter()

Nodes = Annotated[NodeService, Depends(get_node_service)]
Allocations = Annotated[AllocationService, Depends(get_allocation_service)]


@router.get("", response_model=List[NodeResponse])
async def list_nodes(_: CurrentAdmin, session: DbSession, nodes: Nodes) -> List[Node]:
    return await nodes.list(session)


@router.post("", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
async def create_node(
    node_in: NodeCreate, _: CurrentAdmin, session: DbSession, nodes: Nodes
) -> Node:
    set_context(action="node.create")
    return await nodes.create(session, node_in)


@router.get("/{node_id}", response_model=NodeResponse)
async def get_node(node_id: str, _: CurrentAdmin, session: DbSession, nodes: Nodes) -> Node:
    return await nodes.get(session, node_id)


@router.patch("/{node_id}", response_model=NodeResponse)
async def update_node(
    node_id: str,
    node_in: NodeUpdate,
    _: CurrentAdmin,
    session: DbSession,
    nodes: Nodes,
) -> Node:
    set_context(action="node.update")
    return await nodes.update(session, node_id, node_in)


@router.delete("/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_node(node_id: str, _: CurrentAdmin, session: DbSession, nodes: Nodes) -> None:
    set_context(action="node.delete")
    await nodes.delete(session, node_id)


@router.get("/{node_id}/status", response_model=NodeStatusResponse)
async def node_status(
    node_id: str,
    _: CurrentAdmin,
    session: DbSession,
    nodes: Nodes,
    token: DaemonToken,
) -> NodeStatusResponse:
    """Probe the node's daemon; offline nodes are reported, not treated as errors."""
    health = await nodes.get_health(session, node_id, token)
    return NodeStatusResponse(node_id=node_id, status=health.status, error=health.error)


@router.get("/{node_id}/allocations", response_model=List[AllocationResponse])
async def list_node_allocations(
    node_id: str,
    _: CurrentAdmin,
    session: DbSession,
    nodes: Nodes,
    allocations: Allocations,
) -> List[Allocation]:
    await nodes.get(session, node_id)
    return await allocations.list_by_node(session, node_id)


@router.post(
    "/{node_id}/allocations",
    response_model=List[AllocationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_node_allocations(
    node_id: str,
    range_in: AllocationRangeCreate,
    _: CurrentAdmin,
    session: DbSession,
    allocations: Allocations,
) -> List[Allocation]:
    """Create the ports of the range that the node does not have yet."""
    set_context(action="allocation.create_range")
    return await allocations.create_range(
        session, node_id, range_in.ip, range_in.external_ip, range_in.ports
    )
