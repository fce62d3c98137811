"""Main router for API v1."""

from fastapi import APIRouter

from hostpanel.api.v1.endpoints import (
    admin_servers,
    allocations,
    auth,
    cores,
    database_hosts,
    health,
    node_helper,
    nodes,
    servers,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(
    node_helper.router, prefix="/nodes/helper", tags=["Node daemon callbacks"]
)
api_router.include_router(nodes.router, prefix="/nodes", tags=["Nodes"])
api_router.include_router(allocations.router, prefix="/allocations", tags=["Allocations"])
api_router.include_router(cores.router, prefix="/cores", tags=["Cores"])
api_router.include_router(
    database_hosts.router, prefix="/database-hosts", tags=["Database hosts"]
)
api_router.include_router(
    admin_servers.router, prefix="/admin/servers", tags=["Admin servers"]
)
api_router.include_router(servers.router, prefix="/servers", tags=["Servers"])
