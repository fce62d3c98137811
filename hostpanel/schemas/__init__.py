"""Schemas package for request/response validation."""

from hostpanel.schemas.common import (
    HealthCheckResponse,
    DaemonResponse,
)
from hostpanel.schemas.token import Token, RefreshTokenRequest
from hostpanel.schemas.profile import ProfileResponse
from hostpanel.schemas.node import (
    NodeCreate,
    NodeUpdate,
    NodeResponse,
    NodeStatusResponse,
)
from hostpanel.schemas.allocation import (
    AllocationRangeCreate,
    AllocationUpdate,
    AllocationResponse,
)
from hostpanel.schemas.core import (
    CoreVariable,
    DockerImage,
    CoreCreate,
    CoreUpdate,
    CoreResponse,
)
from hostpanel.schemas.database_host import (
    DatabaseHostCreate,
    DatabaseHostUpdate,
    DatabaseHostResponse,
)
from hostpanel.schemas.database import DatabaseCreate, DatabaseRecord
from hostpanel.schemas.server import (
    ServerCreate,
    ServerUpdate,
    ServerNameUpdate,
    ServerStartupUpdate,
    ServerActionRequest,
    ServerResponse,
)

__all__ = [
    "HealthCheckResponse",
    "DaemonResponse",
    "Token",
    "RefreshTokenRequest",
    "ProfileResponse",
    "NodeCreate",
    "NodeUpdate",
    "NodeResponse",
    "NodeStatusResponse",
    "AllocationRangeCreate",
    "AllocationUpdate",
    "AllocationResponse",
    "CoreVariable",
    "DockerImage",
    "CoreCreate",
    "CoreUpdate",
    "CoreResponse",
    "DatabaseHostCreate",
    "DatabaseHostUpdate",
    "DatabaseHostResponse",
    "DatabaseCreate",
    "DatabaseRecord",
    "ServerCreate",
    "ServerUpdate",
    "ServerNameUpdate",
    "ServerStartupUpdate",
    "ServerActionRequest",
    "ServerResponse",
]
