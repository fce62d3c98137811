"""Server schemas for request/response validation."""

from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hostpanel.models.server import normalize_status
from hostpanel.schemas.allocation import AllocationResponse
from hostpanel.schemas.core import CoreResponse
from hostpanel.schemas.database import DatabaseRecord

EnvValue = Union[bool, int, float, str]
ServerAction = Literal["start", "stop", "restart", "command"]
FileManagerOperation = Literal[
    "list",
    "read",
    "write",
    "rename",
    "download",
    "mass",
    "mkdir",
    "move",
    "upload",
    "unarchive",
]


class ServerCreate(BaseModel):
    """Schema for creating a server (admin)."""

    name: str = Field(..., min_length=1, max_length=64, examples=["survival"])
    description: str = Field(default="", max_length=500)
    owner_id: str = Field(..., description="Profile owning the server")
    ram: int = Field(default=1024, ge=0)
    cpu: int = Field(default=100, ge=0)
    disk: int = Field(default=10240, ge=0)
    core_id: str
    docker_image: str = Field(default="")
    node_id: str
    primary_allocation_id: str
    environment: Dict[str, EnvValue] = Field(default_factory=dict)
    databases_quantity: int = Field(default=0, ge=0)
    additional_allocations_limit: int = Field(default=0, ge=0)


class ServerUpdate(BaseModel):
    """Schema for editing a server (admin). Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=500)
    owner_id: Optional[str] = None
    ram: Optional[int] = Field(default=None, ge=0)
    cpu: Optional[int] = Field(default=None, ge=0)
    disk: Optional[int] = Field(default=None, ge=0)
    core_id: Optional[str] = None
    docker_image: Optional[str] = None
    primary_allocation_id: Optional[str] = None
    additional_allocation_ids: Optional[List[str]] = None
    environment: Optional[Dict[str, EnvValue]] = None
    databases_quantity: Optional[int] = Field(default=None, ge=0)
    additional_allocations_limit: Optional[int] = Field(default=None, ge=0)


class ServerNameUpdate(BaseModel):
    """Owner edit of the display name."""

    name: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=500)


class ServerStartupUpdate(BaseModel):
    """Owner edit of the startup environment and image."""

    environment: Dict[str, EnvValue] = Field(default_factory=dict)
    docker_image: Optional[str] = None


class ServerActionRequest(BaseModel):
    """Power action forwarded to the daemon."""

    action: ServerAction
    command: Optional[str] = Field(
        default=None, description="Console command, required for 'command'"
    )


class ServerResponse(BaseModel):
    """Schema for server response. ``status`` is the normalized display value."""

    id: str
    name: str
    description: str
    owner_id: str
    status: str
    ram: int
    cpu: int
    disk: int
    core_id: str
    core_name: str
    docker_image: str
    node_id: str
    primary_allocation_id: str
    additional_allocation_ids: List[str]
    environment: Dict[str, EnvValue]
    databases_quantity: int
    additional_allocations_limit: int
    databases: List[DatabaseRecord]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def display_status(cls, v: Optional[str]) -> str:
        return normalize_status(v)


class ServerOwner(BaseModel):
    """Owner summary shown on the server page."""

    id: str
    username: str
    email: str
    admin: bool

    model_config = ConfigDict(from_attributes=True)


class ServerNode(BaseModel):
    """Where the server runs, including the SFTP port for file access."""

    id: str
    name: str
    ip: str
    port: int
    sftp_port: int

    model_config = ConfigDict(from_attributes=True)


class ServerDetailResponse(ServerResponse):
    """Single-server view with owner, node, core and allocation records resolved."""

    owner: Optional[ServerOwner] = None
    node: Optional[ServerNode] = None
    core: Optional[CoreResponse] = None
    primary_allocation: Optional[AllocationResponse] = None
    additional_allocations: List[AllocationResponse] = Field(default_factory=list)
