"""Server model: a workload instance bound to a node."""

from enum import Enum
from typing import Any, Dict, List

from sqlmodel import Field, Column, JSON

from hostpanel.models.base import TimestampModel, new_id


class ServerStatus(str, Enum):
    """Raw status values stored for a server."""

    RUNNING = "running"
    STOPPED = "stopped"
    INSTALLING = "installing"
    STARTING = "starting"
    ERROR = "error"


class Server(TimestampModel, table=True):
    """Workload instance."""

    __tablename__ = "servers"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(nullable=False, max_length=64)
    description: str = Field(default="", max_length=500)
    owner_id: str = Field(
        foreign_key="profiles.id",
        index=True,
        nullable=False,
        max_length=36,
    )
    status: str = Field(
        default=ServerStatus.STOPPED.value,
        max_length=20,
        description="running, stopped, installing, starting or error",
    )

    # Resource limits, opaque to the panel
    ram: int = Field(default=0, ge=0)
    cpu: int = Field(default=0, ge=0)
    disk: int = Field(default=0, ge=0)

    core_id: str = Field(foreign_key="cores.id", index=True, max_length=36)
    core_name: str = Field(default="", max_length=64)
    docker_image: str = Field(default="", max_length=255)

    node_id: str = Field(foreign_key="nodes.id", index=True, max_length=36)
    primary_allocation_id: str = Field(max_length=36)
    additional_allocation_ids: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    environment: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    # Self-service quotas
    databases_quantity: int = Field(default=0, ge=0)
    additional_allocations_limit: int = Field(default=0, ge=0)
    databases: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Provisioned database records",
    )


def normalize_status(status: str | None) -> str:
    """Project a stored status onto ``running``, ``initializing`` or ``stopped``."""
    if status == ServerStatus.RUNNING.value:
        return "running"
    if status in (ServerStatus.INSTALLING.value, ServerStatus.STARTING.value):
        return "initializing"
    return "stopped"
