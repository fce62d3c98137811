"""Node schemas for request/response validation."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hostpanel.clients.daemon import NodeStatus


class NodeBase(BaseModel):
    """Fields shared by node create and response schemas."""

    name: str = Field(
        ..., min_length=1, max_length=64, description="Unique node name", examples=["eu-1"]
    )
    ip: str = Field(
        ..., min_length=1, max_length=255, description="Daemon address", examples=["10.0.0.1"]
    )
    port: int = Field(..., ge=1, le=65535, description="Daemon port", examples=[8080])
    sftp_port: int = Field(..., ge=1, le=65535, description="SFTP port", examples=[2022])
    use_tls: bool = Field(default=False, description="Use https for daemon calls")
    location: Optional[str] = Field(default=None, max_length=100, examples=["Frankfurt"])


class NodeCreate(NodeBase):
    """Schema for registering a node."""

    pass


class NodeUpdate(BaseModel):
    """Schema for editing a node. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    ip: Optional[str] = Field(default=None, min_length=1, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    sftp_port: Optional[int] = Field(default=None, ge=1, le=65535)
    use_tls: Optional[bool] = None
    location: Optional[str] = Field(default=None, max_length=100)


class NodeResponse(NodeBase):
    """Schema for node response."""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NodeStatusResponse(BaseModel):
    """Result of probing a node's daemon."""

    node_id: str
    status: NodeStatus
    error: Optional[str] = None
