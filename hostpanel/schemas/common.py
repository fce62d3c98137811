"""Schemas shared by several routers."""

from typing import Any, Dict

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """Liveness of the panel and its database, with inventory counts."""

    status: str = Field(..., description="healthy or degraded", examples=["healthy"])
    version: str = Field(..., examples=["1.0.0"])
    database: str = Field(..., description="Database status", examples=["connected"])
    nodes: int = Field(default=0, description="Registered nodes")
    servers: int = Field(default=0, description="Registered servers")


class DaemonResponse(BaseModel):
    """Body returned by a node daemon, passed through to the caller."""

    data: Dict[str, Any] = Field(default_factory=dict, description="Daemon payload")
