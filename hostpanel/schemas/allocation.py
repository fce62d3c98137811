"""Allocation schemas for request/response validation."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AllocationRangeCreate(BaseModel):
    """Batch of allocations on one node."""

    ip: str = Field(..., min_length=1, max_length=255, examples=["10.0.0.1"])
    external_ip: Optional[str] = Field(
        default=None, max_length=255, description="Public address shown to users"
    )
    ports: str = Field(
        ...,
        description="Single port or inclusive range",
        examples=["25565", "25565-25570"],
    )


class AllocationUpdate(BaseModel):
    """Only the display address of an allocation can be edited."""

    external_ip: Optional[str] = Field(default=None, max_length=255)


class AllocationResponse(BaseModel):
    """Schema for allocation response."""

    id: str
    node_id: str
    ip: str
    external_ip: Optional[str]
    port: int
    assigned_to: Optional[str]

    model_config = ConfigDict(from_attributes=True)
