"""Allocation model: one IP:port pair on a node."""

from typing import Optional

from sqlmodel import Field
from sqlalchemy import UniqueConstraint

from hostpanel.models.base import TimestampModel, new_id


class Allocation(TimestampModel, table=True):
    """IP:port usable by at most one server at a time."""

    __tablename__ = "allocations"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    node_id: str = Field(
        foreign_key="nodes.id",
        index=True,
        nullable=False,
        max_length=36,
        description="Owning node, never changes",
    )
    ip: str = Field(nullable=False, max_length=255)
    external_ip: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Public address shown to users, display only",
    )
    port: int = Field(nullable=False)
    assigned_to: Optional[str] = Field(
        default=None,
        index=True,
        max_length=36,
        description="Server currently holding this allocation",
    )

    __table_args__ = (
        UniqueConstraint("node_id", "port", name="uq_allocation_node_port"),
    )
