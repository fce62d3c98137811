"""Schemas for databases provisioned for a server."""

from typing import Optional

from pydantic import BaseModel, Field


class DatabaseCreate(BaseModel):
    """Requested database name, sanitized before use."""

    name: str = Field(..., min_length=1, max_length=64, examples=["world"])


class DatabaseRecord(BaseModel):
    """Database stored on a server, with host fields copied at creation."""

    id: str = Field(..., description="Same as the database name")
    host_id: str
    host: str
    port: int
    phpmyadmin_link: Optional[str] = None
    name: str
    username: str
    password: str
    created_at: int = Field(..., description="Epoch milliseconds")
