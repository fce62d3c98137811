"""Base model with common fields for all database models."""

import uuid
from datetime import datetime, UTC

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def new_id() -> str:
    """Generate a stable UUID4 identifier for a new record."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(UTC)


class TimestampModel(SQLModel):
    """Base model with created_at and updated_at timestamps (stored with time zone)."""

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        description="Timestamp when the record was created",
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        sa_column_kwargs={"onupdate": utcnow},
        description="Timestamp when the record was last updated",
    )
