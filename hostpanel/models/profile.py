"""Profile model: the authenticated caller of every operation."""

from sqlmodel import Field

from hostpanel.models.base import TimestampModel, new_id


class Profile(TimestampModel, table=True):
    """Panel account. Only ``id`` and ``admin`` matter to the orchestration."""

    __tablename__ = "profiles"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    username: str = Field(
        unique=True,
        index=True,
        nullable=False,
        max_length=50,
        description="Unique username",
    )
    email: str = Field(
        unique=True,
        index=True,
        nullable=False,
        max_length=255,
        description="Profile email address",
    )
    hashed_password: str = Field(
        nullable=False,
        description="Argon2 password hash, never serialized",
    )
    is_active: bool = Field(default=True, nullable=False)
    admin: bool = Field(
        default=False,
        nullable=False,
        description="Whether the profile may run admin-only operations",
    )
