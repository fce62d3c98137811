"""Profile schemas."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ProfileResponse(BaseModel):
    """Public view of a profile. The password hash is never included."""

    id: str
    username: str
    email: str
    is_active: bool
    admin: bool = Field(..., description="Whether the profile is an administrator")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
