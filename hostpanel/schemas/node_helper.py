"""Schemas for the callbacks node daemons make into the panel.

Daemons send camelCase keys and the shared token in the body.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HelperRequest(BaseModel):
    """Any daemon callback; ``token`` is checked against ``DAEMON_TOKEN``."""

    token: Optional[str] = Field(default=None, description="Shared daemon secret")

    model_config = ConfigDict(populate_by_name=True)


class PermissionCheck(HelperRequest):
    user_id: str = Field(..., alias="userUuid")
    server_id: str = Field(..., alias="serverUuid")


class SftpCheck(HelperRequest):
    """SFTP login attempt forwarded by the daemon."""

    username: str = Field(..., alias="userName")
    password: str
    server_id: str = Field(..., alias="serverUuid")


class AdminCheck(HelperRequest):
    user_id: str = Field(..., alias="userUuid")


class PermissionResponse(BaseModel):
    permission: bool


class AdminResponse(BaseModel):
    is_admin: bool = Field(..., serialization_alias="isAdmin")
