"""DatabaseHost model: a MySQL server usable for provisioning."""

from typing import Optional

from sqlmodel import Field

from hostpanel.models.base import TimestampModel, new_id


class DatabaseHost(TimestampModel, table=True):
    """MySQL connection profile. The password never leaves the services."""

    __tablename__ = "database_hosts"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(unique=True, index=True, nullable=False, max_length=64)
    host: str = Field(nullable=False, max_length=255)
    port: int = Field(default=3306)
    username: str = Field(nullable=False, max_length=64)
    password: str = Field(nullable=False)
    phpmyadmin_link: Optional[str] = Field(default=None, max_length=500)
