"""Database host schemas. Responses never carry the password."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DatabaseHostCreate(BaseModel):
    """Schema for registering a MySQL host."""

    name: str = Field(..., min_length=1, max_length=64, examples=["mysql-eu-1"])
    host: str = Field(..., min_length=1, max_length=255, examples=["10.0.0.5"])
    port: int = Field(default=3306, ge=1, le=65535)
    username: str = Field(..., min_length=1, max_length=64, examples=["panel"])
    password: str = Field(..., min_length=1)
    phpmyadmin_link: Optional[str] = Field(default=None, max_length=500)


class DatabaseHostUpdate(BaseModel):
    """Omitted fields keep their stored values, including the password."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    host: Optional[str] = Field(default=None, min_length=1, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)
    password: Optional[str] = Field(default=None, min_length=1)
    phpmyadmin_link: Optional[str] = Field(default=None, max_length=500)


class DatabaseHostResponse(BaseModel):
    """Sanitized database host."""

    id: str
    name: str
    host: str
    port: int
    username: str
    phpmyadmin_link: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
