"""Core schemas for request/response validation."""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DockerImage(BaseModel):
    """Selectable image of a core."""

    name: str = Field(..., examples=["Java 17"])
    image: str = Field(..., examples=["ghcr.io/example/java:17"])


class CoreVariable(BaseModel):
    """Environment variable declared by a core."""

    name: str = Field(..., min_length=1, examples=["Server jar"])
    description: str = Field(default="")
    env_variable: str = Field(..., min_length=1, examples=["SERVER_JAR"])
    rules: str = Field(
        default="",
        description="Pipe-delimited rules",
        examples=["required|string|max:64|default:server.jar"],
    )

    @field_validator("env_variable")
    @classmethod
    def validate_env_variable(cls, v: str) -> str:
        """Environment keys must be shell-safe."""
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", v):
            raise ValueError("env_variable must be a valid environment variable name")
        return v


class CoreBase(BaseModel):
    """Fields shared by core create and response schemas."""

    name: str = Field(..., min_length=1, max_length=64, examples=["Minecraft Paper"])
    description: str = Field(default="", max_length=500)
    install_script: str = Field(default="")
    startup_command: str = Field(default="")
    stop_command: str = Field(default="", examples=["stop"])
    docker_images: List[DockerImage] = Field(default_factory=list)
    variables: List[CoreVariable] = Field(default_factory=list)
    startup_parser: str = Field(default="")
    config_system: Dict[str, Any] = Field(default_factory=dict)


class CoreCreate(CoreBase):
    """Schema for creating a core."""

    pass


class CoreUpdate(BaseModel):
    """Schema for editing a core. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=500)
    install_script: Optional[str] = None
    startup_command: Optional[str] = None
    stop_command: Optional[str] = None
    docker_images: Optional[List[DockerImage]] = None
    variables: Optional[List[CoreVariable]] = None
    startup_parser: Optional[str] = None
    config_system: Optional[Dict[str, Any]] = None


class CoreResponse(CoreBase):
    """Schema for core response."""

    id: str
    creator_email: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
