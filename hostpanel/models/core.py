"""Core model: a workload template."""

from typing import Any, Dict, List, Optional

from sqlmodel import Field, Column, JSON

from hostpanel.models.base import TimestampModel, new_id


class Core(TimestampModel, table=True):
    """Startup/stop commands, images and declared variables for a workload."""

    __tablename__ = "cores"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(unique=True, index=True, nullable=False, max_length=64)
    description: str = Field(default="", max_length=500)
    install_script: str = Field(default="")
    startup_command: str = Field(default="")
    stop_command: str = Field(default="")
    docker_images: List[Dict[str, str]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="List of {name, image}",
    )
    variables: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="List of {name, description, env_variable, rules}",
    )
    startup_parser: str = Field(default="", description="Marker the daemon waits for")
    config_system: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Config-file template map",
    )
    creator_email: Optional[str] = Field(default=None, max_length=255)
