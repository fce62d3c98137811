"""Node model: a host running the workload daemon."""

from typing import Optional

from sqlmodel import Field

from hostpanel.models.base import TimestampModel, new_id


class Node(TimestampModel, table=True):
    """Registered daemon host."""

    __tablename__ = "nodes"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(
        unique=True,
        index=True,
        nullable=False,
        max_length=64,
        description="Unique node name (case-sensitive)",
    )
    ip: str = Field(nullable=False, max_length=255, description="Daemon address")
    port: int = Field(nullable=False, description="Daemon HTTP port")
    sftp_port: int = Field(nullable=False, description="SFTP port exposed by the node")
    use_tls: bool = Field(default=False, description="Talk to the daemon over https")
    location: Optional[str] = Field(default=None, max_length=100)

    @property
    def base_url(self) -> str:
        """Daemon base URL, ``https`` only when TLS is enabled."""
        scheme = "https" if self.use_tls else "http"
        return f"{scheme}://{self.ip}:{self.port}"
