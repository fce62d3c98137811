"""Database models package."""

from hostpanel.models.base import TimestampModel
from hostpanel.models.profile import Profile
from hostpanel.models.node import Node
from hostpanel.models.allocation import Allocation
from hostpanel.models.core import Core
from hostpanel.models.server import Server, ServerStatus, normalize_status
from hostpanel.models.database_host import DatabaseHost

__all__ = [
    "TimestampModel",
    "Profile",
    "Node",
    "Allocation",
    "Core",
    "Server",
    "ServerStatus",
    "normalize_status",
    "DatabaseHost",
]
