"""Business logic services."""

# Imports are not done here to avoid circular imports. Import from the modules:
#   from hostpanel.services.server_service import ServerService
#   from hostpanel.services.database_service import DatabaseService

__all__ = [
    "AllocationService",
    "CoreService",
    "DatabaseHostService",
    "DatabaseService",
    "NodeService",
    "ServerService",
]
