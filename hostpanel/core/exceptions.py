"""Custom exceptions for the application.

Services raise ``PanelError`` subclasses; the API layer turns them into
HTTP responses through a single exception handler registered in ``main``.
"""

from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Exception raised when authentication fails."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PanelError(Exception):
    """Base class for domain errors raised by the services."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(PanelError):
    """Referenced node, core, allocation, server, host or database is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class ConflictError(PanelError):
    """Duplicate name, allocation already assigned, or name collision."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists"


class PermissionDeniedError(PanelError):
    """Caller is neither the owner nor an admin."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Permission denied"


class ValidationError(PanelError):
    """Rule engine rejection, malformed input or exceeded quota."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Validation error"


class UpstreamUnavailableError(PanelError):
    """Node daemon offline or failing, or no database host reachable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Upstream service unavailable"


class InternalError(PanelError):
    """Unexpected persistence or network failure."""
