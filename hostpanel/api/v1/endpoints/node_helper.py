"""Callbacks used by node daemons. Authenticated by the shared token in the body."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from hostpanel.api.deps import DaemonToken, DbSession, get_node_helper_service
from hostpanel.schemas.node_helper import (
    AdminCheck,
    AdminResponse,
    PermissionCheck,
    PermissionResponse,
    SftpCheck,
)
from hostpanel.services.node_helper_service import NodeHelperService, check_daemon_token

router = APIRouter()

Helper = Annotated[NodeHelperService, Depends(get_node_helper_service)]


def _permission(allowed: bool) -> JSONResponse:
    # Daemons read both the status code and the flag
    return JSONResponse(
        status_code=status.HTTP_200_OK if allowed else status.HTTP_403_FORBIDDEN,
        content=PermissionResponse(permission=allowed).model_dump(),
    )


@router.post(
    "/permission",
    response_model=PermissionResponse,
    responses={403: {"model": PermissionResponse}},
)
async def permission(
    check: PermissionCheck, session: DbSession, helper: Helper, expected: DaemonToken
) -> JSONResponse:
    """May the user manage the server (owner or admin)?"""
    check_daemon_token(check.token, expected)
    return _permission(await helper.has_permission(session, check.user_id, check.server_id))


@router.post(
    "/verify-sftp",
    response_model=PermissionResponse,
    responses={403: {"model": PermissionResponse}},
)
async def verify_sftp(
    check: SftpCheck, session: DbSession, helper: Helper, expected: DaemonToken
) -> JSONResponse:
    """Validate SFTP credentials and access to the server."""
    check_daemon_token(check.token, expected)
    allowed = await helper.verify_sftp(
        session, check.username, check.password, check.server_id
    )
    return _permission(allowed)


@router.post("/admin-permission", response_model=AdminResponse, response_model_by_alias=True)
async def admin_permission(
    check: AdminCheck, session: DbSession, helper: Helper, expected: DaemonToken
) -> AdminResponse:
    check_daemon_token(check.token, expected)
    return AdminResponse(is_admin=await helper.is_admin(session, check.user_id))
