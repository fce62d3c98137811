"""Server lifecycle service.

Orchestrates the node daemon, the allocation pool and the core variable rules
for every server operation. There is no transaction spanning the daemon and
the database: remote effects happen first and local steps are compensated
when a later step fails.
"""

import random
from typing import Any, Callable, Dict, List, Optional, get_args

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hostpanel.clients.daemon import DaemonClient, DaemonError
from hostpanel.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UpstreamUnavailableError,
    ValidationError,
)
from hostpanel.models import Allocation, Core, Node, Profile, Server, ServerStatus
from hostpanel.models.base import new_id
from hostpanel.models.server import normalize_status
from hostpanel.schemas.server import (
    FileManagerOperation,
    ServerCreate,
    ServerDetailResponse,
    ServerNode,
    ServerOwner,
    ServerUpdate,
)
from hostpanel.schemas.allocation import AllocationResponse
from hostpanel.schemas.core import CoreResponse
from hostpanel.services.allocation_service import AllocationService
from hostpanel.services.core_service import CoreService
from hostpanel.services.node_service import NodeService
from hostpanel.services.variable_rules import apply_core_variable_rules
from hostpanel.utils.context import operation_context
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes, add_span_event

logger = get_logger(__name__)
tracer = get_tracer()

__all__ = ["ServerService", "ensure_can_manage", "normalize_status"]

DaemonFactory = Callable[[Node, str], DaemonClient]

FILE_MANAGER_PASSTHROUGH = (
    "path",
    "content",
    "newName",
    "paths",
    "archiveName",
    "contentBase64",
    "from",
    "to",
)


def ensure_can_manage(profile: Profile, server: Server) -> None:
    """
    Owner or admin only.

    Raises:
        PermissionDeniedError: If the profile may not act on the server
    """
    if server.owner_id != profile.id and not profile.admin:
        raise PermissionDeniedError("You are not the owner of this server")


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def build_file_manager_payload(operation: str, body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy the allowed fields of ``body`` and check what ``operation`` needs.

    Raises:
        ValidationError: If a required argument is missing or malformed
    """
    payload = {key: body[key] for key in FILE_MANAGER_PASSTHROUGH if key in body}

    if operation == "mass":
        if body.get("action") not in ("delete", "archive"):
            raise ValidationError("mass requires action 'delete' or 'archive'")
        payload["action"] = body["action"]
        if not isinstance(payload.get("paths"), list) or not payload["paths"]:
            raise ValidationError("paths must be a non-empty list for mass")
    elif operation == "write":
        if not _is_text(payload.get("content")):
            raise ValidationError("content is required for write")
    elif operation == "rename":
        if not (_is_text(payload.get("path")) and _is_text(payload.get("newName"))):
            raise ValidationError("path and newName are required for rename")
    elif operation in ("read", "download"):
        if not _is_text(payload.get("path")):
            raise ValidationError(f"path is required for {operation}")
    elif operation == "mkdir":
        if not _is_text(payload.get("path")) or not payload["path"].strip():
            raise ValidationError("path is required for mkdir")
    elif operation == "move":
        if not (_is_text(payload.get("from")) and _is_text(payload.get("to"))):
            raise ValidationError("from and to are required for move")
    elif operation == "upload":
        if not _is_text(payload.get("path")):
            raise ValidationError("path is required for upload")
        if not (_is_text(payload.get("contentBase64")) or _is_text(payload.get("content"))):
            raise ValidationError("contentBase64 or content is required for upload")
    elif operation == "unarchive":
        if not _is_text(payload.get("path")) or not payload["path"].strip():
            raise ValidationError("path is required for unarchive")
        if not _is_text(body.get("destination")):
            raise ValidationError("destination is required for unarchive")
        payload["destination"] = body["destination"]

    return payload


class ServerService:
    """Service for server lifecycle operations."""

    def __init__(
        self,
        daemon_factory: DaemonFactory = DaemonClient,
        allocations: Optional[AllocationService] = None,
        nodes: Optional[NodeService] = None,
        cores: Optional[CoreService] = None,
    ):
        self.daemon_factory = daemon_factory
        self.allocations = allocations or AllocationService()
        self.nodes = nodes or NodeService(daemon_factory)
        self.cores = cores or CoreService()

    # Reads

    async def _load(self, session: AsyncSession, server_id: str) -> Server:
        server = await session.get(Server, server_id)
        if server is None:
            raise NotFoundError(f"Server '{server_id}' not found")
        return server

    async def get(
        self, session: AsyncSession, profile: Profile, server_id: str
    ) -> Server:
        """
        Get a server the profile may manage.

        Raises:
            NotFoundError: If the server does not exist
            PermissionDeniedError: If the profile is neither owner nor admin
        """
        server = await self._load(session, server_id)
        ensure_can_manage(profile, server)
        return server

    async def get_detail(
        self, session: AsyncSession, profile: Profile, server_id: str
    ) -> ServerDetailResponse:
        """
        Server page view: the server plus its owner, node, core and allocation records.

        References that no longer resolve are returned as ``None`` (or skipped
        for additional allocations) instead of failing the read.
        """
        server = await self.get(session, profile, server_id)

        owner = await session.get(Profile, server.owner_id)
        node = await session.get(Node, server.node_id)
        core = await session.get(Core, server.core_id)
        primary = await session.get(Allocation, server.primary_allocation_id)
        additional = await self.allocations.get_many(
            session, server.additional_allocation_ids
        )

        return ServerDetailResponse.model_validate(server).model_copy(
            update={
                "owner": ServerOwner.model_validate(owner) if owner else None,
                "node": ServerNode.model_validate(node) if node else None,
                "core": CoreResponse.model_validate(core) if core else None,
                "primary_allocation": (
                    AllocationResponse.model_validate(primary) if primary else None
                ),
                "additional_allocations": [
                    AllocationResponse.model_validate(a) for a in additional
                ],
            }
        )

    async def list_for(
        self, session: AsyncSession, profile: Profile, others: bool = False
    ) -> List[Server]:
        """Servers owned by ``profile``; admins asking for ``others`` get everyone else's."""
        statement = select(Server).order_by(Server.created_at)
        if others and profile.admin:
            statement = statement.where(Server.owner_id != profile.id)
        else:
            statement = statement.where(Server.owner_id == profile.id)
        result = await session.execute(statement)
        return list(result.scalars().all())

    async def list_all(self, session: AsyncSession) -> List[Server]:
        result = await session.execute(select(Server).order_by(Server.created_at))
        return list(result.scalars().all())

    # Admin lifecycle

    async def create(
        self,
        session: AsyncSession,
        creator: Profile,
        data: ServerCreate,
        token: str,
    ) -> Server:
        """
        Create a server on a node.

        Order: validate references and environment, ask the daemon to create
        the workload, persist the record, then assign the primary allocation.
        If the assignment fails the record is deleted again.

        Raises:
            NotFoundError: Owner, core, node or primary allocation missing
            ValidationError: Allocation on another node or invalid environment
            ConflictError: Primary allocation already assigned
            UpstreamUnavailableError: The daemon did not create the workload
        """
        server_id = new_id()
        with tracer.start_as_current_span("service.server.create"), operation_context(
            "server.create",
            user_id=creator.id,
            user_name=creator.username,
            server_id=server_id,
        ):
            add_span_attributes(
                **{
                    "server.name": data.name,
                    "node.id": data.node_id,
                    "core.id": data.core_id,
                }
            )

            if await session.get(Profile, data.owner_id) is None:
                raise NotFoundError(f"Owner '{data.owner_id}' not found")
            core = await self.cores.get(session, data.core_id)
            node = await self.nodes.get(session, data.node_id)

            allocation = await session.get(Allocation, data.primary_allocation_id)
            if allocation is None:
                raise NotFoundError(
                    f"Primary allocation '{data.primary_allocation_id}' not found"
                )
            if allocation.node_id != node.id:
                raise ValidationError(
                    f"Allocation '{allocation.id}' does not belong to node '{node.name}'"
                )
            if allocation.assigned_to is not None:
                raise ConflictError(
                    f"Allocation '{allocation.id}' is already used by server "
                    f"'{allocation.assigned_to}'"
                )

            environment = apply_core_variable_rules(
                core.variables, data.environment, mode="create"
            )

            await self._daemon_call(
                node,
                token,
                "create_server",
                server_id,
                creator.id,
                failure=f"Could not create the server on node '{node.name}'",
            )
            add_span_event("daemon_server_created")

            server = Server(
                id=server_id,
                name=data.name,
                description=data.description,
                owner_id=data.owner_id,
                status=ServerStatus.STOPPED.value,
                ram=data.ram,
                cpu=data.cpu,
                disk=data.disk,
                core_id=core.id,
                core_name=core.name,
                docker_image=data.docker_image,
                node_id=node.id,
                primary_allocation_id=allocation.id,
                additional_allocation_ids=[],
                environment=environment,
                databases_quantity=data.databases_quantity,
                additional_allocations_limit=data.additional_allocations_limit,
                databases=[],
            )
            session.add(server)
            await session.commit()
            await session.refresh(server)

            try:
                await self.allocations.assign(
                    session, allocation.id, server.id, node_id=node.id
                )
            except Exception:
                logger.error(
                    "Primary allocation assignment failed, removing server record",
                    extra={"allocation_id": allocation.id},
                )
                await self._discard(session, server)
                raise

            logger.info(
                "Server created",
                extra={
                    "node_id": node.id,
                    "owner_id": server.owner_id,
                    "allocation_id": allocation.id,
                },
            )
            return server

    async def _discard(self, session: AsyncSession, server: Server) -> None:
        try:
            await session.delete(server)
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(
                "Failed to remove server record during rollback",
                extra={"error": str(e), "error_type": type(e).__name__},
            )

    async def delete(
        self, session: AsyncSession, creator: Profile, server_id: str, token: str
    ) -> None:
        """
        Delete a server. Nothing changes locally unless the daemon succeeds.

        Raises:
            NotFoundError: Server or its node missing
            UpstreamUnavailableError: The daemon did not delete the workload
        """
        with tracer.start_as_current_span("service.server.delete"), operation_context(
            "server.delete",
            user_id=creator.id,
            user_name=creator.username,
            server_id=server_id,
        ):
            server = await self._load(session, server_id)
            node = await self.nodes.get(session, server.node_id)

            await self._daemon_call(
                node,
                token,
                "delete_server",
                server.id,
                creator.id,
                failure=f"Could not delete the server on node '{node.name}'",
            )

            held = [server.primary_allocation_id, *server.additional_allocation_ids]
            await session.delete(server)
            await session.commit()

            released = await self.allocations.release_many(session, held, server_id)
            logger.info(
                "Server deleted",
                extra={"node_id": node.id, "released_allocations": released},
            )

    async def update(
        self, session: AsyncSession, server_id: str, data: ServerUpdate
    ) -> Server:
        """
        Admin edit. Everything is validated before any allocation or field
        is touched; then additions are assigned, removals released and the
        fields saved.

        Raises:
            NotFoundError: Server, new owner, new core or an added allocation missing
            ValidationError: Environment, quota or node mismatch
            ConflictError: An added allocation is (or becomes) held by another server
        """
        with tracer.start_as_current_span("service.server.update"), operation_context(
            "server.update", server_id=server_id
        ):
            server = await self._load(session, server_id)
            changes = data.model_dump(exclude_unset=True, exclude_none=True)

            if "owner_id" in changes and changes["owner_id"] != server.owner_id:
                if await session.get(Profile, changes["owner_id"]) is None:
                    raise NotFoundError(f"Owner '{changes['owner_id']}' not found")

            core_id = changes.get("core_id", server.core_id)
            core = await self.cores.get(session, core_id)
            if core_id != server.core_id:
                changes["core_name"] = core.name

            if "environment" in changes or "core_name" in changes:
                changes["environment"] = apply_core_variable_rules(
                    core.variables,
                    changes.get("environment", server.environment),
                    mode="edit",
                )

            primary = changes.get("primary_allocation_id", server.primary_allocation_id)
            additional = list(
                dict.fromkeys(
                    changes.get(
                        "additional_allocation_ids", server.additional_allocation_ids
                    )
                )
            )
            if primary in additional:
                additional.remove(primary)

            limit = changes.get(
                "additional_allocations_limit", server.additional_allocations_limit
            )
            if len(additional) > limit:
                raise ValidationError(
                    f"At most {limit} additional allocations are allowed"
                )

            old = {server.primary_allocation_id, *server.additional_allocation_ids}
            new = {primary, *additional}
            to_add = [a for a in [primary, *additional] if a not in old]
            to_remove = [a for a in old if a not in new]

            for allocation_id in to_add:
                allocation = await session.get(Allocation, allocation_id)
                if allocation is None:
                    raise NotFoundError(f"Allocation '{allocation_id}' not found")
                if allocation.node_id != server.node_id:
                    raise ValidationError(
                        f"Allocation '{allocation_id}' belongs to another node"
                    )
                if allocation.assigned_to is not None:
                    raise ConflictError(f"Allocation '{allocation_id}' is already in use")

            assigned: List[str] = []
            try:
                for allocation_id in to_add:
                    await self.allocations.assign(
                        session, allocation_id, server.id, node_id=server.node_id
                    )
                    assigned.append(allocation_id)
            except ConflictError:
                await self.allocations.release_many(session, assigned, server.id)
                raise

            await self.allocations.release_many(session, to_remove, server.id)

            changes["primary_allocation_id"] = primary
            changes["additional_allocation_ids"] = additional
            for field, value in changes.items():
                setattr(server, field, value)

            session.add(server)
            await session.commit()
            await session.refresh(server)

            logger.info(
                "Server updated",
                extra={
                    "fields": sorted(changes),
                    "allocations_added": len(to_add),
                    "allocations_removed": len(to_remove),
                },
            )
            return server

    # Self-service

    async def add_allocation(
        self, session: AsyncSession, profile: Profile, server_id: str
    ) -> Allocation:
        """
        Attach a random free allocation from the server's node.

        Raises:
            ValidationError: Quota reached or no free allocation on the node
            ConflictError: The drawn allocation was taken concurrently
        """
        with tracer.start_as_current_span("service.server.add_allocation"), operation_context(
            "server.allocation.add", user_id=profile.id, server_id=server_id
        ):
            server = await self.get(session, profile, server_id)

            if len(server.additional_allocation_ids) >= server.additional_allocations_limit:
                raise ValidationError(
                    "Additional allocation limit reached "
                    f"({server.additional_allocations_limit})"
                )

            free = await self.allocations.list_unassigned(session, server.node_id)
            if not free:
                raise ValidationError("No free allocations available on this node")

            allocation = random.choice(free)
            await self.allocations.assign(
                session, allocation.id, server.id, node_id=server.node_id
            )

            server.additional_allocation_ids = [
                *server.additional_allocation_ids,
                allocation.id,
            ]
            session.add(server)
            await session.commit()
            await session.refresh(server)

            logger.info("Allocation added", extra={"allocation_id": allocation.id})
            return allocation

    async def remove_allocation(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        allocation_id: str,
    ) -> Server:
        """
        Detach an additional allocation. The allocation itself is kept.

        Raises:
            ValidationError: The allocation is not an additional allocation of the server
        """
        with tracer.start_as_current_span("service.server.remove_allocation"), operation_context(
            "server.allocation.remove", user_id=profile.id, server_id=server_id
        ):
            server = await self.get(session, profile, server_id)
            if allocation_id not in server.additional_allocation_ids:
                raise ValidationError("Allocation is not attached to this server")

            server.additional_allocation_ids = [
                a for a in server.additional_allocation_ids if a != allocation_id
            ]
            session.add(server)
            await session.commit()
            await session.refresh(server)

            await self.allocations.release(session, allocation_id, server.id)
            logger.info("Allocation removed", extra={"allocation_id": allocation_id})
            return server

    async def edit_name(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> Server:
        server = await self.get(session, profile, server_id)
        server.name = name
        if description is not None:
            server.description = description
        session.add(server)
        await session.commit()
        await session.refresh(server)
        return server

    async def edit_startup(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        environment: Dict[str, Any],
        docker_image: Optional[str] = None,
    ) -> Server:
        """
        Replace the environment (validated against the core) and optionally the image.

        Raises:
            ValidationError: The environment breaks a variable rule
        """
        with tracer.start_as_current_span("service.server.edit_startup"), operation_context(
            "server.startup.edit", user_id=profile.id, server_id=server_id
        ):
            server = await self.get(session, profile, server_id)
            core = await self.cores.get(session, server.core_id)

            server.environment = apply_core_variable_rules(
                core.variables, environment, mode="edit"
            )
            if docker_image:
                server.docker_image = docker_image

            session.add(server)
            await session.commit()
            await session.refresh(server)
            logger.info("Server startup updated")
            return server

    # Daemon passthrough

    async def _daemon_call(
        self, node: Node, token: str, method: str, *args, failure: str
    ) -> Dict[str, Any]:
        async with self.daemon_factory(node, token) as daemon:
            try:
                return await getattr(daemon, method)(*args)
            except DaemonError as e:
                raise UpstreamUnavailableError(f"{failure}: {e}") from e

    async def _online_node(self, session: AsyncSession, server: Server, token: str) -> Node:
        node = await self.nodes.get(session, server.node_id)
        async with self.daemon_factory(node, token) as daemon:
            health = await daemon.get_status()
        if not health.online:
            raise UpstreamUnavailableError(
                f"Node '{node.name}' is offline: {health.error}"
            )
        return node

    async def send_action(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        action: str,
        token: str,
        command: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Forward ``start``, ``stop``, ``restart`` or ``command`` to the daemon.

        The payload carries resources, environment, image and the allocation
        records; start/restart add the core, stop sends the core's stop
        command and ``command`` sends the supplied one.

        Raises:
            ValidationError: Unknown action or missing command
            UpstreamUnavailableError: Node offline or daemon failure
        """
        if action not in ("start", "stop", "restart", "command"):
            raise ValidationError(f"Unknown action '{action}'")
        if action == "command" and not command:
            raise ValidationError("A command is required for the command action")

        with tracer.start_as_current_span("service.server.send_action"), operation_context(
            f"server.action.{action}", user_id=profile.id, server_id=server_id
        ):
            server = await self.get(session, profile, server_id)
            core = await self.cores.get(session, server.core_id)
            node = await self._online_node(session, server, token)

            primary = await session.get(Allocation, server.primary_allocation_id)
            additional = await self.allocations.get_many(
                session, server.additional_allocation_ids
            )

            payload: Dict[str, Any] = {
                "serverId": server.id,
                "action": action,
                "userUuid": profile.id,
                "memory": server.ram,
                "cpu": server.cpu,
                "disk": server.disk,
                "environment": server.environment,
                "image": server.docker_image,
                "primaryAllocation": _allocation_payload(primary),
                "additionalAllocation": [_allocation_payload(a) for a in additional],
            }
            if action in ("start", "restart"):
                payload["core"] = _core_payload(core)
            elif action == "stop":
                payload["command"] = core.stop_command
            else:
                payload["command"] = command

            async with self.daemon_factory(node, token) as daemon:
                try:
                    response = await daemon.send_action(payload)
                except DaemonError as e:
                    raise UpstreamUnavailableError(str(e)) from e

            logger.info("Server action sent", extra={"node_id": node.id})
            return response

    async def get_runtime_status(
        self, session: AsyncSession, profile: Profile, server_id: str, token: str
    ) -> Dict[str, Any]:
        server = await self.get(session, profile, server_id)
        node = await self._online_node(session, server, token)
        return await self._daemon_call(
            node, token, "server_status", server.id, failure="Status request failed"
        )

    async def get_usage(
        self, session: AsyncSession, profile: Profile, server_id: str, token: str
    ) -> Dict[str, Any]:
        server = await self.get(session, profile, server_id)
        node = await self._online_node(session, server, token)
        return await self._daemon_call(
            node,
            token,
            "server_usage",
            server.id,
            profile.id,
            failure="Usage request failed",
        )

    async def file_manager(
        self,
        session: AsyncSession,
        profile: Profile,
        server_id: str,
        operation: str,
        body: Dict[str, Any],
        token: str,
    ) -> Dict[str, Any]:
        """
        Forward a file manager operation to the daemon.

        Raises:
            ValidationError: Unknown operation or missing arguments
            UpstreamUnavailableError: Node offline or daemon failure
        """
        if operation not in get_args(FileManagerOperation):
            raise ValidationError(f"Unknown file manager operation '{operation}'")

        with operation_context(
            f"server.files.{operation}", user_id=profile.id, server_id=server_id
        ):
            server = await self.get(session, profile, server_id)
            payload = build_file_manager_payload(operation, body)
            node = await self._online_node(session, server, token)
            payload.update(serverId=server.id, userUuid=profile.id)

            async with self.daemon_factory(node, token) as daemon:
                try:
                    return await daemon.file_manager(operation, payload)
                except DaemonError as e:
                    raise UpstreamUnavailableError(str(e)) from e


def _allocation_payload(allocation: Optional[Allocation]) -> Optional[Dict[str, Any]]:
    if allocation is None:
        return None
    return {
        "id": allocation.id,
        "nodeId": allocation.node_id,
        "ip": allocation.ip,
        "externalIp": allocation.external_ip,
        "port": allocation.port,
        "assignedTo": allocation.assigned_to,
    }


def _core_payload(core: Core) -> Dict[str, Any]:
    return {
        "id": core.id,
        "name": core.name,
        "installScript": core.install_script,
        "startupCommand": core.startup_command,
        "stopCommand": core.stop_command,
        "dockerImages": core.docker_images,
        "variables": core.variables,
        "startupParser": core.startup_parser,
        "configSystem": core.config_system,
    }
