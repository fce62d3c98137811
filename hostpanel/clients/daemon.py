"""Client for the workload daemon running on each node."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from hostpanel.config import settings
from hostpanel.models import Node
from hostpanel.utils.logger import get_logger, log_timer
from hostpanel.utils.telemetry import get_tracer, add_span_attributes, add_span_event

logger = get_logger(__name__)
tracer = get_tracer()


class DaemonError(Exception):
    """Daemon request failed or reported a non-success status."""

    pass


class NodeStatus(str, Enum):
    """Liveness of a node's daemon."""

    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class NodeHealth:
    """Result of a liveness probe."""

    status: NodeStatus
    error: Optional[str] = None

    @property
    def online(self) -> bool:
        return self.status == NodeStatus.ONLINE


class DaemonClient:
    """Async client for one node's daemon.

    Every request is a POST whose JSON body carries the shared ``token``
    next to the action payload. Requests are never retried here; callers
    decide whether to retry or compensate.
    """

    def __init__(
        self,
        node: Node,
        token: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            node: Node whose daemon is addressed
            token: Shared secret expected by the daemon
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.node = node
        self.token = token
        self.base_url = node.base_url
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.DAEMON_REQUEST_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "DaemonClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        require_success: bool = False,
    ) -> Dict[str, Any]:
        """
        POST an action to the daemon.

        Args:
            endpoint: Path such as ``/api/v1/servers/create``
            payload: Action-specific fields merged after the token
            require_success: Fail unless the body has ``status == "success"``

        Returns:
            Decoded JSON body

        Raises:
            DaemonError: On transport errors, non-2xx responses or, when
                required, a non-success status field
        """
        with tracer.start_as_current_span("daemon.request") as span:
            add_span_attributes(
                **{
                    "daemon.node_id": self.node.id,
                    "daemon.endpoint": endpoint,
                }
            )

            logger.info(
                "Sending daemon request",
                extra={"node_id": self.node.id, "endpoint": endpoint},
            )

            try:
                with log_timer(f"daemon{endpoint.replace('/', '_')}", logger):
                    response = await self.client.post(
                        endpoint, json={"token": self.token, **(payload or {})}
                    )
                    response.raise_for_status()

            except httpx.HTTPStatusError as e:
                logger.error(
                    "Daemon request failed",
                    extra={
                        "node_id": self.node.id,
                        "endpoint": endpoint,
                        "status_code": e.response.status_code,
                        "error": e.response.text,
                        "error_type": "HTTPStatusError",
                    },
                )
                span.record_exception(e)
                raise DaemonError(
                    f"Daemon returned {e.response.status_code} for {endpoint}"
                ) from e

            except httpx.RequestError as e:
                logger.error(
                    "Daemon unreachable",
                    extra={
                        "node_id": self.node.id,
                        "endpoint": endpoint,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                span.record_exception(e)
                raise DaemonError(f"Failed to send request to node: {e}") from e

            try:
                data = response.json()
            except ValueError as e:
                raise DaemonError(f"Daemon sent an invalid body for {endpoint}") from e

            if require_success and (
                not isinstance(data, dict) or data.get("status") != "success"
            ):
                logger.error(
                    "Daemon reported failure",
                    extra={
                        "node_id": self.node.id,
                        "endpoint": endpoint,
                        "response": data,
                    },
                )
                raise DaemonError(f"Daemon did not report success for {endpoint}")

            add_span_event("daemon_request_completed", {"endpoint": endpoint})
            return data

    async def get_status(self) -> NodeHealth:
        """
        Probe the daemon. Online only on HTTP 200; never raises.

        Returns:
            NodeHealth with a human-readable reason when offline
        """
        try:
            response = await self.client.post(
                "/api/v1/status", json={"token": self.token}
            )
        except Exception as e:
            logger.warning(
                "Node liveness probe failed",
                extra={"node_id": self.node.id, "error": str(e)},
            )
            return NodeHealth(NodeStatus.OFFLINE, str(e) or type(e).__name__)

        if response.status_code == 200:
            return NodeHealth(NodeStatus.ONLINE)

        return NodeHealth(
            NodeStatus.OFFLINE,
            f"Unexpected response status: {response.status_code}",
        )

    async def create_server(self, server_id: str, user_id: str) -> Dict[str, Any]:
        """Ask the daemon to create the workload for ``server_id``."""
        return await self.request(
            "/api/v1/servers/create",
            {"serverId": server_id, "userUuid": user_id},
            require_success=True,
        )

    async def delete_server(self, server_id: str, user_id: str) -> Dict[str, Any]:
        """Ask the daemon to destroy the workload for ``server_id``."""
        return await self.request(
            "/api/v1/servers/delete",
            {"serverId": server_id, "userUuid": user_id},
            require_success=True,
        )

    async def send_action(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """start / stop / restart / command."""
        return await self.request("/api/v1/servers/action", payload)

    async def server_status(self, server_id: str) -> Dict[str, Any]:
        return await self.request("/api/v1/server/status", {"serverId": server_id})

    async def server_usage(self, server_id: str, user_id: str) -> Dict[str, Any]:
        return await self.request(
            "/api/v1/servers/usage", {"serverId": server_id, "userUuid": user_id}
        )

    async def file_manager(self, operation: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request(f"/api/v1/servers/filemanager/{operation}", payload)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
