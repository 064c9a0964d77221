"""Protocol client: connect, handshake, list, probe and close against a remote MCP server."""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from ..utils.debug import debug_log, log_best_effort
from .deadline import Deadline
from .exceptions import (
    CheckTimeoutError,
    ConnectError,
    ProtocolError,
    UnsupportedCapabilityError,
)
from .result import BestEffortResult
from .transport import MCPTransport, extract_error_details
from .transport_factory import TransportFactory

METHOD_NOT_FOUND = -32601

TransportBuilder = Callable[..., MCPTransport]


@dataclass
class HandshakeInfo:
    """What the server reported during initialize."""

    protocol_version: str | None
    server_name: str | None
    server_version: str | None
    capabilities: Any
    instructions: str | None = None

    @classmethod
    def from_initialize_result(cls, result: dict[str, Any]) -> "HandshakeInfo":
        server_info = result.get("serverInfo") or {}
        return cls(
            protocol_version=result.get("protocolVersion"),
            server_name=server_info.get("name"),
            server_version=server_info.get("version"),
            capabilities=result.get("capabilities"),
            instructions=result.get("instructions"),
        )

    @property
    def server_label(self) -> str | None:
        """'name/version' of the server implementation, if reported."""
        if not self.server_name:
            return None
        return f"{self.server_name}/{self.server_version or 'unknown'}"

    def advertises(self, capability: str) -> bool:
        return isinstance(self.capabilities, dict) and capability in self.capabilities


@dataclass
class Connection:
    """An attempted connection to one endpoint."""

    endpoint: str
    transport_kind: str
    transport: MCPTransport
    handshake: HandshakeInfo | None = None
    closed: bool = False


@dataclass
class CapabilityList:
    """Tools (and optionally resources) declared by a server."""

    tools: list[dict[str, Any]] = field(default_factory=list)
    resources: list[dict[str, Any]] = field(default_factory=list)


class ProtocolClient:
    """Opens transport-specific connections and runs deadline-bounded MCP operations."""

    def __init__(
        self,
        transport_factory: TransportBuilder = TransportFactory.create_transport,
        auth_token: str | None = None,
    ):
        self.transport_factory = transport_factory
        self.auth_token = auth_token

    @asynccontextmanager
    async def connect(
        self, endpoint: str, transport_kind: str, deadline: Deadline
    ) -> AsyncIterator[Connection]:
        """Open a connection and perform the handshake; always closes on exit.

        Raises ConnectError, CheckTimeoutError or ProtocolError before yielding
        if the connection or the handshake fails, and ConnectError or
        CheckTimeoutError on exit if the connection dropped while in use.
        """
        if deadline.expired:
            raise CheckTimeoutError(f"connect timed out after {deadline.seconds:g}s")

        try:
            transport = self.transport_factory(
                transport_kind,
                endpoint,
                timeout=deadline.remaining(),
                auth_token=self.auth_token,
            )
        except ValueError as e:
            raise ConnectError(str(e)) from e

        connection = Connection(endpoint=endpoint, transport_kind=transport_kind, transport=transport)
        try:
            await transport.open()
            init_result = await deadline.run(transport.initialize(), step="initialize")
            if not isinstance(init_result, dict):
                raise ProtocolError("Initialize response is not an object")
            connection.handshake = HandshakeInfo.from_initialize_result(init_result)
            yield connection
        except asyncio.CancelledError as e:
            # SDK task groups cancel this task when a background request fails;
            # unwinding them here, outside every step deadline, surfaces that failure
            connection.closed = True
            await transport.abort(e)
        finally:
            await self.close(connection)

    async def list_tools(self, connection: Connection, deadline: Deadline) -> list[dict[str, Any]]:
        """List declared tools. Raises UnsupportedCapabilityError if the remote declines."""
        return await self._list(connection, deadline, "tools/list", "tools")

    async def list_resources(
        self, connection: Connection, deadline: Deadline
    ) -> list[dict[str, Any]]:
        """List declared resources. Raises UnsupportedCapabilityError if the remote declines."""
        return await self._list(connection, deadline, "resources/list", "resources")

    async def list_capabilities(
        self, connection: Connection, deadline: Deadline, include_resources: bool = False
    ) -> CapabilityList:
        """List tools, and resources when requested and advertised by the handshake.

        Only the tools listing can fail the call; resources are best effort.
        """
        capabilities = CapabilityList(tools=await self.list_tools(connection, deadline))

        if include_resources and connection.handshake and connection.handshake.advertises("resources"):
            try:
                capabilities.resources = await self.list_resources(connection, deadline)
            except (UnsupportedCapabilityError, ProtocolError, CheckTimeoutError) as e:
                debug_log(f"resources/list skipped for {connection.endpoint}: {e}", "WARN", "CLIENT")

        return capabilities

    async def probe(
        self,
        connection: Connection,
        method: str,
        params: dict[str, Any] | None,
        deadline: Deadline,
    ) -> dict[str, Any]:
        """Issue an arbitrary request; returns a response carrying 'result' or 'error'."""
        response = await deadline.run(
            connection.transport.send_and_receive(method, params), step=method
        )
        if not isinstance(response, dict) or ("result" not in response and "error" not in response):
            raise ProtocolError(f"{method} response missing both 'result' and 'error' fields")
        return response

    async def close(self, connection: Connection) -> BestEffortResult:
        """Close the connection once; secondary errors are logged and returned, never raised."""
        if connection.closed:
            return BestEffortResult(operation="close", ok=True)
        connection.closed = True

        try:
            await connection.transport.close()
        except Exception as e:
            result = BestEffortResult(operation="close", ok=False, error=extract_error_details(e))
        else:
            result = BestEffortResult(operation="close", ok=True)

        log_best_effort("close connection", connection.endpoint, result.ok, result.error)
        return result

    async def _list(
        self, connection: Connection, deadline: Deadline, method: str, field_name: str
    ) -> list[dict[str, Any]]:
        response = await self.probe(connection, method, None, deadline)

        if "error" in response:
            error = response["error"] or {}
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            if code == METHOD_NOT_FOUND:
                raise UnsupportedCapabilityError(f"{method} not supported: {message}")
            raise UnsupportedCapabilityError(f"{method} declined ({code}): {message}")

        result = response["result"]
        if not isinstance(result, dict) or field_name not in result:
            raise ProtocolError(f"{method} result missing '{field_name}' field")

        items = result[field_name]
        if items is None:
            return []
        if not isinstance(items, list):
            raise ProtocolError(f"{method} result '{field_name}' should be a list")
        return [item for item in items if isinstance(item, dict)]
