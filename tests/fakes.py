"""Scripted stand-ins for remote MCP servers."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from mcp_health.core.models import ServerRecord, utc_now
from mcp_health.core.transport import MCPTransport

DEFAULT_INIT_RESULT = {
    "protocolVersion": "2025-03-26",
    "capabilities": {"tools": {"listChanged": False}},
    "serverInfo": {"name": "fake-server", "version": "1.2.3"},
}

METHOD_NOT_FOUND = {"jsonrpc": "2.0", "error": {"code": -32601, "message": "Method not found"}}


def make_tool(name: str, properties: dict[str, Any] | None = None, description: str = "") -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "inputSchema": {"type": "object", "properties": properties or {}},
    }


def make_server(server_id: str, remote_url: str | None = None, **overrides: Any) -> ServerRecord:
    """A server with complete catalog metadata, updated ten days ago."""
    values = {
        "id": server_id,
        "registry_name": f"io.example/{server_id}",
        "remote_url": remote_url,
        "description": "A well documented example server",
        "repo_url": "https://github.com/example/server",
        "icon_url": "https://example.com/icon.png",
        "website_url": "https://example.com",
        "version": "1.0.0",
        "external_use_count": 1200,
        "registry_updated_at": utc_now() - timedelta(days=10),
    }
    values.update(overrides)
    return ServerRecord(**values)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class ServerScript:
    """How a fake remote server behaves."""

    init_result: Any = field(default_factory=lambda: dict(DEFAULT_INIT_RESULT))
    tools: list[dict[str, Any]] = field(default_factory=list)
    resources: list[dict[str, Any]] = field(default_factory=list)
    open_error: BaseException | None = None
    init_error: BaseException | None = None
    init_delay: float = 0.0
    close_error: BaseException | None = None
    factory_error: BaseException | None = None
    on_open: Callable[[], None] | None = None
    # method -> response dict, or an exception to raise
    responses: dict[str, Any] = field(default_factory=dict)


class FakeTransport(MCPTransport):
    """Transport replaying a ServerScript."""

    transport_kind = "fake"

    def __init__(self, endpoint: str, script: ServerScript):
        super().__init__(endpoint)
        self.script = script
        self.opened = False
        self.close_calls = 0
        self.requests: list[str] = []

    async def open(self) -> None:
        if self.script.on_open:
            self.script.on_open()
        if self.script.open_error:
            raise self.script.open_error
        self.opened = True

    async def initialize(self) -> dict[str, Any]:
        if self.script.init_delay:
            await asyncio.sleep(self.script.init_delay)
        if self.script.init_error:
            raise self.script.init_error
        return self.script.init_result

    async def send_and_receive(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.requests.append(method)
        if method in self.script.responses:
            response = self.script.responses[method]
            if isinstance(response, BaseException):
                raise response
            return response
        if method == "tools/list":
            return {"jsonrpc": "2.0", "result": {"tools": self.script.tools}}
        if method == "resources/list":
            return {"jsonrpc": "2.0", "result": {"resources": self.script.resources}}
        return METHOD_NOT_FOUND

    async def close(self) -> None:
        self.close_calls += 1
        if self.script.close_error:
            raise self.script.close_error


class FakeTransportFactory:
    """Drop-in for TransportFactory.create_transport that hands out FakeTransports."""

    def __init__(self, scripts: dict[str, ServerScript] | None = None):
        self.scripts = scripts or {}
        self.created: list[FakeTransport] = []

    def __call__(
        self, transport_kind: str, endpoint: str, timeout: float = 10.0, auth_token: str | None = None
    ) -> FakeTransport:
        script = self.scripts.setdefault(endpoint, ServerScript())
        if script.factory_error:
            raise script.factory_error
        transport = FakeTransport(endpoint, script)
        self.created.append(transport)
        return transport

    def for_endpoint(self, endpoint: str) -> list[FakeTransport]:
        return [transport for transport in self.created if transport.endpoint == endpoint]
