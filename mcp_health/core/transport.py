"""Transport layer for MCP communication."""

from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, NoReturn
from urllib.parse import urlparse

import httpx
from mcp import types
from mcp.client.session import ClientSession
from mcp.shared.exceptions import McpError

from .. import __version__
from ..utils.debug import verbose_log
from .exceptions import CheckTimeoutError, ConnectError, ProtocolError

CLIENT_NAME = "mcp-health"


def extract_error_details(error: BaseException) -> str:
    """Extract detailed error information from complex exceptions like TaskGroup and ExceptionGroup."""
    # Handle ExceptionGroup (Python 3.11+)
    if hasattr(error, "exceptions") and error.exceptions:
        error_messages = [extract_error_details(sub_error) for sub_error in error.exceptions]
        if error_messages:
            return "; ".join(error_messages)

    if error.__cause__ is not None:
        return f"{type(error.__cause__).__name__}: {error.__cause__}"

    return f"{type(error).__name__}: {error}"


def is_timeout_error(error: BaseException) -> bool:
    """True if the error, or anything it groups or wraps, is a timeout."""
    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return True
    if isinstance(error, McpError) and error.error.code == httpx.codes.REQUEST_TIMEOUT:
        return True
    if hasattr(error, "exceptions") and error.exceptions:
        return any(is_timeout_error(sub_error) for sub_error in error.exceptions)
    if error.__cause__ is not None:
        return is_timeout_error(error.__cause__)
    return False


def dump_model(model: Any) -> dict[str, Any]:
    """Convert an SDK model into plain JSON-compatible data."""
    return model.model_dump(mode="json", exclude_none=True)


class MCPTransport(ABC):
    """Abstract base class for MCP transport implementations."""

    transport_kind: str = "abstract"

    def __init__(self, endpoint: str):
        self.endpoint = endpoint

    @abstractmethod
    async def open(self) -> None:
        """Establish the wire connection. Raises ConnectError or CheckTimeoutError."""

    @abstractmethod
    async def initialize(self) -> dict[str, Any]:
        """Perform the capability handshake and return the initialize result."""

    @abstractmethod
    async def send_and_receive(
        self, method: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send a request and return a JSON-RPC shaped response ('result' or 'error')."""

    @abstractmethod
    async def close(self) -> None:
        """Close the transport connection. Safe to call more than once."""

    async def abort(self, error: BaseException) -> NoReturn:
        """Tear down after `error` interrupted a step, then raise what went wrong."""
        try:
            await self.close()
        except Exception as e:
            verbose_log(f"⚠️ Error closing {self.endpoint} after interruption: {extract_error_details(e)}")
        raise error


class SessionTransport(MCPTransport):
    """MCP transport driving an SDK ClientSession over a pair of message streams.

    The SDK contexts live on one exit stack entered by the task that runs the
    check. Their task groups cancel that task when a background request fails;
    abort() unwinds them and reports the failure that caused it.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        auth_token: str | None = None,
        client_version: str = __version__,
    ):
        super().__init__(endpoint)
        self.timeout = timeout
        self.auth_token = auth_token
        self.client_version = client_version

        # MCP SDK transport streams and session
        self.read_stream = None
        self.write_stream = None
        self._stack: AsyncExitStack | None = None
        self._client_session: ClientSession | None = None
        self._init_result: dict[str, Any] | None = None
        self._closed = False

        # Validate endpoint URL
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid endpoint URL: {endpoint}")

    @abstractmethod
    async def _open_streams(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        """Enter the SDK transport context on the stack and return (read_stream, write_stream)."""

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def open(self) -> None:
        """Open the wire connection and start a client session on it."""
        if self._client_session is not None:
            return
        if self._closed:
            raise ConnectError(f"Transport to {self.endpoint} is already closed")

        verbose_log(f"🔗 Opening {self.transport_kind} connection to {self.endpoint}")

        self._stack = AsyncExitStack()
        try:
            self.read_stream, self.write_stream = await self._open_streams(self._stack)
            self._client_session = await self._stack.enter_async_context(
                ClientSession(
                    self.read_stream,
                    self.write_stream,
                    read_timeout_seconds=timedelta(seconds=self.timeout),
                    client_info=types.Implementation(name=CLIENT_NAME, version=self.client_version),
                )
            )
        except Exception as e:
            error_details = extract_error_details(e)
            verbose_log(f"❌ {self.transport_kind} connection failed: {error_details}")
            if is_timeout_error(e):
                raise CheckTimeoutError(
                    f"Connection to {self.endpoint} timed out: {error_details}"
                ) from e
            raise ConnectError(f"Failed to connect to {self.endpoint}: {error_details}") from e

        verbose_log(f"✅ {self.transport_kind} connection established")

    def _require_session(self) -> ClientSession:
        if not self._client_session:
            raise ConnectError("Transport not properly initialized - no client session available")
        return self._client_session

    async def initialize(self) -> dict[str, Any]:
        """Run the MCP initialize handshake on the open session."""
        session = self._require_session()

        verbose_log("⚡ Initializing MCP session...")
        try:
            init_result = await session.initialize()
        except McpError as e:
            if is_timeout_error(e):
                raise CheckTimeoutError(f"Initialize timed out: {e.error.message}") from e
            # An explicit rejection of the handshake is a refused connection
            raise ConnectError(f"Initialize rejected: {e.error.message}") from e
        except Exception as e:
            error_details = extract_error_details(e)
            if is_timeout_error(e):
                raise CheckTimeoutError(f"Initialize timed out: {error_details}") from e
            if isinstance(e, ValueError):
                # Schema validation failures from the SDK are ValueErrors
                raise ProtocolError(f"Malformed initialize response: {error_details}") from e
            raise ConnectError(f"Failed to initialize MCP session: {error_details}") from e

        self._init_result = dump_model(init_result)
        server_info = self._init_result.get("serverInfo") or {}
        verbose_log(
            f"📋 Server info: {server_info.get('name', 'unknown')} v{server_info.get('version', 'unknown')}"
        )
        return self._init_result

    async def send_and_receive(
        self, method: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send request and wait for response using MCP ClientSession."""
        session = self._require_session()

        verbose_log(f"📤 Sending MCP request: {method}")

        try:
            if method == "initialize":
                result = self._init_result if self._init_result is not None else await self.initialize()
            elif method == "tools/list":
                listed = await session.list_tools()
                result = {"tools": [dump_model(tool) for tool in listed.tools]}
            elif method == "resources/list":
                listed = await session.list_resources()
                result = {"resources": [dump_model(resource) for resource in listed.resources]}
            elif method == "prompts/list":
                listed = await session.list_prompts()
                result = {"prompts": [dump_model(prompt) for prompt in listed.prompts]}
            elif method == "ping":
                await session.send_ping()
                result = {}
            else:
                # Anything else goes out as a raw request so the remote decides how to answer
                raw = await session.send_request(
                    types.Request(method=method, params=params), types.EmptyResult
                )
                result = dump_model(raw)

        except McpError as e:
            if is_timeout_error(e):
                raise CheckTimeoutError(f"{method} request timed out: {e.error.message}") from e
            return {
                "jsonrpc": "2.0",
                "error": {"code": e.error.code, "message": e.error.message, "data": e.error.data},
            }
        except (ConnectError, CheckTimeoutError, ProtocolError):
            raise
        except Exception as e:
            error_details = extract_error_details(e)
            verbose_log(f"❌ MCP request failed: {error_details}")
            if is_timeout_error(e):
                raise CheckTimeoutError(f"{method} request timed out: {error_details}") from e
            raise ProtocolError(f"{method} request failed: {error_details}") from e

        return {"jsonrpc": "2.0", "result": result}

    async def close(self) -> None:
        """Close the MCP session, then the wire connection; raise the first cleanup error."""
        if self._closed:
            return
        self._closed = True

        stack, self._stack = self._stack, None
        self._client_session = None
        self.read_stream = None
        self.write_stream = None
        if stack is None:
            return

        verbose_log(f"🔄 Closing {self.transport_kind} transport...")
        try:
            await stack.aclose()
        except Exception as e:
            verbose_log(f"⚠️ Error during {self.transport_kind} transport cleanup: {extract_error_details(e)}")
            raise

    async def abort(self, error: BaseException) -> NoReturn:
        """Unwind the SDK contexts with `error` in flight and raise the failure behind it.

        Exiting a task group that cancelled this task swallows its own
        cancellation and raises what its background request hit instead.
        Cancellation from outside is never swallowed and keeps propagating.
        """
        if self._closed or self._stack is None:
            raise error
        self._closed = True

        stack, self._stack = self._stack, None
        self._client_session = None
        self.read_stream = None
        self.write_stream = None

        try:
            suppressed = await stack.__aexit__(type(error), error, error.__traceback__)
        except Exception as e:
            error_details = extract_error_details(e)
            verbose_log(f"❌ {self.transport_kind} connection to {self.endpoint} failed: {error_details}")
            if is_timeout_error(e):
                raise CheckTimeoutError(f"Connection to {self.endpoint} timed out: {error_details}") from e
            raise ConnectError(f"Connection to {self.endpoint} failed: {error_details}") from e

        if suppressed:
            raise ConnectError(f"Connection to {self.endpoint} was interrupted before the server answered")
        raise error
