"""Exception taxonomy for MCP health checks."""


class MCPHealthError(Exception):
    """Base class for all health-check errors."""


class ConnectError(MCPHealthError):
    """Remote server unreachable, refused the connection, or rejected the handshake."""


class CheckTimeoutError(MCPHealthError, TimeoutError):
    """A check step exceeded its deadline."""


class UnsupportedCapabilityError(MCPHealthError):
    """Remote declined an optional operation such as tools/list."""


class ProtocolError(MCPHealthError):
    """Malformed or unexpected response from the remote server."""


class StorageError(MCPHealthError):
    """Persistence failure in a result store."""


class ServerNotFoundError(StorageError, LookupError):
    """Server id is not present in the catalog."""


class LocalOnlyServerError(MCPHealthError):
    """Server has no remote endpoint and cannot be checked."""
