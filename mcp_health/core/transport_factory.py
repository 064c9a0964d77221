"""Transport factory for creating MCP transport instances."""

from .http_transport import HTTPTransport
from .models import TransportKind
from .sse_transport import SSETransport
from .transport import MCPTransport


class TransportFactory:
    """Factory for creating transport instances."""

    @staticmethod
    def create_transport(
        transport_kind: str,
        endpoint: str,
        timeout: float = 10.0,
        auth_token: str | None = None,
    ) -> MCPTransport:
        """Create an unopened transport for the given wire binding.

        "sse" selects the server-push binding; every other remote kind uses the
        bidirectional streamable HTTP binding.
        """
        TransportFactory.validate_transport_args(transport_kind, endpoint)

        if transport_kind == TransportKind.SSE:
            return SSETransport(endpoint, timeout=timeout, auth_token=auth_token)
        return HTTPTransport(endpoint, timeout=timeout, auth_token=auth_token)

    @staticmethod
    def get_supported_transports() -> list[str]:
        """Get list of supported remote transport kinds."""
        return [
            TransportKind.STREAMABLE_HTTP,
            TransportKind.SSE,
            TransportKind.HTTP,
            TransportKind.MIXED,
        ]

    @staticmethod
    def validate_transport_args(transport_kind: str, endpoint: str | None) -> None:
        """Validate transport arguments without creating transport."""
        if transport_kind == TransportKind.STDIO:
            raise ValueError("stdio servers have no remote endpoint and cannot be checked")

        if not endpoint:
            raise ValueError("Endpoint URL required for remote transports")
        if not endpoint.startswith(("http://", "https://")):
            raise ValueError("Endpoint must be a valid HTTP URL (http:// or https://)")
