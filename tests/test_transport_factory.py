"""Transport factory selection and validation."""

import pytest

from mcp_health.core.http_transport import HTTPTransport
from mcp_health.core.models import TransportKind
from mcp_health.core.sse_transport import SSETransport
from mcp_health.core.transport_factory import TransportFactory


class TestTransportFactory:
    def test_sse_selects_sse_binding(self):
        transport = TransportFactory.create_transport("sse", "https://example.com/sse", timeout=5.0)
        assert isinstance(transport, SSETransport)
        assert transport.timeout == 5.0

    @pytest.mark.parametrize("kind", ["streamable-http", "http", "mixed"])
    def test_other_remote_kinds_use_streamable_http(self, kind):
        transport = TransportFactory.create_transport(kind, "https://example.com/mcp")
        assert isinstance(transport, HTTPTransport)
        assert transport.endpoint == "https://example.com/mcp"

    def test_auth_token_is_kept(self):
        transport = TransportFactory.create_transport(
            "streamable-http", "https://example.com/mcp", auth_token="secret"
        )
        assert transport.auth_token == "secret"

    def test_stdio_rejected(self):
        with pytest.raises(ValueError, match="stdio"):
            TransportFactory.create_transport(TransportKind.STDIO, "https://example.com/mcp")

    @pytest.mark.parametrize("endpoint", ["", None, "ftp://example.com", "example.com/mcp"])
    def test_invalid_endpoints_rejected(self, endpoint):
        with pytest.raises(ValueError):
            TransportFactory.create_transport("streamable-http", endpoint)

    def test_supported_transports(self):
        supported = TransportFactory.get_supported_transports()
        assert "sse" in supported
        assert "streamable-http" in supported
        assert "stdio" not in supported
