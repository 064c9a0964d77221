"""Streamable HTTP transport implementation for MCP communication."""

from contextlib import AsyncExitStack
from typing import Any

import httpx
from mcp.client.streamable_http import streamable_http_client

from ..utils.debug import mask_sensitive_value, verbose_log
from .transport import SessionTransport


class HTTPTransport(SessionTransport):
    """Bidirectional streaming MCP transport using MCP SDK's streamable_http_client."""

    transport_kind = "streamable-http"

    async def _open_streams(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        verbose_log("📡 Opening StreamableHTTP connection...")
        if self.auth_token:
            verbose_log(f"🔑 Using auth token: {mask_sensitive_value('auth_token', self.auth_token)}")

        # The SDK leaves a caller-provided client open, so it sits below the transport on the stack
        http_client = await stack.enter_async_context(
            httpx.AsyncClient(
                headers=self._headers() or None,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        )
        read_stream, write_stream, _ = await stack.enter_async_context(
            streamable_http_client(self.endpoint, http_client=http_client)
        )
        return read_stream, write_stream
