"""SSE transport implementation for MCP communication."""

from contextlib import AsyncExitStack
from typing import Any

from mcp.client.sse import sse_client

from ..utils.debug import mask_sensitive_value, verbose_log
from .transport import SessionTransport


class SSETransport(SessionTransport):
    """Server-push MCP transport using MCP SDK's sse_client."""

    transport_kind = "sse"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
        }
        headers.update(super()._headers())
        return headers

    async def _open_streams(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        verbose_log("📡 Opening SSE connection...")
        if self.auth_token:
            verbose_log(f"🔑 Using auth token for SSE: {mask_sensitive_value('auth_token', self.auth_token)}")

        # Both the HTTP timeout and the wait for the endpoint event are bounded by the check budget
        return await stack.enter_async_context(
            sse_client(
                url=self.endpoint,
                headers=self._headers(),
                timeout=self.timeout,
                sse_read_timeout=self.timeout,
            )
        )
