"""Connection checker: is the server up, how fast, and what tools does it declare."""

import asyncio
import hashlib
import json
import time
from collections.abc import Callable
from typing import Any

from ..core.client import ProtocolClient
from ..core.deadline import SHORT_TIMEOUT, Deadline
from ..core.exceptions import (
    CheckTimeoutError,
    MCPHealthError,
    ProtocolError,
    UnsupportedCapabilityError,
)
from ..core.models import CheckLevel, CheckStatus
from ..core.result import CHECK_ERROR_MAX_LENGTH, HealthCheckResult, truncate
from ..core.transport import extract_error_details
from ..utils.debug import debug_log, log_check_result, log_check_start
from .base import BaseChecker

TOOLS_HASH_LENGTH = 16


def canonical_json(value: Any) -> str:
    """Key-sorted, whitespace-free JSON used for content hashing."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def hash_tools(tools: list[dict[str, Any]] | None) -> str | None:
    """Content hash of a declared tool set, independent of listing order.

    Only each tool's name and input schema contribute, so description edits
    do not register as a schema change. Returns None for an empty tool set.
    """
    if not tools:
        return None

    pairs = [{"name": tool.get("name"), "inputSchema": tool.get("inputSchema")} for tool in tools]
    pairs.sort(key=lambda pair: (str(pair["name"] or ""), canonical_json(pair["inputSchema"])))

    digest = hashlib.sha256(canonical_json(pairs).encode("utf-8")).hexdigest()
    return digest[:TOOLS_HASH_LENGTH]


def describe_error(error: BaseException) -> str:
    if isinstance(error, MCPHealthError):
        return str(error) or type(error).__name__
    return extract_error_details(error)


class ConnectionChecker(BaseChecker):
    """Connects, handshakes and lists tools within the short timeout tier."""

    default_timeout = SHORT_TIMEOUT

    def __init__(
        self,
        config: dict[str, Any] = None,
        client: ProtocolClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config, client)
        self.clock = clock

    @property
    def name(self) -> str:
        return "connection"

    @property
    def description(self) -> str:
        return "Connect, handshake and list tools; measure latency"

    @property
    def timeout_margin(self) -> float:
        return float(self.config.get("timeout_margin", 0.5))

    @property
    def close_grace(self) -> float:
        return float(self.config.get("close_grace", 5.0))

    @property
    def include_resources(self) -> bool:
        return bool(self.config.get("include_resources", True))

    @property
    def error_max_length(self) -> int:
        return int(self.config.get("error_max_length", CHECK_ERROR_MAX_LENGTH))

    async def check(self, endpoint: str, transport_kind: str) -> HealthCheckResult:
        """Run one connection check. Remote failures become a verdict, never an exception."""
        log_check_start(self.name, endpoint, endpoint, transport_kind)
        deadline = Deadline(self.timeout, clock=self.clock)

        try:
            # Outer guard for hangs in transport open/close that the per-step budget cannot see
            result = await asyncio.wait_for(
                self._run(endpoint, transport_kind, deadline),
                timeout=self.timeout + self.close_grace,
            )
        except asyncio.TimeoutError:
            result = HealthCheckResult(
                status=CheckStatus.TIMEOUT,
                latency_ms=deadline.elapsed_ms(),
                check_level=CheckLevel.CONNECTION,
                error_message=f"Check exceeded {self.timeout + self.close_grace:g}s",
            )

        log_check_result(
            self.name,
            endpoint,
            result.status,
            result.error_message or f"{result.latency_ms}ms, {result.tool_count or 0} tools",
        )
        return result

    async def _run(self, endpoint: str, transport_kind: str, deadline: Deadline) -> HealthCheckResult:
        latency_ms: int | None = None
        protocol_version = None
        tools: list[dict[str, Any]] = []
        resources: list[dict[str, Any]] = []

        try:
            async with self.client.connect(endpoint, transport_kind, deadline) as connection:
                latency_ms = deadline.elapsed_ms()
                handshake = connection.handshake
                protocol_version = handshake.protocol_version
                if handshake.server_label:
                    debug_log(f"{endpoint} is {handshake.server_label}", "INFO", "CONNECTION")

                try:
                    capabilities = await self.client.list_capabilities(
                        connection, deadline, include_resources=self.include_resources
                    )
                    tools, resources = capabilities.tools, capabilities.resources
                except (UnsupportedCapabilityError, ProtocolError, CheckTimeoutError) as e:
                    # Listing is optional; the server is still up
                    debug_log(f"Tool listing unavailable for {endpoint}: {e}", "WARN", "CONNECTION")

        except Exception as e:
            elapsed_ms = latency_ms if latency_ms is not None else deadline.elapsed_ms()
            return HealthCheckResult(
                status=self.classify_failure(e, elapsed_ms, deadline),
                latency_ms=elapsed_ms,
                check_level=CheckLevel.CONNECTION,
                error_message=truncate(describe_error(e), self.error_max_length),
                protocol_version=protocol_version,
            )

        return HealthCheckResult(
            status=CheckStatus.UP,
            latency_ms=latency_ms,
            check_level=CheckLevel.CONNECTION,
            tool_count=len(tools),
            tools_hash=hash_tools(tools),
            tools=tools,
            resources=resources or None,
            protocol_version=protocol_version,
        )

    def classify_failure(self, error: BaseException, elapsed_ms: int, deadline: Deadline) -> str:
        """timeout, error or down for a failed check.

        A failure landing within the margin of the deadline is treated as a
        timeout even when the transport reported something else.
        """
        margin_ms = int(self.timeout_margin * 1000)
        if isinstance(error, CheckTimeoutError) or elapsed_ms >= deadline.timeout_ms - margin_ms:
            return CheckStatus.TIMEOUT
        if isinstance(error, ProtocolError):
            return CheckStatus.ERROR
        return CheckStatus.DOWN
