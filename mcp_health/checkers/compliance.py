"""Compliance checker: a fixed battery of MCP conformance probes."""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from ..core.client import Connection, HandshakeInfo, ProtocolClient
from ..core.deadline import LONG_TIMEOUT, Deadline
from ..core.exceptions import CheckTimeoutError, ProtocolError, UnsupportedCapabilityError
from ..core.result import PROBE_DETAIL_MAX_LENGTH, ComplianceResult, ProbeResult, truncate
from ..utils.debug import debug_log, log_check_result, log_check_start, verbose_log
from .base import BaseChecker
from .connection import describe_error

# Order matters: a handshake failure marks every later probe as skipped
PROBE_NAMES = ["initialize", "capabilities", "tools_list", "tools_schema", "error_handling"]
MANDATORY_PROBES = ["initialize", "capabilities"]

NONEXISTENT_METHOD = "nonexistent/method_that_should_not_exist"

# Substrings (case-insensitive) that identify a rejection of an unknown method.
# JSON-RPC error responses are rendered as "MCP error <code>: <message>", so any
# explicit rejection matches "error"; a bare timeout does not.
ERROR_MARKERS = [
    "method not found",
    "-32601",
    "not found",
    "unknown",
    "unsupported",
    "not supported",
    "invalid method",
    "error",
]


class ComplianceChecker(BaseChecker):
    """Runs the probe battery over one connection within the long timeout tier."""

    default_timeout = LONG_TIMEOUT

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
        return "compliance"

    @property
    def description(self) -> str:
        return "Probe handshake, capabilities, tool listing and error handling"

    @property
    def close_grace(self) -> float:
        return float(self.config.get("close_grace", 5.0))

    @property
    def detail_max_length(self) -> int:
        return int(self.config.get("detail_max_length", PROBE_DETAIL_MAX_LENGTH))

    def _probe(self, passed: bool, detail: str | None, **data: Any) -> ProbeResult:
        return ProbeResult(passed=passed, detail=truncate(detail, self.detail_max_length), data=data)

    async def check(self, endpoint: str, transport_kind: str) -> ComplianceResult:
        """Run the battery. Overall pass requires the initialize and capabilities probes."""
        log_check_start(self.name, endpoint, endpoint, transport_kind)
        deadline = Deadline(self.timeout, clock=self.clock)
        result = ComplianceResult(passed=False, probes={})

        try:
            await asyncio.wait_for(
                self._run(endpoint, transport_kind, deadline, result),
                timeout=self.timeout + self.close_grace,
            )
        except asyncio.TimeoutError:
            message = f"Battery exceeded {self.timeout + self.close_grace:g}s"
            if "initialize" in result.probes:
                result.probes["unexpected"] = self._probe(False, message)
            else:
                self._record_handshake_failure(result, message)

        result.passed = all(
            name in result.probes and result.probes[name].passed for name in MANDATORY_PROBES
        )

        failed = result.failed_probes
        log_check_result(
            self.name,
            endpoint,
            "pass" if result.passed else "fail",
            f"failed probes: {', '.join(failed)}" if failed else "all probes passed",
        )
        return result

    async def _run(
        self, endpoint: str, transport_kind: str, deadline: Deadline, result: ComplianceResult
    ) -> None:
        try:
            async with self.client.connect(endpoint, transport_kind, deadline) as connection:
                handshake = connection.handshake
                result.latency_ms = deadline.elapsed_ms()
                result.protocol_version = handshake.protocol_version
                result.server_version = handshake.server_label
                result.probes["initialize"] = self._probe(
                    True,
                    handshake.server_label or "connected",
                    protocol_version=handshake.protocol_version,
                )

                try:
                    result.probes["capabilities"] = self._probe_capabilities(handshake)
                    await self._probe_tools(connection, deadline, result)
                    result.probes["error_handling"] = await self._probe_error_handling(
                        connection, deadline
                    )
                except Exception as e:
                    debug_log(f"Compliance battery interrupted for {endpoint}: {e}", "ERROR", "COMPLIANCE")
                    result.probes["unexpected"] = self._probe(False, describe_error(e))

        except Exception as e:
            if "initialize" in result.probes:
                result.probes["unexpected"] = self._probe(False, describe_error(e))
            else:
                self._record_handshake_failure(result, describe_error(e))

    def _record_handshake_failure(self, result: ComplianceResult, message: str) -> None:
        result.probes["initialize"] = self._probe(False, message)
        for name in PROBE_NAMES[1:]:
            result.probes[name] = ProbeResult.skip("no connection")

    def _probe_capabilities(self, handshake: HandshakeInfo) -> ProbeResult:
        capabilities = handshake.capabilities
        if not isinstance(capabilities, dict):
            return self._probe(False, "missing" if capabilities is None else "not an object")
        return self._probe(True, ", ".join(capabilities) or "empty", declared=list(capabilities))

    async def _probe_tools(
        self, connection: Connection, deadline: Deadline, result: ComplianceResult
    ) -> None:
        try:
            tools = await self.client.list_tools(connection, deadline)
        except (UnsupportedCapabilityError, ProtocolError, CheckTimeoutError) as e:
            # Listing tools is optional for a server
            result.probes["tools_list"] = self._probe(True, f"not supported: {str(e)[:100]}")
            result.probes["tools_schema"] = self._probe(True, "n/a")
            return

        valid = all(isinstance(tool.get("name"), str) and tool["name"] for tool in tools)
        result.probes["tools_list"] = self._probe(
            True, f"{len(tools)} tools, schema valid: {str(valid).lower()}", tool_count=len(tools)
        )
        result.probes["tools_schema"] = self._probe(
            valid or not tools,
            "all tools have name" if valid else "some tools missing name",
        )

    async def _probe_error_handling(self, connection: Connection, deadline: Deadline) -> ProbeResult:
        try:
            response = await self.client.probe(connection, NONEXISTENT_METHOD, {}, deadline)
        except (ProtocolError, CheckTimeoutError) as e:
            message = str(e)
        else:
            if "error" not in response:
                verbose_log(f"⚠️ {connection.endpoint} accepted {NONEXISTENT_METHOD}")
                return self._probe(True, "returned response (unexpected but ok)")
            error = response["error"]
            if isinstance(error, dict):
                message = f"MCP error {error.get('code')}: {error.get('message')}"
            else:
                message = str(error)

        lowered = message.lower()
        matched = [marker for marker in ERROR_MARKERS if marker in lowered]
        return self._probe(bool(matched), message, markers=matched)
