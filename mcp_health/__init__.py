"""MCP health engine.

Connection and compliance checks for remotely hosted MCP (Model Context
Protocol) servers, a multi-factor trust score, and a batch orchestrator that
runs them across a fleet and records the results.
"""

__version__ = "0.1.0"

# Checkers
from .checkers.base import BaseChecker, CheckerRegistry
from .checkers.compliance import ComplianceChecker
from .checkers.connection import ConnectionChecker, hash_tools

# CLI interface
from .cli.main import cli_main

# Configuration system
from .config.settings import (
    CheckerConfig,
    ConfigurationManager,
    HealthProfile,
    load_config_from_env,
)

# Core components
from .core.client import ProtocolClient
from .core.exceptions import (
    CheckTimeoutError,
    ConnectError,
    LocalOnlyServerError,
    MCPHealthError,
    ProtocolError,
    ServerNotFoundError,
    StorageError,
    UnsupportedCapabilityError,
)
from .core.models import ServerEndpoint, ServerRecord
from .core.orchestrator import BatchOrchestrator
from .core.recording import HealthRecorder
from .core.result import (
    BatchSummary,
    ComplianceResult,
    HealthCheckResult,
    ProbeResult,
    ScoreBreakdown,
    ServerStats,
)

# Reporting
from .reporting.console import ConsoleReporter
from .reporting.json_report import JSONReporter

# Scoring
from .scoring.scorer import calculate_score, tier_for
from .scoring.stats import compute_server_stats

# Storage
from .storage.base import ResultStore
from .storage.memory import InMemoryResultStore

__all__ = [
    # Core components
    "ProtocolClient",
    "BatchOrchestrator",
    "HealthRecorder",
    "ServerRecord",
    "ServerEndpoint",
    "HealthCheckResult",
    "ComplianceResult",
    "ProbeResult",
    "ScoreBreakdown",
    "ServerStats",
    "BatchSummary",
    # Errors
    "MCPHealthError",
    "ConnectError",
    "CheckTimeoutError",
    "UnsupportedCapabilityError",
    "ProtocolError",
    "StorageError",
    "ServerNotFoundError",
    "LocalOnlyServerError",
    # Checkers
    "BaseChecker",
    "CheckerRegistry",
    "ConnectionChecker",
    "ComplianceChecker",
    "hash_tools",
    # Scoring
    "calculate_score",
    "tier_for",
    "compute_server_stats",
    # Storage
    "ResultStore",
    "InMemoryResultStore",
    # Configuration
    "ConfigurationManager",
    "HealthProfile",
    "CheckerConfig",
    "load_config_from_env",
    # Reporting
    "ConsoleReporter",
    "JSONReporter",
    # CLI
    "cli_main",
    # Convenience functions
    "check_server",
    "check_compliance",
]


async def check_server(
    endpoint: str,
    transport_kind: str = "streamable-http",
    auth_token: str | None = None,
    timeout: float | None = None,
) -> HealthCheckResult:
    """
    Run one connection check against a remote MCP endpoint.

    Example:
        ```python
        result = await check_server("https://example.com/mcp")
        print(result.status, result.latency_ms, result.tool_count)
        ```
    """
    config = {"timeout": timeout} if timeout else {}
    checker = ConnectionChecker(config, client=ProtocolClient(auth_token=auth_token))
    return await checker.check(endpoint, transport_kind)


async def check_compliance(
    endpoint: str,
    transport_kind: str = "streamable-http",
    auth_token: str | None = None,
    timeout: float | None = None,
) -> ComplianceResult:
    """Run the compliance probe battery against a remote MCP endpoint."""
    config = {"timeout": timeout} if timeout else {}
    checker = ComplianceChecker(config, client=ProtocolClient(auth_token=auth_token))
    return await checker.check(endpoint, transport_kind)
