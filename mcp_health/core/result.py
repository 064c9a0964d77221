"""Result data structures for MCP health checks and trust scoring."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from .models import CheckLevel, utc_now

CHECK_ERROR_MAX_LENGTH = 1000
PROBE_DETAIL_MAX_LENGTH = 200


def truncate(text: str | None, limit: int) -> str | None:
    """Clip free text before it is stored to bound row size."""
    if text is None:
        return None
    return text[:limit]


@dataclass(frozen=True)
class HealthCheckResult:
    """One outcome of a single check run. Immutable, appended to a server's history."""

    status: str
    latency_ms: int | None
    check_level: str = CheckLevel.CONNECTION
    tool_count: int | None = None
    tools_hash: str | None = None
    tools: list[dict[str, Any]] | None = None
    resources: list[dict[str, Any]] | None = None
    error_message: str | None = None
    protocol_version: str | None = None
    compliance_pass: bool | None = None
    checked_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["checked_at"] = self.checked_at.isoformat()
        return data


@dataclass
class ProbeResult:
    """Outcome of one compliance probe."""

    passed: bool
    detail: str | None = None
    skipped: bool = False
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skip(cls, reason: str) -> "ProbeResult":
        return cls(passed=False, detail=f"skipped ({reason})", skipped=True)


@dataclass
class ComplianceResult:
    """Result of the compliance probe battery against one server."""

    passed: bool
    probes: dict[str, ProbeResult]
    protocol_version: str | None = None
    server_version: str | None = None
    latency_ms: int | None = None
    checked_at: datetime = field(default_factory=utc_now)

    @property
    def failed_probes(self) -> list[str]:
        return [name for name, probe in self.probes.items() if not probe.passed]

    def probes_as_dict(self) -> dict[str, dict[str, Any]]:
        return {
            name: {"pass": probe.passed, "detail": probe.detail, "skipped": probe.skipped}
            for name, probe in self.probes.items()
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "pass": self.passed,
            "checks": self.probes_as_dict(),
            "protocol_version": self.protocol_version,
            "server_version": self.server_version,
            "latency_ms": self.latency_ms,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass
class SchemaSnapshot:
    """Capture of a server's declared tool set, keyed by content hash."""

    server_id: str
    tools_hash: str
    tools: list[dict[str, Any]]
    captured_at: datetime = field(default_factory=utc_now)


@dataclass
class CapabilityRecord:
    """A named capability declared by a server (tool or resource)."""

    server_id: str
    capability_type: str
    name: str
    description: str | None = None
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class ServerStats:
    """Raw signals derived from a server's check history."""

    uptime_24h: float | None = None
    uptime_7d: float | None = None
    uptime_30d: float | None = None
    latency_p50: int | None = None
    latency_p95: int | None = None
    compliance_pass: bool | None = None
    days_since_schema_change: float | None = None

    @property
    def best_uptime(self) -> float | None:
        """Longest window with data: 30d, then 7d, then 24h."""
        for value in (self.uptime_30d, self.uptime_7d, self.uptime_24h):
            if value is not None:
                return value
        return None


@dataclass
class FactorScore:
    """Score contribution of a single trust factor."""

    name: str
    score: int
    weight: float
    weighted: float
    raw: Any = None


@dataclass
class ScoreBreakdown:
    """Full trust-score computation for one server."""

    server_id: str
    total_score: int
    tier: str
    tier_label: str
    tier_emoji: str
    is_local_only: bool
    factors: dict[str, FactorScore]
    stats: ServerStats
    scored_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        factors = {}
        for name, factor in self.factors.items():
            raw = factor.raw.isoformat() if isinstance(factor.raw, datetime) else factor.raw
            factors[name] = {
                "score": factor.score,
                "weight": factor.weight,
                "weighted": round(factor.weighted, 2),
                "raw": raw,
            }
        return {
            "server_id": self.server_id,
            "total_score": self.total_score,
            "tier": self.tier,
            "tier_label": self.tier_label,
            "tier_emoji": self.tier_emoji,
            "is_local_only": self.is_local_only,
            "factors": factors,
            "stats": asdict(self.stats),
            "scored_at": self.scored_at.isoformat(),
        }


@dataclass
class ServerEvent:
    """A transition worth surfacing (status, score or compliance change)."""

    server_id: str
    event_type: str
    old_value: str | None
    new_value: str | None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class BestEffortResult:
    """Outcome of an operation whose failure is logged but never propagated."""

    operation: str
    ok: bool
    error: str | None = None


@dataclass
class BatchSummary:
    """Aggregate counts returned by the batch orchestrator."""

    operation: str
    checked: int = 0
    up: int = 0
    down: int = 0
    timeout: int = 0
    error: int = 0
    passed: int = 0
    failed: int = 0
    scored: int = 0
    local: int = 0
    skipped: int = 0
    execution_time: float = 0.0

    def counts(self) -> dict[str, int]:
        """Counters relevant to this summary's operation."""
        if self.operation == "connection":
            keys = ["checked", "up", "down", "timeout", "error", "local", "skipped"]
        elif self.operation == "compliance":
            keys = ["checked", "passed", "failed", "error", "local", "skipped"]
        elif self.operation == "score":
            keys = ["checked", "scored", "error"]
        else:
            keys = ["checked", "up", "down", "timeout", "passed", "failed", "scored", "error"]
        return {key: getattr(self, key) for key in keys}

    def to_dict(self) -> dict[str, Any]:
        return {"operation": self.operation, **self.counts(), "execution_time": self.execution_time}
