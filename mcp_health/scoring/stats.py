"""Derive scoring signals from a server's stored check history."""

import math
from collections.abc import Iterable
from datetime import datetime, timedelta

from ..core.models import CheckLevel, CheckStatus, utc_now
from ..core.result import HealthCheckResult, SchemaSnapshot, ServerStats
from .factors import days_since
from .scorer import round_half_up

UPTIME_WINDOWS = {
    "uptime_24h": timedelta(hours=24),
    "uptime_7d": timedelta(days=7),
    "uptime_30d": timedelta(days=30),
}
LATENCY_WINDOW = timedelta(days=30)


def percentile_cont(values: list[float], fraction: float) -> float | None:
    """Continuous percentile with linear interpolation between neighbours."""
    if not values:
        return None
    ordered = sorted(values)
    position = fraction * (len(ordered) - 1)
    lower = math.floor(position)
    upper = min(lower + 1, len(ordered) - 1)
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (position - lower)


def uptime_pct(checks: list[HealthCheckResult]) -> float | None:
    if not checks:
        return None
    up = sum(1 for check in checks if check.status == CheckStatus.UP)
    return up / len(checks) * 100


def compute_server_stats(
    checks: Iterable[HealthCheckResult],
    snapshots: Iterable[SchemaSnapshot],
    now: datetime | None = None,
) -> ServerStats:
    """Uptime windows, latency percentiles, latest compliance and schema age.

    Uptime and latency use connection-level checks only; compliance rows
    carry no meaningful latency and are counted separately.
    """
    now = now or utc_now()
    checks = list(checks)
    connection_checks = [check for check in checks if check.check_level == CheckLevel.CONNECTION]

    stats = ServerStats()
    for attribute, window in UPTIME_WINDOWS.items():
        in_window = [check for check in connection_checks if check.checked_at > now - window]
        setattr(stats, attribute, uptime_pct(in_window))

    latencies = [
        check.latency_ms
        for check in connection_checks
        if check.status == CheckStatus.UP
        and check.latency_ms is not None
        and check.checked_at > now - LATENCY_WINDOW
    ]
    p50 = percentile_cont(latencies, 0.5)
    p95 = percentile_cont(latencies, 0.95)
    stats.latency_p50 = round_half_up(p50) if p50 is not None else None
    stats.latency_p95 = round_half_up(p95) if p95 is not None else None

    compliance_checks = [
        check
        for check in checks
        if check.check_level == CheckLevel.COMPLIANCE and check.compliance_pass is not None
    ]
    if compliance_checks:
        latest = max(compliance_checks, key=lambda check: check.checked_at)
        stats.compliance_pass = latest.compliance_pass

    # A single snapshot is the initial capture, not a change
    ordered = sorted(snapshots, key=lambda snapshot: snapshot.captured_at, reverse=True)
    if len(ordered) >= 2:
        stats.days_since_schema_change = days_since(ordered[0].captured_at, now)

    return stats
