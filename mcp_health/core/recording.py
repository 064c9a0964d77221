"""Check-then-persist flows for a single server."""

import json
from datetime import datetime
from typing import Any

from ..checkers.compliance import ComplianceChecker
from ..checkers.connection import ConnectionChecker
from ..config.settings import HealthProfile
from ..scoring.scorer import calculate_score
from ..scoring.stats import LATENCY_WINDOW, compute_server_stats
from ..storage.base import ResultStore
from ..utils.debug import debug_log, log_best_effort
from .exceptions import LocalOnlyServerError, ServerNotFoundError
from .models import CheckLevel, CheckStatus, EventType, ServerStatus, utc_now
from .result import (
    BestEffortResult,
    ComplianceResult,
    HealthCheckResult,
    ScoreBreakdown,
    ServerStats,
    truncate,
)

# Statuses that do not count as a previous state for change events
UNKNOWN_STATUSES = (None, ServerStatus.UNKNOWN, ServerStatus.LOCAL)


class HealthRecorder:
    """Runs a check for one server and writes its outcome through the ResultStore."""

    def __init__(
        self,
        store: ResultStore,
        connection_checker: ConnectionChecker,
        compliance_checker: ComplianceChecker,
        profile: HealthProfile,
    ):
        self.store = store
        self.connection_checker = connection_checker
        self.compliance_checker = compliance_checker
        self.profile = profile

    async def check_and_record(self, server_id: str) -> HealthCheckResult:
        """Connection-check a server, append the result and update derived state."""
        server = await self.store.get_server(server_id)
        if server.is_local_only:
            raise LocalOnlyServerError(f"{server.registry_name} has no remote endpoint")

        endpoint = await self.store.get_server_endpoint(server_id)
        result = await self.connection_checker.check(endpoint.remote_url, endpoint.transport_kind)

        await self.store.record_health_check(server_id, result)
        await self.store.update_server_cached_fields(server_id, current_status=result.status)

        if server.current_status not in UNKNOWN_STATUSES and server.current_status != result.status:
            await self.store.append_event(
                server_id, EventType.STATUS_CHANGE, server.current_status, result.status
            )

        if result.tools_hash and result.tools:
            latest_hash = await self.store.get_latest_schema_hash(server_id)
            if latest_hash != result.tools_hash:
                await self.store.record_schema_snapshot(server_id, result.tools, result.tools_hash)
                await self.sync_capabilities(server_id, result.tools, result.resources)

        return result

    async def sync_capabilities(
        self,
        server_id: str,
        tools: list[dict[str, Any]] | None,
        resources: list[dict[str, Any]] | None,
    ) -> BestEffortResult:
        """Upsert the server's declared capabilities; failures are logged, not raised."""
        try:
            await self.store.upsert_capabilities(server_id, tools or [], resources or [])
        except Exception as e:
            result = BestEffortResult(operation="sync_capabilities", ok=False, error=str(e))
        else:
            result = BestEffortResult(operation="sync_capabilities", ok=True)

        log_best_effort("sync capabilities", server_id, result.ok, result.error)
        return result

    async def compliance_check_and_record(self, server_id: str) -> ComplianceResult:
        """Run the compliance battery and append a compliance-level check."""
        server = await self.store.get_server(server_id)
        if server.is_local_only:
            raise LocalOnlyServerError(f"{server.registry_name} has no remote endpoint")

        endpoint = await self.store.get_server_endpoint(server_id)
        previous = await self.latest_compliance_pass(server_id)
        compliance = await self.compliance_checker.check(endpoint.remote_url, endpoint.transport_kind)

        error_message = None
        if not compliance.passed:
            error_message = truncate(
                json.dumps(compliance.probes_as_dict()), self.profile.error_max_length
            )

        await self.store.record_health_check(
            server_id,
            HealthCheckResult(
                status=CheckStatus.UP if compliance.passed else CheckStatus.DOWN,
                latency_ms=compliance.latency_ms,
                check_level=CheckLevel.COMPLIANCE,
                error_message=error_message,
                protocol_version=compliance.protocol_version,
                compliance_pass=compliance.passed,
                checked_at=compliance.checked_at,
            ),
        )

        if previous is not None and previous != compliance.passed:
            await self.store.append_event(
                server_id,
                EventType.COMPLIANCE_CHANGE,
                _flag(previous),
                _flag(compliance.passed),
            )

        return compliance

    async def latest_compliance_pass(self, server_id: str) -> bool | None:
        checks = await self.store.list_health_checks(server_id, check_level=CheckLevel.COMPLIANCE)
        flagged = [check for check in checks if check.compliance_pass is not None]
        if not flagged:
            return None
        return max(flagged, key=lambda check: check.checked_at).compliance_pass

    async def gather_stats(self, server_id: str, now: datetime | None = None) -> ServerStats:
        now = now or utc_now()
        checks = await self.store.list_health_checks(server_id, since=now - LATENCY_WINDOW)
        # The latest compliance verdict may be older than the uptime windows
        compliance_checks = await self.store.list_health_checks(
            server_id, check_level=CheckLevel.COMPLIANCE
        )
        seen = {id(check) for check in checks}
        checks.extend(check for check in compliance_checks if id(check) not in seen)
        snapshots = await self.store.list_schema_snapshots(server_id, limit=2)
        return compute_server_stats(checks, snapshots, now)

    async def score_and_record(self, server_id: str, now: datetime | None = None) -> ScoreBreakdown:
        """Recompute a server's trust score and write it back."""
        now = now or utc_now()
        server = await self.store.get_server(server_id)
        stats = ServerStats() if server.is_local_only else await self.gather_stats(server_id, now)
        breakdown = calculate_score(server, stats, now)

        old_score = server.trust_score
        if old_score is not None and abs(breakdown.total_score - old_score) >= self.profile.score_change_threshold:
            await self.store.append_event(
                server_id, EventType.SCORE_CHANGE, str(round(old_score)), str(breakdown.total_score)
            )

        await self.store.append_score_history(server_id, breakdown)

        if server.is_local_only:
            status = ServerStatus.LOCAL
        else:
            status = server.current_status or ServerStatus.UNKNOWN
        await self.store.update_server_cached_fields(
            server_id,
            trust_score=breakdown.total_score,
            current_status=status,
            uptime_24h=stats.uptime_24h,
            uptime_7d=stats.uptime_7d,
            uptime_30d=stats.uptime_30d,
            latency_p50=stats.latency_p50,
            latency_p95=stats.latency_p95,
        )

        debug_log(
            f"{server.registry_name}: {breakdown.total_score} {breakdown.tier_emoji} {breakdown.tier}",
            "INFO",
            "SCORE",
        )
        return breakdown

    async def mark_local(self, server_id: str) -> None:
        """Pin a local-only server's cached status to the local sentinel."""
        await self.store.update_server_cached_fields(server_id, current_status=ServerStatus.LOCAL)

    async def get_score_breakdown(self, registry_name: str, now: datetime | None = None) -> ScoreBreakdown:
        """Compute (without recording) the breakdown for a server looked up by registry name."""
        for server_id in await self.store.list_server_ids():
            server = await self.store.get_server(server_id)
            if server.registry_name == registry_name:
                stats = ServerStats() if server.is_local_only else await self.gather_stats(server_id, now)
                return calculate_score(server, stats, now)
        raise ServerNotFoundError(f"Server not found: {registry_name}")


def _flag(value: bool) -> str:
    return "pass" if value else "fail"
