"""Console reporting for MCP health results."""

from ..core.models import CheckStatus, ServerRecord
from ..core.result import BatchSummary, ComplianceResult, HealthCheckResult, ScoreBreakdown

STATUS_ICONS = {
    CheckStatus.UP: "✅",
    CheckStatus.DOWN: "❌",
    CheckStatus.TIMEOUT: "⏱",
    CheckStatus.ERROR: "⚠️",
    "local": "💻",
    "unknown": "❔",
}


class ConsoleReporter:
    """Formats and displays check results, scores and batch summaries to console."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def report_check(self, result: HealthCheckResult, label: str) -> None:
        """Report a single connection check."""
        icon = STATUS_ICONS.get(result.status, "❔")
        print(f"{icon} {label}: {result.status}")
        if result.latency_ms is not None:
            print(f"    ⏱ Latency: {result.latency_ms}ms")
        if result.protocol_version:
            print(f"    📜 Protocol: {result.protocol_version}")
        if result.tool_count is not None:
            print(f"    🔨 Tools: {result.tool_count}" + (f" (hash {result.tools_hash})" if result.tools_hash else ""))
            names = [tool.get("name", "?") for tool in result.tools or []]
            if names and self.verbose:
                print(f"        {', '.join(names[:5])}")
                if len(names) > 5:
                    print(f"        ... and {len(names) - 5} more")
        if result.resources:
            print(f"    📁 Resources: {len(result.resources)}")
        if result.error_message:
            print(f"    ❌ {result.error_message}")

    def report_compliance(self, result: ComplianceResult, label: str) -> None:
        """Report a compliance battery probe by probe."""
        icon = "✅" if result.passed else "❌"
        print(f"{icon} {label}: compliance {'passed' if result.passed else 'failed'}")
        if result.server_version:
            print(f"    🖥 Server: {result.server_version}")
        if result.protocol_version:
            print(f"    📜 Protocol: {result.protocol_version}")

        for name, probe in result.probes.items():
            if probe.skipped:
                probe_icon = "⏭️"
            else:
                probe_icon = "✅" if probe.passed else "❌"
            detail = f": {probe.detail}" if probe.detail and (self.verbose or not probe.passed) else ""
            print(f"    {probe_icon} {name}{detail}")

    def report_breakdown(self, breakdown: ScoreBreakdown, label: str) -> None:
        """Report a trust score with its factor contributions."""
        local = " (local only)" if breakdown.is_local_only else ""
        print(f"{breakdown.tier_emoji} {label}: {breakdown.total_score}/100 {breakdown.tier_label}{local}")
        for factor in breakdown.factors.values():
            print(
                f"    {factor.name:<20} {factor.score:>3} x {factor.weight:.2f} = {factor.weighted:6.2f}"
            )

    def report_summary(self, summary: BatchSummary) -> None:
        """Report aggregate counts of a batch run."""
        counts = ", ".join(f"{key}: {value}" for key, value in summary.counts().items())
        print(f"📊 {summary.operation}: {counts}")
        print(f"⏱ Execution time: {summary.execution_time:.2f}s")

    def report_servers(self, servers: list[ServerRecord]) -> None:
        """Report each server's cached status and score."""
        for server in servers:
            icon = STATUS_ICONS.get(server.current_status or "unknown", "❔")
            score = server.trust_score if server.trust_score is not None else "-"
            print(f"  {icon} {server.registry_name}: {server.current_status or 'unknown'} (score {score})")


def print_profile_info(config_manager) -> None:
    """Print information about available profiles."""
    print("Available health profiles:")
    for profile_name in config_manager.list_profiles():
        profile = config_manager.profiles[profile_name]
        active_marker = " (active)" if profile_name == config_manager.active_profile else ""
        print(f"  {profile_name}{active_marker}: {profile.description}")

        if profile_name == config_manager.active_profile:
            enabled_checkers = [name for name, config in profile.checkers.items() if config.enabled]
            print(f"    Checkers: {', '.join(enabled_checkers)}")
            print(
                f"    Batches: connection {profile.connection_batch_size}, "
                f"compliance {profile.compliance_batch_size}, score {profile.score_batch_size}"
            )
