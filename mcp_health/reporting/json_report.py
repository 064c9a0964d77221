"""JSON reporting for MCP health results."""

import datetime
import json
from typing import Any

from .. import __version__
from ..core.result import BatchSummary, ComplianceResult, HealthCheckResult, ScoreBreakdown
from ..storage.memory import InMemoryResultStore


class JSONReporter:
    """Generates JSON reports from batch runs and single-endpoint probes."""

    def generate_report(
        self,
        summaries: list[BatchSummary],
        store: InMemoryResultStore,
        profile_name: str,
        breakdowns: dict[str, ScoreBreakdown] | None = None,
    ) -> dict[str, Any]:
        """Generate a report covering a catalog run."""
        breakdowns = breakdowns or {}
        servers = []
        for server in store.list_servers():
            servers.append(
                {
                    "id": server.id,
                    "registry_name": server.registry_name,
                    "remote_url": server.remote_url,
                    "transport_type": server.transport_type,
                    "current_status": server.current_status,
                    "trust_score": server.trust_score,
                    "uptime_24h": server.uptime_24h,
                    "uptime_7d": server.uptime_7d,
                    "uptime_30d": server.uptime_30d,
                    "latency_p50": server.latency_p50,
                    "latency_p95": server.latency_p95,
                    "score_breakdown": (
                        breakdowns[server.id].to_dict() if server.id in breakdowns else None
                    ),
                }
            )

        return {
            "report_metadata": self._metadata(profile_name),
            "summaries": [summary.to_dict() for summary in summaries],
            "servers": servers,
            "events": [
                {
                    "server_id": event.server_id,
                    "event_type": event.event_type,
                    "old_value": event.old_value,
                    "new_value": event.new_value,
                    "created_at": event.created_at.isoformat(),
                }
                for event in store.list_events()
            ],
        }

    def generate_probe_report(
        self,
        endpoint: str,
        transport_kind: str,
        check: HealthCheckResult,
        compliance: ComplianceResult | None,
        profile_name: str,
    ) -> dict[str, Any]:
        """Generate a report for a single endpoint probed without a catalog."""
        return {
            "report_metadata": {**self._metadata(profile_name), "endpoint": endpoint, "transport": transport_kind},
            "connection": check.to_dict(),
            "compliance": compliance.to_dict() if compliance else None,
        }

    def _metadata(self, profile_name: str) -> dict[str, Any]:
        return {
            "generated_at": datetime.datetime.now().isoformat(),
            "mcp_health_version": __version__,
            "profile_used": profile_name,
        }

    def save_report(self, report: dict[str, Any], filename: str) -> None:
        """Save a generated JSON report to file."""
        with open(filename, "w") as f:
            json.dump(report, f, indent=2, default=str)

        print(f"📋 JSON report saved to: {filename}")
