"""CLI interface for MCP health checks and trust scoring."""

import argparse
import asyncio
import sys

from ..checkers.compliance import ComplianceChecker
from ..checkers.connection import ConnectionChecker
from ..config.settings import ConfigurationManager, HealthProfile, load_config_from_env
from ..core.client import ProtocolClient
from ..core.exceptions import MCPHealthError
from ..core.models import CheckStatus, TransportKind
from ..core.orchestrator import OPERATIONS, BatchOrchestrator
from ..core.transport_factory import TransportFactory
from ..reporting.console import ConsoleReporter, print_profile_info
from ..reporting.json_report import JSONReporter
from ..storage.memory import InMemoryResultStore
from ..utils.debug import set_debug_enabled, set_verbose_enabled


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Check MCP server health and compute trust scores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Probe a single endpoint (connection + compliance, nothing stored)
  mcp-health probe --endpoint https://example.com/mcp

  # Probe an SSE endpoint with a bearer token
  mcp-health probe --endpoint https://example.com/sse --transport sse --auth-token TOKEN

  # Connection-check every server in a catalog, then score them
  mcp-health connection --catalog servers.json
  mcp-health all --catalog servers.json --json-report report.json

  # List available profiles
  mcp-health --list-profiles

Environment Variables:
  MCP_HEALTH_CONFIG    - Path to configuration file
  MCP_HEALTH_PROFILE   - Active profile name
        """,
    )

    parser.add_argument(
        "operation",
        nargs="?",
        choices=["probe", *OPERATIONS, "all"],
        help="What to run: probe a single endpoint, or a batch operation over a catalog",
    )

    # Targets
    parser.add_argument("--endpoint", metavar="URL", help="Remote MCP endpoint URL for probe")
    parser.add_argument(
        "--transport",
        choices=TransportFactory.get_supported_transports(),
        default=TransportKind.STREAMABLE_HTTP,
        help="Wire transport for probe (default: streamable-http)",
    )
    parser.add_argument("--auth-token", metavar="TOKEN", help="Bearer token sent to remote servers")
    parser.add_argument("--catalog", metavar="FILE", help="JSON server catalog for batch operations")

    # Configuration options
    parser.add_argument("--config", metavar="FILE", help="Configuration file path")
    parser.add_argument("--profile", metavar="NAME", help="Health profile to use")
    parser.add_argument("--list-profiles", action="store_true", help="List available health profiles")
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Connection timeout override (compliance gets twice this)",
    )

    # Output options
    parser.add_argument(
        "--json-report", metavar="FILENAME", help="Export detailed JSON report to specified file"
    )
    parser.add_argument("--verbose", action="store_true", help="Show detailed progress output")
    parser.add_argument(
        "--debug", action="store_true", help="Enable detailed debug output with timestamps"
    )

    return parser


def apply_timeout_override(profile: HealthProfile, timeout: float) -> None:
    """Set the connection timeout and derive the compliance timeout from it."""
    if "connection" in profile.checkers:
        profile.checkers["connection"].timeout = timeout
    if "compliance" in profile.checkers:
        profile.checkers["compliance"].timeout = timeout * 2


async def run_probe(args, profile: HealthProfile, console: ConsoleReporter) -> int:
    """Connection check plus compliance battery against one endpoint."""
    client = ProtocolClient(auth_token=args.auth_token)
    connection_checker = ConnectionChecker(profile.checker_settings("connection"), client=client)
    check = await connection_checker.check(args.endpoint, args.transport)
    console.report_check(check, args.endpoint)

    compliance = None
    if profile.is_enabled("compliance"):
        print()
        compliance_checker = ComplianceChecker(profile.checker_settings("compliance"), client=client)
        compliance = await compliance_checker.check(args.endpoint, args.transport)
        console.report_compliance(compliance, args.endpoint)

    if args.json_report:
        reporter = JSONReporter()
        report = reporter.generate_probe_report(
            args.endpoint, args.transport, check, compliance, profile.name
        )
        reporter.save_report(report, args.json_report)

    healthy = check.status == CheckStatus.UP and (compliance is None or compliance.passed)
    return 0 if healthy else 1


async def run_catalog(
    args, config_manager: ConfigurationManager, console: ConsoleReporter
) -> int:
    """Run a batch operation over every server in the catalog."""
    store = InMemoryResultStore.load_catalog(args.catalog)
    orchestrator = BatchOrchestrator(
        store, config_manager, client=ProtocolClient(auth_token=args.auth_token)
    )

    operations = OPERATIONS if args.operation == "all" else [args.operation]
    summaries = []
    for operation in operations:
        summary = await orchestrator.run(operation)
        console.report_summary(summary)
        summaries.append(summary)

    breakdowns = {}
    for server in store.list_servers():
        history = store.list_score_history(server.id)
        if history:
            breakdowns[server.id] = history[-1]

    print()
    print("Servers:")
    console.report_servers(store.list_servers())
    if args.verbose:
        for server in store.list_servers():
            if server.id in breakdowns:
                console.report_breakdown(breakdowns[server.id], server.registry_name)

    if args.json_report:
        reporter = JSONReporter()
        report = reporter.generate_report(
            summaries, store, config_manager.active_profile, breakdowns
        )
        reporter.save_report(report, args.json_report)

    return 0 if all(summary.error == 0 for summary in summaries) else 1


async def main(argv: list[str] | None = None):
    """CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    set_debug_enabled(args.debug)
    set_verbose_enabled(args.verbose)

    try:
        # Load configuration
        if args.config:
            config_manager = ConfigurationManager(args.config)
        else:
            config_manager = load_config_from_env()

        if args.profile:
            config_manager.set_active_profile(args.profile)

        # Handle information commands
        if args.list_profiles:
            print_profile_info(config_manager)
            return 0

        if not args.operation:
            parser.error("an operation is required (probe, connection, compliance, score or all)")

        if args.operation == "probe":
            if not args.endpoint:
                parser.error("--endpoint is required for probe")
            if not args.endpoint.startswith(("http://", "https://")):
                parser.error("--endpoint must be a valid HTTP URL (http:// or https://)")
        elif not args.catalog:
            parser.error(f"--catalog is required for {args.operation}")

        profile = config_manager.get_active_profile()
        if args.timeout:
            apply_timeout_override(profile, args.timeout)

        print(f"Using profile: {profile.name}")
        if args.operation == "probe":
            print(f"Probing MCP endpoint: {args.endpoint} ({args.transport})")
        else:
            print(f"Catalog: {args.catalog}")
        print()

        console = ConsoleReporter(verbose=args.verbose)
        if args.operation == "probe":
            return await run_probe(args, profile, console)
        return await run_catalog(args, config_manager, console)

    except (ValueError, MCPHealthError) as e:
        print(f"❌ Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n🛑 Health check interrupted")
        return 1
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        if args.debug:
            import traceback

            traceback.print_exc()
        return 1


def cli_main():
    """Synchronous entry point for CLI script."""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\n🛑 Health check interrupted")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
