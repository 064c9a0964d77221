"""CLI entry point tests; remote servers are replaced by fake transports."""

import json
from unittest.mock import patch

import pytest

from mcp_health.cli.main import apply_timeout_override, create_argument_parser, main
from mcp_health.config.settings import ConfigurationManager
from mcp_health.core.client import ProtocolClient
from tests.fakes import FakeTransportFactory, ServerScript, make_tool

ALPHA = "https://alpha.example.com/mcp"


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "servers.json"
    path.write_text(
        json.dumps(
            {
                "servers": [
                    {
                        "registryName": "io.example/alpha",
                        "remoteUrl": ALPHA,
                        "description": "Alpha test server",
                        "externalUseCount": 300,
                    },
                    {"registryName": "io.example/desktop", "description": "Runs locally only"},
                ]
            }
        )
    )
    return path


@pytest.fixture
def patched_client():
    factory = FakeTransportFactory({ALPHA: ServerScript(tools=[make_tool("search")])})

    def build(auth_token=None):
        return ProtocolClient(transport_factory=factory, auth_token=auth_token)

    with patch("mcp_health.cli.main.ProtocolClient", side_effect=build):
        yield factory


class TestArgumentParser:
    def test_probe_defaults(self):
        args = create_argument_parser().parse_args(["probe", "--endpoint", ALPHA])
        assert args.operation == "probe"
        assert args.transport == "streamable-http"

    def test_rejects_unknown_transport(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(["probe", "--endpoint", ALPHA, "--transport", "stdio"])

    def test_timeout_override(self):
        profile = ConfigurationManager().get_active_profile()
        apply_timeout_override(profile, 3.0)
        assert profile.checkers["connection"].timeout == 3.0
        assert profile.checkers["compliance"].timeout == 6.0


class TestMain:
    @pytest.mark.asyncio
    async def test_list_profiles(self, capsys):
        assert await main(["--list-profiles"]) == 0
        assert "quick" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_probe_requires_endpoint(self):
        with pytest.raises(SystemExit):
            await main(["probe"])

    @pytest.mark.asyncio
    async def test_batch_requires_catalog(self):
        with pytest.raises(SystemExit):
            await main(["score"])

    @pytest.mark.asyncio
    async def test_unknown_profile_is_user_error(self, capsys):
        assert await main(["--profile", "turbo", "--list-profiles"]) == 1
        assert "not found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_missing_catalog_is_user_error(self, tmp_path, capsys):
        assert await main(["score", "--catalog", str(tmp_path / "missing.json")]) == 1
        assert "Failed to load catalog" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_probe_healthy_endpoint(self, patched_client, tmp_path):
        report_path = tmp_path / "probe.json"

        exit_code = await main(["probe", "--endpoint", ALPHA, "--json-report", str(report_path)])

        assert exit_code == 0
        report = json.loads(report_path.read_text())
        assert report["connection"]["status"] == "up"
        assert report["compliance"]["pass"] is True

    @pytest.mark.asyncio
    async def test_catalog_run_all(self, patched_client, catalog_file, tmp_path):
        report_path = tmp_path / "report.json"

        exit_code = await main(["all", "--catalog", str(catalog_file), "--json-report", str(report_path)])

        assert exit_code == 0
        report = json.loads(report_path.read_text())
        assert [summary["operation"] for summary in report["summaries"]] == [
            "connection",
            "compliance",
            "score",
        ]
        servers = {server["registry_name"]: server for server in report["servers"]}
        assert servers["io.example/alpha"]["current_status"] == "up"
        assert servers["io.example/desktop"]["current_status"] == "local"
        assert servers["io.example/desktop"]["trust_score"] <= 60
        assert servers["io.example/alpha"]["score_breakdown"] is not None
        # The local-only server never reached a transport
        assert {transport.endpoint for transport in patched_client.created} == {ALPHA}
