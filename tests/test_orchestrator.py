"""BatchOrchestrator and HealthRecorder tests over the in-memory store."""

from unittest.mock import AsyncMock, patch

import pytest

from mcp_health.config.settings import ConfigurationManager
from mcp_health.core.client import ProtocolClient
from mcp_health.core.exceptions import ConnectError, LocalOnlyServerError, StorageError
from mcp_health.core.models import CheckLevel, CheckStatus, EventType, ServerStatus
from mcp_health.core.orchestrator import BatchOrchestrator
from mcp_health.storage.memory import InMemoryResultStore
from tests.fakes import FakeTransportFactory, ServerScript, make_server, make_tool

ALPHA = "https://alpha.example.com/mcp"
BETA = "https://beta.example.com/sse"


def make_orchestrator(store, factory, profile: str = "default") -> BatchOrchestrator:
    config_manager = ConfigurationManager()
    config_manager.set_active_profile(profile)
    return BatchOrchestrator(store, config_manager, client=ProtocolClient(transport_factory=factory))


def fleet(size: int, failing: set[int]) -> tuple[InMemoryResultStore, FakeTransportFactory]:
    servers = []
    scripts = {}
    for index in range(size):
        url = f"https://s{index:02d}.example.com/mcp"
        servers.append(make_server(f"s{index:02d}", url))
        if index in failing:
            scripts[url] = ServerScript(open_error=ConnectError("Connection refused"))
        else:
            scripts[url] = ServerScript(tools=[make_tool("search")])
    return InMemoryResultStore(servers), FakeTransportFactory(scripts)


class TestConnectionCheckAll:
    """Connection checks across a fleet."""

    @pytest.mark.asyncio
    async def test_counts_and_local_servers(self, store):
        factory = FakeTransportFactory(
            {ALPHA: ServerScript(), BETA: ServerScript(open_error=ConnectError("refused"))}
        )
        orchestrator = make_orchestrator(store, factory)

        summary = await orchestrator.connection_check_all()

        assert summary.checked == 3
        assert summary.up == 1
        assert summary.down == 1
        assert summary.local == 1
        assert summary.error == 0
        assert summary.up + summary.down + summary.timeout + summary.error + summary.local + summary.skipped == summary.checked
        # The local-only server never reached a transport
        assert {transport.endpoint for transport in factory.created} == {ALPHA, BETA}
        assert (await store.get_server("local")).current_status == ServerStatus.LOCAL
        assert (await store.get_server("alpha")).current_status == CheckStatus.UP
        assert (await store.get_server("beta")).current_status == CheckStatus.DOWN

    @pytest.mark.asyncio
    async def test_failures_are_isolated_across_batches(self):
        store, factory = fleet(25, failing={0, 7, 13, 24})
        orchestrator = make_orchestrator(store, factory)

        summary = await orchestrator.connection_check_all()

        assert summary.checked == 25
        assert summary.up == 21
        assert summary.down == 4

    @pytest.mark.asyncio
    async def test_exceptions_are_counted_as_errors(self):
        store, factory = fleet(12, failing=set())
        orchestrator = make_orchestrator(store, factory)

        original = orchestrator.recorder.check_and_record

        async def flaky(server_id):
            if server_id in ("s03", "s10"):
                raise RuntimeError("kaboom")
            return await original(server_id)

        with patch.object(orchestrator.recorder, "check_and_record", side_effect=flaky):
            summary = await orchestrator.connection_check_all()

        assert summary.checked == 12
        assert summary.error == 2
        assert summary.up == 10

    @pytest.mark.asyncio
    async def test_primary_storage_error_is_counted(self, store):
        factory = FakeTransportFactory({ALPHA: ServerScript(), BETA: ServerScript()})
        orchestrator = make_orchestrator(store, factory)
        store.record_health_check = AsyncMock(side_effect=StorageError("disk full"))

        summary = await orchestrator.connection_check_all(["alpha", "beta"])

        assert summary.checked == 2
        assert summary.error == 2

    @pytest.mark.asyncio
    async def test_duplicate_ids_collapsed(self, store):
        factory = FakeTransportFactory({ALPHA: ServerScript()})
        orchestrator = make_orchestrator(store, factory)

        summary = await orchestrator.connection_check_all(["alpha", "alpha", "alpha"])

        assert summary.checked == 1
        assert len(factory.created) == 1

    @pytest.mark.asyncio
    async def test_unknown_server_is_an_error(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        summary = await orchestrator.connection_check_all(["missing"])
        assert summary.error == 1

    @pytest.mark.asyncio
    async def test_in_flight_server_is_skipped(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory({ALPHA: ServerScript()}))
        assert orchestrator.inflight.acquire("alpha")

        summary = await orchestrator.connection_check_all(["alpha"])

        assert summary.skipped == 1
        assert summary.up == 0

    @pytest.mark.asyncio
    async def test_in_flight_entry_released(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory({ALPHA: ServerScript()}))
        await orchestrator.connection_check_all(["alpha"])
        assert not orchestrator.inflight.is_in_flight("alpha")


class TestRecording:
    """Derived state written after checks."""

    @pytest.mark.asyncio
    async def test_status_change_event(self, store):
        script = ServerScript()
        factory = FakeTransportFactory({ALPHA: script})
        orchestrator = make_orchestrator(store, factory)

        await orchestrator.connection_check_all(["alpha"])
        assert store.list_events("alpha") == []

        script.open_error = ConnectError("refused")
        await orchestrator.connection_check_all(["alpha"])

        events = store.list_events("alpha")
        assert len(events) == 1
        assert events[0].event_type == EventType.STATUS_CHANGE
        assert (events[0].old_value, events[0].new_value) == ("up", "down")

    @pytest.mark.asyncio
    async def test_schema_snapshot_only_on_change(self, store):
        script = ServerScript(tools=[make_tool("search")])
        orchestrator = make_orchestrator(store, FakeTransportFactory({ALPHA: script}))

        await orchestrator.connection_check_all(["alpha"])
        await orchestrator.connection_check_all(["alpha"])
        assert len(await store.list_schema_snapshots("alpha")) == 1

        script.tools = [make_tool("search", {"q": {"type": "string"}})]
        await orchestrator.connection_check_all(["alpha"])
        snapshots = await store.list_schema_snapshots("alpha")
        assert len(snapshots) == 2
        assert [c.name for c in store.list_capabilities("alpha")] == ["search"]

    @pytest.mark.asyncio
    async def test_capability_sync_failure_is_swallowed(self, store):
        orchestrator = make_orchestrator(
            store, FakeTransportFactory({ALPHA: ServerScript(tools=[make_tool("search")])})
        )
        store.upsert_capabilities = AsyncMock(side_effect=StorageError("constraint violation"))

        summary = await orchestrator.connection_check_all(["alpha"])

        assert summary.up == 1
        assert summary.error == 0
        assert len(await store.list_schema_snapshots("alpha")) == 1

    @pytest.mark.asyncio
    async def test_sync_capabilities_reports_failure(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        store.upsert_capabilities = AsyncMock(side_effect=StorageError("constraint violation"))

        outcome = await orchestrator.recorder.sync_capabilities("alpha", [make_tool("x")], None)

        assert not outcome.ok
        assert "constraint violation" in outcome.error

    @pytest.mark.asyncio
    async def test_local_server_rejected_by_recorder(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        with pytest.raises(LocalOnlyServerError):
            await orchestrator.recorder.check_and_record("local")


class TestComplianceCheckAll:
    @pytest.mark.asyncio
    async def test_pass_fail_counts(self, store):
        factory = FakeTransportFactory(
            {ALPHA: ServerScript(), BETA: ServerScript(open_error=ConnectError("refused"))}
        )
        orchestrator = make_orchestrator(store, factory)

        summary = await orchestrator.compliance_check_all()

        assert summary.checked == 3
        assert summary.passed == 1
        assert summary.failed == 1
        assert summary.local == 1

        checks = await store.list_health_checks("beta", check_level=CheckLevel.COMPLIANCE)
        assert len(checks) == 1
        assert checks[0].status == CheckStatus.DOWN
        assert checks[0].compliance_pass is False
        assert '"initialize"' in checks[0].error_message

        alpha_checks = await store.list_health_checks("alpha", check_level=CheckLevel.COMPLIANCE)
        assert alpha_checks[0].error_message is None

    @pytest.mark.asyncio
    async def test_compliance_change_event(self, store):
        script = ServerScript()
        orchestrator = make_orchestrator(store, FakeTransportFactory({ALPHA: script}))

        await orchestrator.compliance_check_all(["alpha"])
        script.init_result = {**script.init_result, "capabilities": None}
        await orchestrator.compliance_check_all(["alpha"])

        events = store.list_events("alpha")
        assert [(e.event_type, e.old_value, e.new_value) for e in events] == [
            (EventType.COMPLIANCE_CHANGE, "pass", "fail")
        ]

    @pytest.mark.asyncio
    async def test_disabled_in_quick_profile(self, store):
        factory = FakeTransportFactory()
        orchestrator = make_orchestrator(store, factory, profile="quick")

        summary = await orchestrator.compliance_check_all()

        assert summary.skipped == 3
        assert factory.created == []


class TestScoreAll:
    @pytest.mark.asyncio
    async def test_scores_every_server(self, store):
        factory = FakeTransportFactory({ALPHA: ServerScript(), BETA: ServerScript()})
        orchestrator = make_orchestrator(store, factory)
        await orchestrator.connection_check_all()
        await orchestrator.compliance_check_all()

        summary = await orchestrator.score_all()

        assert summary.checked == 3
        assert summary.scored == 3
        assert summary.error == 0

        alpha = await store.get_server("alpha")
        assert alpha.trust_score == 100
        assert alpha.uptime_24h == 100.0
        assert alpha.current_status == CheckStatus.UP

        local = await store.get_server("local")
        assert local.trust_score == 60
        assert local.current_status == ServerStatus.LOCAL
        assert len(store.list_score_history("alpha")) == 1

    @pytest.mark.asyncio
    async def test_unchecked_server_status_defaults_to_unknown(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        await orchestrator.score_all(["alpha"])
        assert (await store.get_server("alpha")).current_status == ServerStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_score_change_event_threshold(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        await store.update_server_cached_fields("alpha", trust_score=52)
        await store.update_server_cached_fields("beta", trust_score=44)

        # Never checked: availability and latency score 0, so both land on 49
        await orchestrator.score_all(["alpha", "beta"])

        events = store.list_events()
        assert [(e.server_id, e.old_value, e.new_value) for e in events] == [("beta", "44", "49")]
        assert events[0].event_type == EventType.SCORE_CHANGE

    @pytest.mark.asyncio
    async def test_run_all(self, store):
        factory = FakeTransportFactory({ALPHA: ServerScript(), BETA: ServerScript()})
        orchestrator = make_orchestrator(store, factory)

        summary = await orchestrator.run("all")

        assert summary.operation == "all"
        assert summary.up == 2
        assert summary.passed == 2
        assert summary.scored == 3

    @pytest.mark.asyncio
    async def test_run_unknown_operation(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        with pytest.raises(ValueError):
            await orchestrator.run("reboot")

    @pytest.mark.asyncio
    async def test_get_score_breakdown_by_registry_name(self, store):
        orchestrator = make_orchestrator(store, FakeTransportFactory())
        breakdown = await orchestrator.recorder.get_score_breakdown("io.example/local")
        assert breakdown.is_local_only
        assert breakdown.total_score == 60
