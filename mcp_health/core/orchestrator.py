"""Batch orchestration of checks and scoring across a server fleet."""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable

from ..checkers.base import build_default_registry
from ..config.settings import ConfigurationManager
from ..storage.base import ResultStore
from ..utils.debug import debug_log, log_batch_progress, log_batch_summary, verbose_log
from .client import ProtocolClient
from .inflight import InFlightRegistry
from .models import ServerStatus
from .recording import HealthRecorder
from .result import BatchSummary

SKIPPED = "skipped"
PASSED = "passed"
FAILED = "failed"
SCORED = "scored"

OPERATIONS = ["connection", "compliance", "score"]


class BatchOrchestrator:
    """Runs one operation over many servers in sequential, internally concurrent batches.

    A server's failure never affects its siblings: exceptions are tallied as
    ``error`` and the run continues. Only aggregate counts are returned;
    per-server outcomes go to the store.
    """

    def __init__(
        self,
        store: ResultStore,
        config_manager: ConfigurationManager | None = None,
        client: ProtocolClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.config_manager = config_manager or ConfigurationManager()
        self.client = client or ProtocolClient()
        self.profile = self.config_manager.get_active_profile()
        self.registry = build_default_registry()

        self.connection_checker = self.registry.create_checker(
            "connection", self.profile.checker_settings("connection"), client=self.client, clock=clock
        )
        self.compliance_checker = self.registry.create_checker(
            "compliance", self.profile.checker_settings("compliance"), client=self.client, clock=clock
        )
        self.recorder = HealthRecorder(
            store, self.connection_checker, self.compliance_checker, self.profile
        )
        self.inflight = InFlightRegistry(max_age=self.profile.inflight_max_age, clock=clock)

    async def connection_check_all(self, server_ids: list[str] | None = None) -> BatchSummary:
        """Connection-check every server; local-only servers are counted, never checked."""
        return await self._run_operation("connection", server_ids, self._connection_one)

    async def compliance_check_all(self, server_ids: list[str] | None = None) -> BatchSummary:
        """Run the compliance battery against every remote server."""
        return await self._run_operation("compliance", server_ids, self._compliance_one)

    async def score_all(self, server_ids: list[str] | None = None) -> BatchSummary:
        """Recompute and record the trust score of every server."""
        return await self._run_operation("score", server_ids, self._score_one)

    async def run(self, operation: str, server_ids: list[str] | None = None) -> BatchSummary:
        """Run a named operation, or "all" for connection, compliance then score."""
        if operation == "connection":
            return await self.connection_check_all(server_ids)
        if operation == "compliance":
            return await self.compliance_check_all(server_ids)
        if operation == "score":
            return await self.score_all(server_ids)
        if operation != "all":
            raise ValueError(f"Unknown operation '{operation}' (expected one of {OPERATIONS + ['all']})")

        start_time = time.time()
        ids = await self._resolve_ids(server_ids)
        combined = BatchSummary(operation="all", checked=len(ids))
        for summary in [
            await self.connection_check_all(ids),
            await self.compliance_check_all(ids),
            await self.score_all(ids),
        ]:
            for key in ("up", "down", "timeout", "error", "passed", "failed", "scored", "local", "skipped"):
                setattr(combined, key, getattr(combined, key) + getattr(summary, key))
        combined.execution_time = time.time() - start_time
        return combined

    async def _resolve_ids(self, server_ids: list[str] | None) -> list[str]:
        if server_ids is None:
            return await self.store.list_server_ids()
        # Ordered set: first occurrence wins
        return list(dict.fromkeys(server_ids))

    async def _run_operation(
        self,
        operation: str,
        server_ids: list[str] | None,
        worker: Callable[[str], Awaitable[str]],
    ) -> BatchSummary:
        start_time = time.time()
        ids = await self._resolve_ids(server_ids)
        summary = BatchSummary(operation=operation, checked=len(ids))

        checker = {"connection": self.connection_checker, "compliance": self.compliance_checker}.get(operation)
        if checker is not None and not checker.enabled:
            verbose_log(f"⏭️ {operation} checks disabled in profile '{self.profile.name}'")
            summary.skipped = len(ids)
            summary.execution_time = time.time() - start_time
            return summary

        batch_size = max(1, self.profile.batch_size(operation))
        total_batches = math.ceil(len(ids) / batch_size)
        verbose_log(f"🚀 [{operation}] {len(ids)} servers in {total_batches} batches of {batch_size}")

        for batch_number, index in enumerate(range(0, len(ids), batch_size), start=1):
            batch = ids[index : index + batch_size]
            outcomes = await asyncio.gather(
                *(worker(server_id) for server_id in batch), return_exceptions=True
            )
            for server_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    debug_log(
                        f"[{operation}] {server_id} failed: {type(outcome).__name__}: {outcome}",
                        "ERROR",
                        "BATCH",
                    )
                    summary.error += 1
                else:
                    setattr(summary, outcome, getattr(summary, outcome) + 1)
            log_batch_progress(operation, batch_number, total_batches, summary.counts())

        self.inflight.sweep()
        summary.execution_time = time.time() - start_time
        log_batch_summary(operation, summary.counts(), summary.execution_time)
        return summary

    async def _guarded(self, server_id: str, check: Callable[[str], Awaitable[str]]) -> str:
        server = await self.store.get_server(server_id)
        if server.is_local_only:
            await self.recorder.mark_local(server_id)
            return ServerStatus.LOCAL

        if not self.inflight.acquire(server_id):
            debug_log(f"{server_id} already has a check in flight", "WARN", "BATCH")
            return SKIPPED
        try:
            return await check(server_id)
        finally:
            self.inflight.release(server_id)

    async def _connection_one(self, server_id: str) -> str:
        async def check(server_id: str) -> str:
            result = await self.recorder.check_and_record(server_id)
            return result.status

        return await self._guarded(server_id, check)

    async def _compliance_one(self, server_id: str) -> str:
        async def check(server_id: str) -> str:
            result = await self.recorder.compliance_check_and_record(server_id)
            return PASSED if result.passed else FAILED

        return await self._guarded(server_id, check)

    async def _score_one(self, server_id: str) -> str:
        await self.recorder.score_and_record(server_id)
        return SCORED
