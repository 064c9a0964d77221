"""In-memory ResultStore, loadable from a JSON server catalog."""

import asyncio
import json
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.exceptions import ServerNotFoundError, StorageError
from ..core.models import ServerEndpoint, ServerRecord, utc_now
from ..core.result import (
    CapabilityRecord,
    HealthCheckResult,
    SchemaSnapshot,
    ScoreBreakdown,
    ServerEvent,
)
from ..utils.debug import debug_log
from .base import CACHED_FIELDS, ResultStore


class InMemoryResultStore(ResultStore):
    """Keeps everything in process memory; every call mutates under one lock."""

    def __init__(self, servers: list[ServerRecord] | None = None):
        self._lock = asyncio.Lock()
        self._servers: dict[str, ServerRecord] = {}
        self._checks: dict[str, list[HealthCheckResult]] = {}
        self._snapshots: dict[str, list[SchemaSnapshot]] = {}
        self._capabilities: dict[tuple[str, str, str], CapabilityRecord] = {}
        self._score_history: dict[str, list[ScoreBreakdown]] = {}
        self._events: list[ServerEvent] = []

        for server in servers or []:
            self.add_server(server)

    @classmethod
    def from_catalog(cls, entries: list[dict[str, Any]]) -> "InMemoryResultStore":
        """Build a store from catalog entries (see ServerRecord.from_dict)."""
        try:
            servers = [ServerRecord.from_dict(entry) for entry in entries]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Invalid catalog entry: {e}") from e
        return cls(servers)

    @classmethod
    def load_catalog(cls, path: str | Path) -> "InMemoryResultStore":
        """Load a JSON catalog: a list of servers or an object with a "servers" list."""
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to load catalog from {path}: {e}") from e

        entries = data.get("servers", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise StorageError(f"Catalog {path} does not contain a server list")

        store = cls.from_catalog(entries)
        debug_log(f"Loaded {len(store._servers)} servers from {path}", "INFO", "STORAGE")
        return store

    def add_server(self, server: ServerRecord) -> None:
        self._servers[server.id] = server

    def _require(self, server_id: str) -> ServerRecord:
        server = self._servers.get(server_id)
        if server is None:
            raise ServerNotFoundError(f"Server not found: {server_id}")
        return server

    async def get_server(self, server_id: str) -> ServerRecord:
        async with self._lock:
            return replace(self._require(server_id))

    async def get_server_by_name(self, registry_name: str) -> ServerRecord:
        async with self._lock:
            for server in self._servers.values():
                if server.registry_name == registry_name:
                    return replace(server)
        raise ServerNotFoundError(f"Server not found: {registry_name}")

    async def list_server_ids(self, remote_only: bool = False) -> list[str]:
        async with self._lock:
            servers = sorted(self._servers.values(), key=lambda server: server.registry_name)
            return [server.id for server in servers if not (remote_only and server.is_local_only)]

    async def get_server_endpoint(self, server_id: str) -> ServerEndpoint:
        async with self._lock:
            return self._require(server_id).endpoint

    async def record_health_check(self, server_id: str, result: HealthCheckResult) -> None:
        async with self._lock:
            self._require(server_id)
            self._checks.setdefault(server_id, []).append(result)

    async def list_health_checks(
        self,
        server_id: str,
        since: datetime | None = None,
        check_level: str | None = None,
    ) -> list[HealthCheckResult]:
        async with self._lock:
            checks = self._checks.get(server_id, [])
            return [
                check
                for check in checks
                if (since is None or check.checked_at > since)
                and (check_level is None or check.check_level == check_level)
            ]

    async def get_latest_schema_hash(self, server_id: str) -> str | None:
        async with self._lock:
            snapshots = self._snapshots.get(server_id)
            return snapshots[-1].tools_hash if snapshots else None

    async def record_schema_snapshot(
        self, server_id: str, tools_json: list[dict[str, Any]], tools_hash: str
    ) -> SchemaSnapshot:
        async with self._lock:
            self._require(server_id)
            snapshot = SchemaSnapshot(server_id=server_id, tools_hash=tools_hash, tools=tools_json)
            self._snapshots.setdefault(server_id, []).append(snapshot)
            return snapshot

    async def list_schema_snapshots(
        self, server_id: str, limit: int | None = None
    ) -> list[SchemaSnapshot]:
        async with self._lock:
            snapshots = list(reversed(self._snapshots.get(server_id, [])))
            return snapshots[:limit] if limit is not None else snapshots

    async def upsert_capabilities(
        self,
        server_id: str,
        tools: list[dict[str, Any]],
        resources: list[dict[str, Any]] | None = None,
    ) -> None:
        async with self._lock:
            self._require(server_id)
            now = utc_now()
            for capability_type, items in (("tool", tools), ("resource", resources or [])):
                for item in items:
                    name = item.get("name") or item.get("uri")
                    if not name:
                        continue
                    key = (server_id, capability_type, name)
                    existing = self._capabilities.get(key)
                    if existing:
                        existing.description = item.get("description")
                        existing.updated_at = now
                    else:
                        self._capabilities[key] = CapabilityRecord(
                            server_id=server_id,
                            capability_type=capability_type,
                            name=name,
                            description=item.get("description"),
                            updated_at=now,
                        )

    async def update_server_cached_fields(self, server_id: str, **fields: Any) -> None:
        unknown = set(fields) - CACHED_FIELDS
        if unknown:
            raise StorageError(f"Not a cached server field: {', '.join(sorted(unknown))}")

        async with self._lock:
            server = self._require(server_id)
            for name, value in fields.items():
                setattr(server, name, value)

    async def append_score_history(self, server_id: str, breakdown: ScoreBreakdown) -> None:
        async with self._lock:
            self._require(server_id)
            self._score_history.setdefault(server_id, []).append(breakdown)

    async def append_event(
        self, server_id: str, event_type: str, old_value: str | None, new_value: str | None
    ) -> ServerEvent:
        async with self._lock:
            event = ServerEvent(
                server_id=server_id,
                event_type=event_type,
                old_value=old_value,
                new_value=new_value,
            )
            self._events.append(event)
            return event

    # Read-side accessors for reporting and tests

    def list_servers(self) -> list[ServerRecord]:
        return sorted(self._servers.values(), key=lambda server: server.registry_name)

    def list_events(self, server_id: str | None = None) -> list[ServerEvent]:
        return [event for event in self._events if server_id is None or event.server_id == server_id]

    def list_score_history(self, server_id: str) -> list[ScoreBreakdown]:
        return list(self._score_history.get(server_id, []))

    def list_capabilities(self, server_id: str) -> list[CapabilityRecord]:
        return [record for key, record in self._capabilities.items() if key[0] == server_id]
