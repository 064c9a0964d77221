"""Persistence interface the health engine writes through."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ..core.models import ServerEndpoint, ServerRecord
from ..core.result import HealthCheckResult, SchemaSnapshot, ScoreBreakdown, ServerEvent

# Cached server fields the engine may overwrite
CACHED_FIELDS = frozenset(
    {
        "current_status",
        "trust_score",
        "uptime_24h",
        "uptime_7d",
        "uptime_30d",
        "latency_p50",
        "latency_p95",
    }
)


class ResultStore(ABC):
    """Storage collaborator for servers, check history, snapshots, scores and events.

    Implementations raise StorageError (or ServerNotFoundError) on failure.
    """

    @abstractmethod
    async def get_server(self, server_id: str) -> ServerRecord:
        """Return the server record or raise ServerNotFoundError."""

    @abstractmethod
    async def list_server_ids(self, remote_only: bool = False) -> list[str]:
        """Server ids ordered by registry name."""

    @abstractmethod
    async def get_server_endpoint(self, server_id: str) -> ServerEndpoint:
        """Return the server's endpoint or raise ServerNotFoundError."""

    @abstractmethod
    async def record_health_check(self, server_id: str, result: HealthCheckResult) -> None:
        """Append a check result to the server's history."""

    @abstractmethod
    async def list_health_checks(
        self,
        server_id: str,
        since: datetime | None = None,
        check_level: str | None = None,
    ) -> list[HealthCheckResult]:
        """Check history, oldest first."""

    @abstractmethod
    async def get_latest_schema_hash(self, server_id: str) -> str | None:
        pass

    @abstractmethod
    async def record_schema_snapshot(
        self, server_id: str, tools_json: list[dict[str, Any]], tools_hash: str
    ) -> SchemaSnapshot:
        pass

    @abstractmethod
    async def list_schema_snapshots(
        self, server_id: str, limit: int | None = None
    ) -> list[SchemaSnapshot]:
        """Snapshots newest first."""

    @abstractmethod
    async def upsert_capabilities(
        self,
        server_id: str,
        tools: list[dict[str, Any]],
        resources: list[dict[str, Any]] | None = None,
    ) -> None:
        """Insert or update capabilities keyed by (server_id, type, name)."""

    @abstractmethod
    async def update_server_cached_fields(self, server_id: str, **fields: Any) -> None:
        """Overwrite cached fields (see CACHED_FIELDS) on the server record."""

    @abstractmethod
    async def append_score_history(self, server_id: str, breakdown: ScoreBreakdown) -> None:
        pass

    @abstractmethod
    async def append_event(
        self, server_id: str, event_type: str, old_value: str | None, new_value: str | None
    ) -> ServerEvent:
        pass
