"""Catalog-side data structures and status vocabularies."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Timezone-aware current time used for all recorded timestamps."""
    return datetime.now(timezone.utc)


class CheckStatus:
    """Outcome of a single check run."""

    UP = "up"
    DOWN = "down"
    ERROR = "error"
    TIMEOUT = "timeout"

    ALL = (UP, DOWN, ERROR, TIMEOUT)


class ServerStatus:
    """Cached server status; extends CheckStatus with catalog-only states."""

    UP = CheckStatus.UP
    DOWN = CheckStatus.DOWN
    ERROR = CheckStatus.ERROR
    TIMEOUT = CheckStatus.TIMEOUT
    UNKNOWN = "unknown"
    LOCAL = "local"


class CheckLevel:
    """Which checker produced a health-check row."""

    CONNECTION = "connection"
    COMPLIANCE = "compliance"


class TransportKind:
    """Wire bindings a remote server can speak."""

    STREAMABLE_HTTP = "streamable-http"
    SSE = "sse"
    HTTP = "http"
    MIXED = "mixed"
    STDIO = "stdio"


class EventType:
    """Discrete transitions surfaced as server events."""

    STATUS_CHANGE = "status_change"
    SCORE_CHANGE = "score_change"
    COMPLIANCE_CHANGE = "compliance_change"


@dataclass
class ServerEndpoint:
    """Network addressing of a server; remote_url is None for local-only servers."""

    remote_url: str | None
    transport_kind: str = TransportKind.STREAMABLE_HTTP

    @property
    def is_local_only(self) -> bool:
        return not self.remote_url


@dataclass
class ServerRecord:
    """A cataloged server with its cached, derived fields."""

    id: str
    registry_name: str
    remote_url: str | None = None
    transport_type: str = TransportKind.STREAMABLE_HTTP
    # Cached fields, overwritten by each check or score run
    current_status: str | None = None
    trust_score: int | None = None
    uptime_24h: float | None = None
    uptime_7d: float | None = None
    uptime_30d: float | None = None
    latency_p50: int | None = None
    latency_p95: int | None = None
    # Metadata owned by the catalog
    title: str | None = None
    description: str | None = None
    version: str | None = None
    repo_url: str | None = None
    website_url: str | None = None
    icon_url: str | None = None
    external_use_count: int | None = None
    registry_updated_at: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_local_only(self) -> bool:
        return not self.remote_url

    @property
    def endpoint(self) -> ServerEndpoint:
        return ServerEndpoint(remote_url=self.remote_url, transport_kind=self.transport_type)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerRecord":
        """Build a record from a catalog entry (snake_case or camelCase keys)."""
        aliases = {
            "registryName": "registry_name",
            "name": "registry_name",
            "remoteUrl": "remote_url",
            "transportType": "transport_type",
            "transport": "transport_type",
            "currentStatus": "current_status",
            "trustScore": "trust_score",
            "repoUrl": "repo_url",
            "websiteUrl": "website_url",
            "iconUrl": "icon_url",
            "externalUseCount": "external_use_count",
            "registryUpdatedAt": "registry_updated_at",
        }
        known = set(cls.__dataclass_fields__) - {"extra"}
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            key = aliases.get(key, key)
            if key in known:
                values[key] = value
            else:
                extra[key] = value

        if "id" not in values:
            values["id"] = values.get("registry_name")
        if not values.get("id") or not values.get("registry_name"):
            raise ValueError(f"Catalog entry needs an id or registry name: {data}")

        updated_at = values.get("registry_updated_at")
        if isinstance(updated_at, str):
            parsed = datetime.fromisoformat(updated_at.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            values["registry_updated_at"] = parsed

        if not values.get("transport_type"):
            values["transport_type"] = TransportKind.STREAMABLE_HTTP

        return cls(**values, extra=extra)
