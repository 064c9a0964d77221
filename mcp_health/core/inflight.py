"""Per-server in-flight guard so one server never has two checks running."""

import time
from collections.abc import Callable

from ..utils.debug import debug_log


class InFlightRegistry:
    """Tracks which servers have a check in flight, with a bounded entry lifetime."""

    def __init__(self, max_age: float = 120.0, clock: Callable[[], float] = time.monotonic):
        self.max_age = max_age
        self.clock = clock
        self._started: dict[str, float] = {}

    def acquire(self, server_id: str) -> bool:
        """Mark a server in flight. False if it already is and the entry is still fresh."""
        self.sweep()
        if server_id in self._started:
            return False
        self._started[server_id] = self.clock()
        return True

    def release(self, server_id: str) -> None:
        self._started.pop(server_id, None)

    def sweep(self, max_age: float | None = None) -> list[str]:
        """Drop entries older than max_age; returns the ids dropped."""
        max_age = self.max_age if max_age is None else max_age
        now = self.clock()
        stale = [server_id for server_id, started in self._started.items() if now - started > max_age]
        for server_id in stale:
            del self._started[server_id]
            debug_log(f"Swept stale in-flight entry for {server_id}", "WARN", "INFLIGHT")
        return stale

    def is_in_flight(self, server_id: str) -> bool:
        return server_id in self._started

    def __len__(self) -> int:
        return len(self._started)
