"""Wall-clock deadlines shared by the steps of a single check."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import anyio

from .exceptions import CheckTimeoutError

T = TypeVar("T")

# Timeout tiers, in seconds
SHORT_TIMEOUT = 10.0
LONG_TIMEOUT = 20.0


class Deadline:
    """A budget that starts at construction; every step runs under what is left of it."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self.started_at = clock()

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def elapsed_ms(self) -> int:
        return round(self.elapsed() * 1000)

    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    @property
    def timeout_ms(self) -> int:
        return int(self.seconds * 1000)

    async def run(self, awaitable: Awaitable[T], step: str = "operation") -> T:
        """Await with the remaining budget; CheckTimeoutError when it runs out.

        The step runs in the calling task so cancel scopes entered by earlier
        steps (the SDK's task groups) stay owned by the same task.
        """
        remaining = self.remaining()
        if remaining <= 0:
            # Never started, so close the coroutine to avoid a "never awaited" warning
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CheckTimeoutError(f"{step} timed out after {self.seconds:g}s")

        try:
            with anyio.fail_after(remaining):
                return await awaitable
        except TimeoutError as e:
            if isinstance(e, CheckTimeoutError):
                raise
            raise CheckTimeoutError(f"{step} timed out after {self.seconds:g}s") from e
