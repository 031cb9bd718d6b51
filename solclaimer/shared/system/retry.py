"""
Bounded Retry Policy
====================
Explicit re-read policy for values that settle with eventual-consistency
lag (signature statuses, owner balances).

Usage:
    policy = RetryPolicy(max_attempts=3, delay_s=0.4)
    status = await policy.poll(read_status, lambda s: s is not None)

`poll` performs one direct read plus up to `max_attempts` re-reads and
returns the last value read. Exhaustion is not an error: the caller
decides what an unsettled value means.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

_UNREAD = object()


@dataclass(frozen=True)
class RetryPolicy:
    """Max re-reads, delay before each re-read, and delay growth factor."""
    max_attempts: int = 3
    delay_s: float = 0.4
    backoff: float = 1.0

    def delays(self) -> Iterator[float]:
        delay = self.delay_s
        for _ in range(self.max_attempts):
            yield delay
            delay *= self.backoff

    async def poll(
        self,
        read: Callable[[], Awaitable[Any]],
        done: Callable[[Any], bool],
        first: Any = _UNREAD,
    ) -> Any:
        """`first`, when given, stands in for the direct read."""
        value = await read() if first is _UNREAD else first
        if done(value):
            return value
        for delay in self.delays():
            if delay > 0:
                await asyncio.sleep(delay)
            value = await read()
            if done(value):
                break
        return value

    @classmethod
    def immediate(cls, max_attempts: int = 3) -> "RetryPolicy":
        """Zero-delay policy (tests, offline tooling)."""
        return cls(max_attempts=max_attempts, delay_s=0.0)
