"""
Retry Backoff
=============
Exponential backoff schedule for bounded retry loops.

The schedule is a plain value object so that retry budgets are visible and
testable; the loop that consumes it owns the sleeping.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, List

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Delay schedule for retries.

    With the defaults the three retries wait 1s, 3s, then 9s.

    Attributes:
        max_retries: Retries after the initial attempt
        base_delay: Delay before the first retry, in seconds
        exponential_base: Multiplier applied per retry
        max_delay: Upper bound for any single delay
        jitter: Scale each delay by a random factor in [0.5, 1.5)
    """
    max_retries: int = 3
    base_delay: float = 1.0
    exponential_base: float = 3.0
    max_delay: float = 60.0
    jitter: bool = False

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based)."""
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")

        delay = min(
            self.base_delay * (self.exponential_base ** (retry_number - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay

    def delays(self) -> List[float]:
        return [self.delay_for(n) for n in range(1, self.max_retries + 1)]


async def default_sleep(delay: float) -> None:
    await asyncio.sleep(delay)
