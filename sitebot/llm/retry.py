"""Retry policy and a generic retry-with-backoff combinator."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait between tries.

    The wait after failed attempt *n* (1-based) is
    ``min(base_delay * 2 ** (n - 1), max_delay)`` seconds.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.base_delay < 0 or self.max_delay < 0:
            msg = "delays must be non-negative"
            raise ValueError(msg)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed *attempt* before the next one."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    def delays(self) -> list[float]:
        """Every wait this policy can produce, in order."""
        return [self.delay_for(n) for n in range(1, self.max_attempts)]


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "call",
) -> T:
    """Await ``fn()`` until it succeeds or the policy's attempts run out.

    Only exceptions in *retry_on* are retried; anything else propagates
    immediately. The last failure is re-raised once attempts are exhausted.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except retry_on as exc:
            if attempt == policy.max_attempts:
                logger.error("%s failed after %d attempts: %s", label, attempt, exc)
                raise
            wait = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                label,
                attempt,
                policy.max_attempts,
                exc,
                wait,
            )
            await sleep(wait)

    # max_attempts >= 1 guarantees the loop returns or raises.
    raise AssertionError("unreachable")
