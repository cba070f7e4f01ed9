from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .tools.errors import ErrorKind, classify

T = TypeVar("T")

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 2.0
    growth: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if not 1.5 <= self.growth <= 2.0:
            raise ValueError("growth must be between 1.5 and 2.0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the failed 0-indexed ``attempt``."""
        return self.base_delay * (self.growth ** attempt)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    label: str = "call",
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Await ``operation()``, retrying rate-limited failures with exponential backoff.

    Anything that is not rate limiting, and the last rate-limit failure once
    ``policy.max_retries`` is used up, is re-raised as-is.
    """
    policy = policy or RetryPolicy()
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if classify(exc) is not ErrorKind.RETRYABLE or attempt >= policy.max_retries:
                raise
            delay = policy.delay(attempt)
            log.warning(
                "rate limited [%s], retry %d/%d in %.2fs: %s",
                label,
                attempt + 1,
                policy.max_retries,
                delay,
                exc,
            )
            await sleep(delay)
            attempt += 1
