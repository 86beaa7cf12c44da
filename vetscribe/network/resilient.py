"""Retry with backoff for a single network request.

Only transport failures (no HTTP response at all) are retried. A response with
a non-2xx status is a result like any other and goes straight back to the
caller, which decides whether it is a ProviderError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts and delays for call_with_retry."""
    max_attempts: int = 3
    initial_delay_ms: int = 2000
    backoff_multiplier: float = 1.5

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay_ms=settings.initial_delay_ms,
            backoff_multiplier=settings.backoff_multiplier,
        )

    def delay_after(self, failed_attempts: int) -> float:
        """Seconds to wait after the given number of failed attempts (1-based)."""
        return self.initial_delay_ms * (self.backoff_multiplier ** (failed_attempts - 1)) / 1000.0


def retry_message(attempt: int, max_attempts: int, wait_seconds: float) -> str:
    return (f"Network connection lost (attempt {attempt}/{max_attempts}); "
            f"retrying in {wait_seconds:.1f}s")


async def call_with_retry(
    request: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    on_retry: Optional[Callable[[str], None]] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run `request`, retrying on TransportError.

    Args:
        request: Zero-argument coroutine function performing one attempt
        policy: Attempt count and backoff schedule
        on_retry: Receives a user-facing warning before each wait
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Whatever the first successful attempt returned

    Raises:
        TransportError: The last one, unchanged, once all attempts are used up
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await request()
        except TransportError as e:
            if attempt >= policy.max_attempts:
                logger.error(f"Giving up after {attempt} attempts: {e}")
                raise
            wait = policy.delay_after(attempt)
            message = retry_message(attempt, policy.max_attempts, wait)
            logger.warning(f"{message} ({e})")
            if on_retry is not None:
                on_retry(message)
            await sleep(wait)
