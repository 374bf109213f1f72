"""Bounded retry for transient persistence failures."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an async operation a bounded number of times.

    Delay before attempt n+1 is ``base_delay * multiplier ** (n - 1)``,
    capped at ``max_delay``. A multiplier of 1.0 gives a fixed delay.

    Attributes:
        max_attempts: Total attempts, including the first one.
        base_delay: Seconds to wait after the first failure.
        multiplier: Growth factor of the delay between attempts.
        max_delay: Upper bound for any single delay.
        retry_on: Exception types that trigger another attempt.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 1.0
    max_delay: float = 30.0
    retry_on: tuple[type[Exception], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "operation",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Run the operation, retrying on failure.

        Args:
            operation: Zero-argument factory returning a fresh awaitable per attempt.
            description: Used in log messages.
            sleep: Awaitable delay function.

        Returns:
            The operation's result.

        Raises:
            Exception: The last failure once all attempts are used.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except self.retry_on as e:
                if attempt == self.max_attempts:
                    logger.error(f"{description} failed after {attempt} attempts: {e}")
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await sleep(delay)
        raise AssertionError("unreachable")


DEFAULT_RETRY = RetryPolicy()
