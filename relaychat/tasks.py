"""Run independent side effects concurrently, each in its own failure domain."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """Result of one independent task: a value or the error it raised."""

    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def join_independent(**tasks: Awaitable[Any]) -> dict[str, TaskOutcome]:
    """Run awaitables concurrently and wait for all of them.

    A failure in one task neither cancels nor delays the others. Errors are
    returned, not raised, so the caller decides which ones are fatal.
    Cancellation of the caller still propagates.

    Args:
        **tasks: Awaitables keyed by name.

    Returns:
        Outcome per name.
    """
    names = list(tasks)
    results = await asyncio.gather(*tasks.values(), return_exceptions=True)

    outcomes: dict[str, TaskOutcome] = {}
    for name, result in zip(names, results, strict=True):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, Exception):
            logger.warning(f"Task {name!r} failed: {result}")
            outcomes[name] = TaskOutcome(error=result)
        else:
            outcomes[name] = TaskOutcome(value=result)
    return outcomes
