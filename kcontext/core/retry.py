"""Retry helper with exponential backoff for store writes.

Wraps an async operation that may fail transiently (SQLite busy, network
store hiccups) and retries it with a deterministic exponential schedule.

Backoff schedule (base_delay_ms=250, factor=2):
    Attempt 1: immediate
    Attempt 2: 250ms delay
    Attempt 3: 500ms delay
    Attempt 4: 1000ms delay
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOptions:
    """Retry budget for a single operation."""

    max_retries: int = 3
    base_delay_ms: float = 250
    factor: float = 2.0

    def delay_seconds(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (0-based attempt)."""
        return (self.base_delay_ms * self.factor**attempt) / 1000.0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` and retry it on failure.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        options: Retry budget (defaults to ``RetryOptions()``)
        exceptions: Exception types that trigger a retry
        sleep: Awaitable sleep function, injectable for tests

    Returns:
        The operation's result

    Raises:
        The last exception raised by ``operation`` once retries are exhausted
    """
    if options is None:
        options = RetryOptions()

    for attempt in range(options.max_retries + 1):
        try:
            return await operation()
        except exceptions as e:
            if attempt >= options.max_retries:
                logger.warning(
                    "retry_exhausted",
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise

            delay = options.delay_seconds(attempt)
            logger.info(
                "retry_scheduled",
                attempt=attempt + 1,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            await sleep(delay)

    # max_retries is never negative in practice; keep the type checker honest
    raise RuntimeError("retry_with_backoff called with a negative retry budget")
