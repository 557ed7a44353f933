"""Retry with exponential backoff and jitter for async operations"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryOptions:
    """Retry schedule. Delays are in seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)


class RetryExecutor:
    """Runs an async operation, retrying failures on a backoff schedule"""

    def __init__(
        self,
        default_options: RetryOptions | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.default_options = default_options or RetryOptions()
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        options: RetryOptions | None = None,
    ) -> T:
        """
        Call operation until it succeeds or attempts run out.

        Retry strategy:
        - delay = min(base_delay * backoff_factor^(attempt-1), max_delay)
        - with jitter the delay is scaled by a uniform factor in [0.5, 1.0]
        - exceptions outside retry_on propagate at once
        - after the final attempt the last exception is re-raised unchanged
        """
        opts = options or self.default_options

        for attempt in range(1, opts.max_attempts + 1):
            try:
                result = await operation()
            except opts.retry_on as e:
                logger.warning(
                    f"Operation failed on attempt {attempt}/{opts.max_attempts}",
                    extra={"attempt": attempt, "error": str(e)},
                )
                if attempt >= opts.max_attempts:
                    logger.error(
                        f"Operation failed after {opts.max_attempts} attempts",
                        extra={"error": str(e)},
                    )
                    raise

                await self._sleep(self.calculate_delay(attempt, opts))
                continue

            if attempt > 1:
                logger.info(f"Operation succeeded on attempt {attempt}")
            return result

        raise ValueError("max_attempts must be at least 1")

    def calculate_delay(self, attempt: int, options: RetryOptions) -> float:
        delay = min(options.base_delay * (options.backoff_factor ** (attempt - 1)), options.max_delay)
        if options.jitter:
            delay *= self._rng.uniform(0.5, 1.0)
        return delay
