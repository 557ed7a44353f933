"""Circuit breaker guarding calls to a flaky remote dependency"""

import inspect
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Tuple, Type, TypeVar

from payment_proxy.domain.exceptions import CircuitOpenError
from payment_proxy.infrastructure.observability.events import EVENTS, EventPublisher
from payment_proxy.infrastructure.observability.metrics import circuit_breaker_state_gauge

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


_STATE_GAUGE_VALUES = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1, CircuitState.OPEN: 2}


class CircuitBreaker:
    """
    Tracks consecutive failures of one logical dependency.

    CLOSED -> OPEN after failure_threshold consecutive failures.
    OPEN short-circuits to the fallback until reset_timeout has elapsed,
    then a single call is let through in HALF_OPEN.
    HALF_OPEN -> CLOSED on success, back to OPEN on failure.

    Counters are read and updated without an await in between, so one
    instance can be shared by every request task on the event loop.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        fallback: Callable[[], Any] | None = None,
        failure_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
        events: EventPublisher | None = None,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.fallback = fallback
        self.failure_exceptions = failure_exceptions
        self._clock = clock
        self._events = events

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: datetime | None = None
        self._next_attempt: float | None = None
        circuit_breaker_state_gauge.labels(name=name).set(_STATE_GAUGE_VALUES[self._state])

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._state is CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition(CircuitState.HALF_OPEN)
            else:
                return await self._call_fallback()

        try:
            result = await operation()
        except self.failure_exceptions:
            self._on_failure()
            raise

        self._on_success()
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure_time": self._last_failure_time.isoformat() if self._last_failure_time else None,
        }

    def _should_attempt_reset(self) -> bool:
        return self._next_attempt is not None and self._clock() >= self._next_attempt

    def _on_success(self) -> None:
        self._failure_count = 0
        self._success_count += 1
        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = datetime.now(timezone.utc)

        if self._failure_count >= self.failure_threshold or self._state is CircuitState.HALF_OPEN:
            self._next_attempt = self._clock() + self.reset_timeout
            if self._state is not CircuitState.OPEN:
                self._transition(CircuitState.OPEN)

    async def _call_fallback(self) -> Any:
        if self.fallback is None:
            raise CircuitOpenError(self.name)
        result = self.fallback()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        circuit_breaker_state_gauge.labels(name=self.name).set(_STATE_GAUGE_VALUES[new_state])

        if new_state is CircuitState.OPEN:
            logger.warning(
                f"Circuit breaker {self.name} opened due to {self._failure_count} failures",
                extra={"circuit_breaker": self.name, "from_state": old_state.value},
            )
            if self._events is not None:
                self._events.publish(
                    EVENTS.CIRCUIT_BREAKER_OPENED,
                    {"source": "CircuitBreaker", "name": self.name, "failure_count": self._failure_count},
                )
        else:
            logger.info(
                f"Circuit breaker {self.name} moved to {new_state.value} state",
                extra={"circuit_breaker": self.name, "from_state": old_state.value},
            )
