"""In-process event publisher used as a fire-and-forget observability channel"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

EventListener = Callable[[Dict[str, Any]], None]

EVENTS = SimpleNamespace(
    TRANSACTION_CREATED="transaction.created",
    TRANSACTION_UPDATED="transaction.updated",
    DECISION_BLOCKED="decision.blocked",
    PAYMENT_PROCESSED="payment.processed",
    RISK_ASSESSED="risk.assessed",
    LLM_CALL_FAILED="llm.call.failed",
    CIRCUIT_BREAKER_OPENED="circuit.breaker.opened",
)


class EventPublisher:
    """Synchronous pub/sub; a failing listener never affects the publisher"""

    def __init__(self):
        self._listeners: Dict[str, List[EventListener]] = defaultdict(list)

    def subscribe(self, event: str, listener: EventListener) -> None:
        self._listeners[event].append(listener)
        logger.info(f"Event listener subscribed to {event}")

    def publish(self, event: str, data: Dict[str, Any]) -> None:
        event_data = {**data, "timestamp": datetime.now(timezone.utc).isoformat()}

        for listener in list(self._listeners.get(event, [])):
            try:
                listener(event_data)
            except Exception:
                logger.exception(f"Error in event listener for {event}")

        logger.debug(f"Event published: {event}", extra={"event": event, "source": data.get("source")})
