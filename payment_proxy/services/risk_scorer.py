"""Model-based risk scoring with cache, circuit breaker, retry and fallback"""

import logging
from typing import Any, Protocol

from payment_proxy.domain.exceptions import CircuitOpenError, MalformedResponseError, RemoteCallError, RiskScoringError
from payment_proxy.domain.models import RiskAssessment, RiskFactor, RiskLevel, Transaction
from payment_proxy.infrastructure.observability.events import EVENTS, EventPublisher
from payment_proxy.infrastructure.observability.metrics import risk_assessment_counter
from payment_proxy.utils.circuit_breaker import CircuitBreaker
from payment_proxy.utils.retry import RetryExecutor, RetryOptions

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = (
    "Risk assessment service temporarily unavailable. Using rule-based fallback assessment."
)


class RemoteRiskScorer(Protocol):
    async def score(self, transaction: Transaction) -> RiskAssessment: ...


class KeyValueCache(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl_seconds: int = 3600) -> bool: ...

    def generate_key(self, prefix: str, *parts: str) -> str: ...


def fallback_assessment(transaction: Transaction) -> RiskAssessment:
    """Fixed, conservative assessment used whenever the model cannot answer"""
    return RiskAssessment(
        transaction_id=transaction.id,
        risk_score=0.5,
        risk_level=RiskLevel.MEDIUM,
        explanation=FALLBACK_EXPLANATION,
        factors=[
            RiskFactor(
                factor="service_unavailable",
                weight=0.5,
                description="LLM risk assessment service is currently unavailable (check API credits/connectivity)",
            )
        ],
        recommendations=[
            "Manual review required",
            "Check LLM service configuration",
            "Consider declining if high value",
        ],
    )


class RiskScorer:
    """
    Produces a RiskAssessment for a transaction.

    Flow: cache lookup -> circuit breaker -> retry -> remote model call.
    Remote and parse failures resolve to fallback_assessment(); anything
    else is a bug and propagates to the caller.
    """

    def __init__(
        self,
        client: RemoteRiskScorer,
        cache: KeyValueCache,
        circuit_breaker: CircuitBreaker,
        retry_executor: RetryExecutor,
        events: EventPublisher,
        cache_ttl_seconds: int = 3600,
        retry_options: RetryOptions | None = None,
        parse_failure_policy: str = "fallback",
        disabled: bool = False,
    ):
        self.client = client
        self.cache = cache
        self.circuit_breaker = circuit_breaker
        self.retry_executor = retry_executor
        self.events = events
        self.cache_ttl_seconds = cache_ttl_seconds
        self.disabled = disabled

        base = retry_options or retry_executor.default_options
        retry_on = (RiskScoringError,) if parse_failure_policy == "retry" else (RemoteCallError,)
        self.retry_options = RetryOptions(
            max_attempts=base.max_attempts,
            base_delay=base.base_delay,
            max_delay=base.max_delay,
            backoff_factor=base.backoff_factor,
            jitter=base.jitter,
            retry_on=retry_on,
        )

    async def assess(self, transaction: Transaction) -> RiskAssessment:
        if self.disabled:
            logger.warning("LLM integration disabled via LLM_DISABLED", extra={"transaction_id": transaction.id})
            risk_assessment_counter.labels(source="disabled").inc()
            return fallback_assessment(transaction)

        cache_key = self.cache.generate_key("risk_assessment", transaction.id)
        cached = await self._cached_assessment(cache_key)
        if cached is not None:
            logger.debug("Risk assessment retrieved from cache", extra={"transaction_id": transaction.id})
            risk_assessment_counter.labels(source="cache").inc()
            return cached

        try:
            assessment = await self.circuit_breaker.execute(
                lambda: self.retry_executor.execute(
                    lambda: self.client.score(transaction),
                    self.retry_options,
                )
            )
        except (RiskScoringError, CircuitOpenError) as e:
            logger.error(
                "LLM risk assessment failed",
                extra={
                    "transaction_id": transaction.id,
                    "error": str(e),
                    "malformed": isinstance(e, MalformedResponseError),
                },
            )
            self.events.publish(
                EVENTS.LLM_CALL_FAILED,
                {"source": "RiskScorer", "transaction_id": transaction.id, "error": str(e)},
            )
            logger.warning(
                "Using fallback risk assessment",
                extra={"transaction_id": transaction.id, "reason": "LLM service unavailable"},
            )
            risk_assessment_counter.labels(source="fallback").inc()
            return fallback_assessment(transaction)

        await self.cache.set(cache_key, assessment.to_dict(), self.cache_ttl_seconds)
        self.events.publish(
            EVENTS.RISK_ASSESSED,
            {"source": "RiskScorer", "transaction_id": transaction.id, "risk_level": assessment.risk_level.value},
        )
        risk_assessment_counter.labels(source="model").inc()
        return assessment

    async def _cached_assessment(self, cache_key: str) -> RiskAssessment | None:
        data = await self.cache.get(cache_key)
        if not data:
            return None
        try:
            return RiskAssessment.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Discarding unreadable cached risk assessment", extra={"key": cache_key, "error": str(e)})
            return None
