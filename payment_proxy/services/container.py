"""Wires the process-wide service graph once at startup"""

from dataclasses import dataclass

from payment_proxy.config import Settings
from payment_proxy.domain.exceptions import RiskScoringError
from payment_proxy.domain.fraud_rules import FraudRuleEngine
from payment_proxy.infrastructure.cache.redis_cache import RedisCache
from payment_proxy.infrastructure.clients.llm import LLMClient
from payment_proxy.infrastructure.observability.events import EventPublisher
from payment_proxy.infrastructure.rules.yaml_source import YamlRuleConfigSource
from payment_proxy.infrastructure.security.tokens import TokenService
from payment_proxy.services.processor import TransactionProcessor
from payment_proxy.services.risk_scorer import RiskScorer
from payment_proxy.utils.circuit_breaker import CircuitBreaker
from payment_proxy.utils.retry import RetryExecutor, RetryOptions


@dataclass
class Services:
    """Shared components; one instance per process"""

    settings: Settings
    events: EventPublisher
    cache: RedisCache
    llm_client: LLMClient
    circuit_breaker: CircuitBreaker
    rule_engine: FraudRuleEngine
    risk_scorer: RiskScorer
    processor: TransactionProcessor
    tokens: TokenService

    async def close(self) -> None:
        await self.llm_client.close()
        await self.cache.close()


def build_services(settings: Settings) -> Services:
    events = EventPublisher()
    cache = RedisCache.from_url(settings.redis_url)
    llm_client = LLMClient(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        timeout=settings.llm_timeout_seconds,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
    circuit_breaker = CircuitBreaker(
        "LLMService",
        failure_threshold=settings.circuit_breaker_failure_threshold,
        reset_timeout=settings.circuit_breaker_reset_timeout_seconds,
        failure_exceptions=(RiskScoringError,),
        events=events,
    )
    retry_executor = RetryExecutor(
        RetryOptions(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )
    )
    rule_engine = FraudRuleEngine(YamlRuleConfigSource(settings.fraud_rules_path))
    risk_scorer = RiskScorer(
        client=llm_client,
        cache=cache,
        circuit_breaker=circuit_breaker,
        retry_executor=retry_executor,
        events=events,
        cache_ttl_seconds=settings.risk_cache_ttl_seconds,
        parse_failure_policy=settings.llm_parse_failure_policy,
        disabled=settings.llm_disabled,
    )
    processor = TransactionProcessor(rule_engine, risk_scorer, events)

    return Services(
        settings=settings,
        events=events,
        cache=cache,
        llm_client=llm_client,
        circuit_breaker=circuit_breaker,
        rule_engine=rule_engine,
        risk_scorer=risk_scorer,
        processor=processor,
        tokens=TokenService(settings),
    )
