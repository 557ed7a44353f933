"""Pytest fixtures for testing"""

import pytest
from typing import Any, Dict, Generator, Optional
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from payment_proxy.api.main import create_app
from payment_proxy.config import Settings
from payment_proxy.domain.exceptions import RiskScoringError
from payment_proxy.domain.fraud_rules import FraudRuleEngine
from payment_proxy.domain.models import (
    ConditionOperator,
    FraudCondition,
    FraudRule,
    FraudRuleConfig,
    ProviderConfig,
    RiskAssessment,
    RiskLevel,
    RiskThresholds,
    RiskTolerance,
    RuleAction,
    Transaction,
)
from payment_proxy.infrastructure.database.models import Base
from payment_proxy.infrastructure.database.session import get_db
from payment_proxy.infrastructure.observability.events import EventPublisher
from payment_proxy.infrastructure.security.tokens import TokenService
from payment_proxy.services.container import Services
from payment_proxy.services.processor import TransactionProcessor
from payment_proxy.services.risk_scorer import RiskScorer
from payment_proxy.utils.circuit_breaker import CircuitBreaker
from payment_proxy.utils.retry import RetryExecutor, RetryOptions


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class StaticRuleSource:
    """Rule source returning a fixed config, or raising when given an exception"""

    def __init__(self, config: FraudRuleConfig | Exception):
        self.config = config
        self.load_calls = 0

    def load(self) -> FraudRuleConfig:
        self.load_calls += 1
        if isinstance(self.config, Exception):
            raise self.config
        return self.config


class InMemoryCache:
    """Dict-backed stand-in for RedisCache"""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.available = True

    async def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def set(self, key: str, value: Any, ttl_seconds: int = 3600) -> bool:
        self.data[key] = value
        self.ttls[key] = ttl_seconds
        return True

    async def ping(self) -> bool:
        return self.available

    async def close(self) -> None:
        pass

    @staticmethod
    def generate_key(prefix: str, *parts: str) -> str:
        return ":".join([prefix, *parts])


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        jwt_secret="test-jwt-secret",
        client_id="test-client",
        client_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
def rule_config() -> FraudRuleConfig:
    """High-amount flag rule, a blocking email rule, paypal then stripe"""
    return FraudRuleConfig(
        rules=[
            FraudRule(
                name="high_amount_rule",
                enabled=True,
                weight=0.3,
                action=RuleAction.FLAG,
                conditions=[
                    FraudCondition("amount", ConditionOperator.GT, 100000, "Transaction amount exceeds $1000"),
                ],
            ),
            FraudRule(
                name="blocked_domain_rule",
                enabled=True,
                weight=0.9,
                action=RuleAction.BLOCK,
                conditions=[
                    FraudCondition("email", ConditionOperator.REGEX, r"@blocked\.test$", "Email domain is blocked"),
                ],
            ),
        ],
        providers=[
            ProviderConfig(name="paypal", priority=1, risk_tolerance=RiskTolerance.MEDIUM),
            ProviderConfig(name="stripe", priority=2, risk_tolerance=RiskTolerance.LOW),
        ],
        thresholds=RiskThresholds(low=0.3, medium=0.6, high=0.8, critical=0.9),
    )


@pytest.fixture
def rule_engine(rule_config: FraudRuleConfig) -> FraudRuleEngine:
    return FraudRuleEngine(StaticRuleSource(rule_config))


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def events() -> EventPublisher:
    return EventPublisher()


@pytest.fixture
def llm_client() -> AsyncMock:
    """Remote scorer stub; tests set score.return_value or side_effect"""
    client = AsyncMock()
    client.score.side_effect = lambda txn: make_assessment(txn.id, 0.2, RiskLevel.LOW)
    return client


@pytest.fixture
def circuit_breaker(events: EventPublisher) -> CircuitBreaker:
    return CircuitBreaker(
        "LLMService-test",
        failure_threshold=3,
        reset_timeout=30.0,
        failure_exceptions=(RiskScoringError,),
        events=events,
    )


@pytest.fixture
def retry_executor() -> RetryExecutor:
    return RetryExecutor(RetryOptions(max_attempts=3, base_delay=0.01, jitter=False), sleep=no_sleep)


@pytest.fixture
def risk_scorer(llm_client, cache, circuit_breaker, retry_executor, events) -> RiskScorer:
    return RiskScorer(
        client=llm_client,
        cache=cache,
        circuit_breaker=circuit_breaker,
        retry_executor=retry_executor,
        events=events,
    )


@pytest.fixture
def processor(rule_engine, risk_scorer, events) -> TransactionProcessor:
    return TransactionProcessor(rule_engine, risk_scorer, events)


@pytest.fixture
def sample_transaction() -> Transaction:
    return Transaction.create(amount=1000, currency="USD", source="tok_test", email="donor@example.com")


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def services(
    test_settings, events, cache, llm_client, circuit_breaker, rule_engine, risk_scorer, processor
) -> Services:
    return Services(
        settings=test_settings,
        events=events,
        cache=cache,
        llm_client=llm_client,
        circuit_breaker=circuit_breaker,
        rule_engine=rule_engine,
        risk_scorer=risk_scorer,
        processor=processor,
        tokens=TokenService(test_settings),
    )


@pytest.fixture
def client(db: Session, test_settings: Settings, services: Services) -> TestClient:
    """Create FastAPI test client with test database and stubbed dependencies"""
    app = create_app(settings=test_settings, services=services)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def auth_headers(services: Services) -> Dict[str, str]:
    token = services.tokens.create_token("test-client")
    return {"Authorization": f"Bearer {token}"}


def make_assessment(transaction_id: str, score: float, level: RiskLevel, explanation: str = "Model assessment") -> RiskAssessment:
    return RiskAssessment(
        transaction_id=transaction_id,
        risk_score=score,
        risk_level=level,
        explanation=explanation,
    )
