"""Unit tests for the transaction processing pipeline"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import StaticRuleSource, make_assessment
from payment_proxy.domain.exceptions import RemoteCallError
from payment_proxy.domain.fraud_rules import FraudRuleEngine
from payment_proxy.domain.models import (
    FraudRuleConfig,
    RiskLevel,
    RiskThresholds,
    Transaction,
    TransactionStatus,
)
from payment_proxy.infrastructure.observability.events import EVENTS
from payment_proxy.services.processor import (
    RULES_ONLY_EXPLANATION,
    SYSTEM_ERROR_EXPLANATION,
    TransactionProcessor,
)
from payment_proxy.services.risk_scorer import FALLBACK_EXPLANATION
from payment_proxy.utils.circuit_breaker import CircuitState

# Bands under which 0.3 <= score < 0.6 is PROCESSING
REVIEW_HEAVY_THRESHOLDS = RiskThresholds(low=0.1, medium=0.3, high=0.6, critical=0.9)


@pytest.fixture
def review_heavy_engine(rule_config: FraudRuleConfig) -> FraudRuleEngine:
    config = FraudRuleConfig(
        rules=rule_config.rules,
        providers=rule_config.providers,
        thresholds=REVIEW_HEAVY_THRESHOLDS,
    )
    return FraudRuleEngine(StaticRuleSource(config))


def model_returns(llm_client, score: float, level: RiskLevel, explanation: str = "Model assessment"):
    llm_client.score.side_effect = lambda txn: make_assessment(txn.id, score, level, explanation)


async def test_blocked_transaction_never_calls_model(processor, llm_client, events):
    blocked = []
    events.subscribe(EVENTS.DECISION_BLOCKED, blocked.append)
    transaction = Transaction.create(amount=1000, currency="USD", source="tok_test", email="fraud@blocked.test")

    result = await processor.process_transaction(transaction)

    assert llm_client.score.await_count == 0
    assert result.status is TransactionStatus.FAILED
    assert result.provider == "blocked"
    assert result.risk_score == 1.0
    assert result.explanation == "Transaction blocked by fraud rules: blocked_domain_rule"
    assert blocked[0]["rules"] == ["blocked_domain_rule"]


async def test_final_score_is_max_of_rule_and_model(rule_engine, events, sample_transaction):
    """rule 0.3 and model 0.7 combine to 0.7, not 1.0 and not 0.5"""
    sample_transaction.amount = 150000  # high_amount_rule, weight 0.3
    scorer = AsyncMock()
    scorer.assess.return_value = make_assessment(sample_transaction.id, 0.7, RiskLevel.HIGH, "High model risk")
    processor = TransactionProcessor(rule_engine, scorer, events)

    result = await processor.process_transaction(sample_transaction)

    assert result.risk_score == pytest.approx(0.7)
    assert result.explanation == "High model risk"
    assert result.status is TransactionStatus.PROCESSING


async def test_rule_score_dominates_lower_model_score(processor, llm_client, sample_transaction):
    sample_transaction.amount = 150000
    model_returns(llm_client, 0.1, RiskLevel.LOW)

    result = await processor.process_transaction(sample_transaction)

    assert result.risk_score == pytest.approx(0.3)


async def test_scenario_a_medium_model_score(review_heavy_engine, risk_scorer, llm_client, events, sample_transaction):
    model_returns(llm_client, 0.32, RiskLevel.MEDIUM)
    processor = TransactionProcessor(review_heavy_engine, risk_scorer, events)

    result = await processor.process_transaction(sample_transaction)

    assert result.risk_score == pytest.approx(0.32)
    assert result.status is TransactionStatus.PROCESSING
    assert result.provider == "paypal"


async def test_scenario_b_open_circuit_uses_fallback_score(
    review_heavy_engine, risk_scorer, llm_client, circuit_breaker, events, sample_transaction
):
    llm_client.score.side_effect = RemoteCallError("down")
    for _ in range(circuit_breaker.failure_threshold):
        await risk_scorer.assess(sample_transaction)
    assert circuit_breaker.state is CircuitState.OPEN
    calls = llm_client.score.await_count
    processor = TransactionProcessor(review_heavy_engine, risk_scorer, events)

    result = await processor.process_transaction(sample_transaction)

    assert llm_client.score.await_count == calls
    assert result.risk_score == pytest.approx(0.5)
    assert result.explanation == FALLBACK_EXPLANATION
    assert result.status is TransactionStatus.PROCESSING


async def test_scenario_c_flag_rule_outweighs_model(review_heavy_engine, risk_scorer, llm_client, events, sample_transaction):
    sample_transaction.amount = 150000
    model_returns(llm_client, 0.2, RiskLevel.LOW)
    processor = TransactionProcessor(review_heavy_engine, risk_scorer, events)

    result = await processor.process_transaction(sample_transaction)

    assert result.risk_score == pytest.approx(0.3)
    # 0.3 sits exactly on the lower edge of the PROCESSING band
    assert result.status is TransactionStatus.PROCESSING
    assert result.provider == "paypal"


@pytest.mark.parametrize(
    "model_score, expected_status",
    [
        (0.2, TransactionStatus.SUCCESS),
        (0.599999, TransactionStatus.SUCCESS),
        (0.6, TransactionStatus.PROCESSING),
        (0.8, TransactionStatus.PENDING),
        (0.9, TransactionStatus.FAILED),
    ],
)
async def test_default_threshold_status_mapping(processor, llm_client, sample_transaction, model_score, expected_status):
    model_returns(llm_client, model_score, RiskLevel.MEDIUM)

    result = await processor.process_transaction(sample_transaction)

    assert result.status is expected_status


async def test_high_score_routes_to_last_provider(processor, llm_client, sample_transaction):
    model_returns(llm_client, 0.85, RiskLevel.HIGH)

    result = await processor.process_transaction(sample_transaction)

    # neither paypal (0.6) nor stripe (0.3) covers 0.85
    assert result.provider == "stripe"


async def test_scorer_exception_falls_back_to_rules_only(rule_engine, events, sample_transaction):
    scorer = AsyncMock()
    scorer.assess.side_effect = RuntimeError("unexpected")
    processor = TransactionProcessor(rule_engine, scorer, events)

    result = await processor.process_transaction(sample_transaction)

    assert result.risk_score == 0.0
    assert result.explanation == RULES_ONLY_EXPLANATION
    assert result.status is TransactionStatus.SUCCESS
    assert result.provider == "paypal"


async def test_unexpected_error_yields_conservative_failure(events, sample_transaction):
    rule_engine = MagicMock()
    rule_engine.evaluate.side_effect = ValueError("corrupt rule state")
    processor = TransactionProcessor(rule_engine, AsyncMock(), events)

    result = await processor.process_transaction(sample_transaction)

    assert result.status is TransactionStatus.FAILED
    assert result.risk_score == 1.0
    assert result.provider == "error"
    assert result.explanation == SYSTEM_ERROR_EXPLANATION


async def test_processing_updates_transaction_in_place(processor, sample_transaction):
    before = sample_transaction.updated_at

    result = await processor.process_transaction(sample_transaction)

    assert result is sample_transaction
    assert result.updated_at >= before
    assert result.risk_score is not None


async def test_processed_event_published(processor, events, sample_transaction):
    received = []
    events.subscribe(EVENTS.PAYMENT_PROCESSED, received.append)

    await processor.process_transaction(sample_transaction)

    assert received[0]["transaction_id"] == sample_transaction.id
    assert received[0]["status"] == "success"


async def test_failing_event_listener_does_not_break_processing(processor, events, sample_transaction):
    def broken_listener(data):
        raise RuntimeError("sink down")

    events.subscribe(EVENTS.PAYMENT_PROCESSED, broken_listener)

    result = await processor.process_transaction(sample_transaction)

    assert result.status is TransactionStatus.SUCCESS
