"""Rule-only evaluation and rule reload endpoints for audit tooling"""

import logging
from fastapi import APIRouter, Depends

from payment_proxy.api.v1.schemas import (
    PaymentRequest,
    RiskFactorSchema,
    RuleEvaluationResponse,
    RuleReloadResponse,
)
from payment_proxy.api.dependencies import get_current_client, get_rule_engine
from payment_proxy.domain.fraud_rules import FraudRuleEngine
from payment_proxy.domain.models import Transaction

router = APIRouter()


@router.post("/rules/evaluate", response_model=RuleEvaluationResponse)
def evaluate_rules(
    request_body: PaymentRequest,
    client_id: str = Depends(get_current_client),
    rule_engine: FraudRuleEngine = Depends(get_rule_engine),
):
    """
    Dry run: evaluate fraud rules for a would-be payment.

    The risk model is not called and nothing is persisted.
    """
    transaction = Transaction.create(
        amount=request_body.amount,
        currency=request_body.currency,
        source=request_body.source,
        email=request_body.email,
    )
    evaluation = rule_engine.evaluate_risk_from_rules(transaction)

    return RuleEvaluationResponse(
        score=evaluation.score,
        factors=[
            RiskFactorSchema(factor=f.factor, weight=f.weight, description=f.description)
            for f in evaluation.factors
        ],
        blocked_rules=evaluation.blocked_rules,
        provider=rule_engine.select_provider(evaluation.score),
        status=rule_engine.status_for_score(evaluation.score).value,
    )


@router.post("/rules/reload", response_model=RuleReloadResponse)
def reload_rules(
    client_id: str = Depends(get_current_client),
    rule_engine: FraudRuleEngine = Depends(get_rule_engine),
):
    """Re-read the fraud rule file; a broken file installs the built-in defaults"""
    config = rule_engine.reload_config()
    logging.info("Fraud rules reloaded", extra={"client_id": client_id})
    return RuleReloadResponse(rules_count=len(config.rules), providers_count=len(config.providers))
