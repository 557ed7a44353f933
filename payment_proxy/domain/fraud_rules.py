"""Fraud rule engine - declarative rule evaluation, provider routing and status bands"""

import logging
import re
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Callable, Dict, List, Protocol

from payment_proxy.domain.models import (
    ConditionOperator,
    FraudCondition,
    FraudRule,
    FraudRuleConfig,
    ProviderConfig,
    RiskFactor,
    RiskThresholds,
    RiskTolerance,
    RuleAction,
    RuleEvaluation,
    Transaction,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "paypal"

# Highest risk score each provider tier accepts
RISK_TOLERANCE_CEILINGS: Dict[RiskTolerance, float] = {
    RiskTolerance.LOW: 0.3,
    RiskTolerance.MEDIUM: 0.6,
    RiskTolerance.HIGH: 0.8,
}

DEFAULT_RULE_CONFIG = FraudRuleConfig(
    rules=[
        FraudRule(
            name="high_amount_rule",
            enabled=True,
            weight=0.3,
            action=RuleAction.FLAG,
            conditions=[
                FraudCondition(
                    field="amount",
                    operator=ConditionOperator.GT,
                    value=100000,
                    description="Transaction amount exceeds $1000",
                )
            ],
        )
    ],
    providers=[
        ProviderConfig(name="paypal", priority=1, risk_tolerance=RiskTolerance.MEDIUM, enabled=True),
        ProviderConfig(name="stripe", priority=2, risk_tolerance=RiskTolerance.LOW, enabled=True),
    ],
    thresholds=RiskThresholds(low=0.3, medium=0.6, high=0.8, critical=0.9),
)

# Transaction fields addressable from rule conditions
FIELD_ACCESSORS: Dict[str, Callable[[Transaction], Any]] = {
    "id": lambda t: t.id,
    "amount": lambda t: t.amount,
    "currency": lambda t: t.currency,
    "source": lambda t: t.source,
    "email": lambda t: t.email,
    "status": lambda t: t.status.value,
    "provider": lambda t: t.provider,
}


class RuleConfigSource(Protocol):
    def load(self) -> FraudRuleConfig: ...


def day_type(moment: datetime) -> str:
    """Resolve the synthetic timestamp field: Saturday and Sunday are the weekend"""
    return "weekend" if moment.weekday() >= 5 else "weekday"


class FraudRuleEngine:
    """
    Evaluates the configured fraud rules and routes by risk score.

    The active FraudRuleConfig is an immutable value; reload_config() swaps
    the reference, so readers never see a half-loaded rule set.
    """

    def __init__(
        self,
        source: RuleConfigSource,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.source = source
        self._now = now
        self._config: FraudRuleConfig = DEFAULT_RULE_CONFIG
        self.reload_config()

    @property
    def config(self) -> FraudRuleConfig:
        return self._config

    @property
    def rules(self) -> List[FraudRule]:
        return [rule for rule in self._config.rules if rule.enabled]

    @property
    def providers(self) -> List[ProviderConfig]:
        return sorted(
            (p for p in self._config.providers if p.enabled),
            key=lambda p: p.priority,
        )

    @property
    def thresholds(self) -> RiskThresholds:
        return self._config.thresholds

    def reload_config(self) -> FraudRuleConfig:
        """
        Re-read rules, providers and thresholds from the source.

        A broken source never fails the caller: the embedded default
        configuration is installed instead.
        """
        try:
            config = self.source.load()
        except Exception:
            logger.exception("Failed to load fraud rules configuration, using defaults")
            config = DEFAULT_RULE_CONFIG
        else:
            logger.info(
                "Fraud rules configuration loaded successfully",
                extra={"rules_count": len(config.rules), "providers_count": len(config.providers)},
            )

        self._config = config
        return config

    def evaluate(self, transaction: Transaction) -> RuleEvaluation:
        """
        Run every enabled rule against the transaction.

        A rule matches when all of its conditions hold. Matched weights are
        summed and the total is capped at 1.0; block-action matches are
        reported in blocked_rules.
        """
        total = 0.0
        factors: List[RiskFactor] = []
        blocked_rules: List[str] = []
        evaluated_at = self._now()

        for rule in self.rules:
            if not all(self._evaluate_condition(c, transaction, evaluated_at) for c in rule.conditions):
                continue

            total += rule.weight
            factors.append(
                RiskFactor(
                    factor=rule.name,
                    weight=rule.weight,
                    description=", ".join(c.description for c in rule.conditions),
                )
            )
            if rule.action is RuleAction.BLOCK:
                blocked_rules.append(rule.name)

        return RuleEvaluation(score=min(1.0, total), factors=factors, blocked_rules=blocked_rules)

    evaluate_risk_from_rules = evaluate

    def select_provider(self, risk_score: float) -> str:
        """First provider by priority whose ceiling covers the score, else the last one"""
        providers = self.providers
        if not providers:
            return DEFAULT_PROVIDER

        for provider in providers:
            if risk_score <= RISK_TOLERANCE_CEILINGS.get(provider.risk_tolerance, 0.6):
                return provider.name

        return providers[-1].name

    def status_for_score(self, risk_score: float) -> TransactionStatus:
        """
        Map a final risk score to a transaction status.

        Bands are checked from highest to lowest; a score equal to a
        threshold belongs to the band that threshold opens.
        """
        thresholds = self.thresholds
        if risk_score >= thresholds.critical:
            return TransactionStatus.FAILED
        elif risk_score >= thresholds.high:
            return TransactionStatus.PENDING  # manual review
        elif risk_score >= thresholds.medium:
            return TransactionStatus.PROCESSING
        else:
            return TransactionStatus.SUCCESS

    def _evaluate_condition(self, condition: FraudCondition, transaction: Transaction, evaluated_at: datetime) -> bool:
        field_value = self._field_value(condition.field, transaction, evaluated_at)
        operator = condition.operator

        if operator is ConditionOperator.GT:
            return _is_number(field_value) and _is_number(condition.value) and field_value > condition.value
        if operator is ConditionOperator.LT:
            return _is_number(field_value) and _is_number(condition.value) and field_value < condition.value
        if operator is ConditionOperator.EQ:
            return field_value == condition.value
        if operator is ConditionOperator.CONTAINS:
            return str(condition.value) in str(field_value)
        if operator is ConditionOperator.REGEX:
            try:
                return re.search(str(condition.value), str(field_value)) is not None
            except re.error:
                logger.error(
                    f"Invalid regex in fraud rule condition on {condition.field!r}",
                    extra={"pattern": condition.value},
                )
                return False
        return False

    def _field_value(self, field: str, transaction: Transaction, evaluated_at: datetime) -> Any:
        if field == "timestamp":
            return day_type(evaluated_at)
        accessor = FIELD_ACCESSORS.get(field)
        return accessor(transaction) if accessor else None


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)
