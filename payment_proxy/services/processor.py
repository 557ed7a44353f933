"""Transaction processing pipeline - rules first, then model scoring, then routing"""

import logging

from payment_proxy.domain.fraud_rules import FraudRuleEngine
from payment_proxy.domain.models import Transaction, TransactionStatus
from payment_proxy.infrastructure.observability.events import EVENTS, EventPublisher
from payment_proxy.infrastructure.observability.metrics import record_transaction, rule_block_counter
from payment_proxy.services.risk_scorer import RiskScorer

logger = logging.getLogger(__name__)

RULES_ONLY_EXPLANATION = "Transaction assessed using configurable fraud rules only"
SYSTEM_ERROR_EXPLANATION = "Transaction processing failed due to system error"


class TransactionProcessor:
    """Single entry point that turns a PENDING transaction into a decision"""

    def __init__(self, rule_engine: FraudRuleEngine, risk_scorer: RiskScorer, events: EventPublisher):
        self.rule_engine = rule_engine
        self.risk_scorer = risk_scorer
        self.events = events

    async def process_transaction(self, transaction: Transaction) -> Transaction:
        """
        Decide status, risk score and provider for a transaction.

        Flow:
        1. Evaluate fraud rules; any block-action match fails the transaction
           without calling the risk model
        2. Score with the risk model; final score = max(rule score, model score)
        3. Route to a provider and map the score to a status band

        Never raises: unexpected errors yield a FAILED transaction with
        risk score 1.0.
        """
        try:
            logger.info("Processing transaction", extra={"transaction_id": transaction.id})

            evaluation = self.rule_engine.evaluate(transaction)

            if evaluation.blocked_rules:
                transaction.apply_decision(
                    status=TransactionStatus.FAILED,
                    risk_score=1.0,
                    provider="blocked",
                    explanation=f"Transaction blocked by fraud rules: {', '.join(evaluation.blocked_rules)}",
                )
                rule_block_counter.inc()
                record_transaction(transaction.status.value, 1.0)
                logger.warning(
                    "Transaction blocked by fraud rules",
                    extra={"transaction_id": transaction.id, "blocked_rules": evaluation.blocked_rules},
                )
                self.events.publish(
                    EVENTS.DECISION_BLOCKED,
                    {"source": "TransactionProcessor", "transaction_id": transaction.id, "rules": evaluation.blocked_rules},
                )
                return transaction

            final_score = evaluation.score
            explanation = RULES_ONLY_EXPLANATION
            try:
                assessment = await self.risk_scorer.assess(transaction)
            except Exception as e:
                logger.warning(
                    "LLM assessment failed, using fraud rules only",
                    extra={"transaction_id": transaction.id, "error": str(e)},
                )
            else:
                final_score = max(evaluation.score, assessment.risk_score)
                explanation = assessment.explanation

            provider = self.rule_engine.select_provider(final_score)
            transaction.apply_decision(
                status=self.rule_engine.status_for_score(final_score),
                risk_score=final_score,
                provider=provider,
                explanation=explanation,
            )
        except Exception as e:
            logger.exception("Transaction processing failed", extra={"transaction_id": transaction.id, "error": str(e)})
            transaction.apply_decision(
                status=TransactionStatus.FAILED,
                risk_score=1.0,
                provider="error",
                explanation=SYSTEM_ERROR_EXPLANATION,
            )
            record_transaction(transaction.status.value, 1.0)
            return transaction

        record_transaction(transaction.status.value, final_score)
        self.events.publish(
            EVENTS.PAYMENT_PROCESSED,
            {
                "source": "TransactionProcessor",
                "transaction_id": transaction.id,
                "status": transaction.status.value,
                "provider": provider,
                "risk_score": final_score,
            },
        )
        logger.info(
            "Transaction processed successfully",
            extra={
                "transaction_id": transaction.id,
                "status": transaction.status.value,
                "provider": provider,
                "risk_score": final_score,
            },
        )
        return transaction
