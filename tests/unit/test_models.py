"""Unit tests for transaction and assessment value objects"""

import pytest

from payment_proxy.domain.models import RiskAssessment, RiskFactor, RiskLevel, Transaction, TransactionStatus
from payment_proxy.utils.ids import is_valid_transaction_id


def test_create_builds_pending_transaction():
    transaction = Transaction.create(amount=500, currency="GBP", source="tok_x", email="a@example.com")

    assert transaction.status is TransactionStatus.PENDING
    assert transaction.provider is None
    assert transaction.risk_score is None
    assert transaction.created_at == transaction.updated_at
    assert is_valid_transaction_id(transaction.id)


def test_transaction_ids_are_unique():
    ids = {Transaction.create(amount=1, currency="USD", source="tok", email="a@b.co").id for _ in range(100)}

    assert len(ids) == 100


@pytest.mark.parametrize("score", [-0.01, 1.01])
def test_apply_decision_rejects_out_of_range_score(sample_transaction, score):
    with pytest.raises(ValueError):
        sample_transaction.apply_decision(TransactionStatus.SUCCESS, score, "paypal", "x")

    assert sample_transaction.status is TransactionStatus.PENDING


def test_transaction_dict_round_trip(sample_transaction):
    sample_transaction.apply_decision(TransactionStatus.PROCESSING, 0.42, "paypal", "needs a look")

    restored = Transaction.from_dict(sample_transaction.to_dict())

    assert restored == sample_transaction


def test_assessment_serializes_with_camel_case_keys():
    assessment = RiskAssessment(
        transaction_id="txn_1",
        risk_score=0.7,
        risk_level=RiskLevel.HIGH,
        explanation="New device",
        factors=[RiskFactor("new_device", 0.4, "First payment from this source")],
        recommendations=["Step-up verification"],
    )

    data = assessment.to_dict()

    assert data["transactionId"] == "txn_1"
    assert data["riskScore"] == 0.7
    assert data["riskLevel"] == "HIGH"
    assert data["factors"] == [
        {"factor": "new_device", "weight": 0.4, "description": "First payment from this source"}
    ]


@pytest.mark.parametrize(
    "value, valid",
    [
        ("txn_6f1c2a3b-4d5e-4f60-8a7b-9c0d1e2f3a4b", True),
        ("txn_short", False),
        ("pay_6f1c2a3b-4d5e-4f60-8a7b-9c0d1e2f3a4b", False),
        ("txn_6f1c2a3b 4d5e 4f60 8a7b 9c0d1e2f3a4b", False),
    ],
)
def test_is_valid_transaction_id(value, valid):
    assert is_valid_transaction_id(value) is valid
