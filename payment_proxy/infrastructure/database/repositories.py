"""Data access layer for payment transactions"""

from datetime import timezone
from typing import List, Optional
from sqlalchemy.orm import Session
from payment_proxy.infrastructure.database.models import PaymentTransaction
from payment_proxy.domain.models import Transaction, TransactionStatus


class TransactionRepository:
    """Repository for processed transactions"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, transaction: Transaction, client_id: str | None = None) -> PaymentTransaction:
        """Persist a processed transaction"""
        db_transaction = PaymentTransaction(
            id=transaction.id,
            client_id=client_id,
            amount=transaction.amount,
            currency=transaction.currency,
            source=transaction.source,
            email=transaction.email,
            status=transaction.status.value,
            provider=transaction.provider,
            risk_score=transaction.risk_score,
            explanation=transaction.explanation,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )
        self.db.add(db_transaction)
        self.db.flush()
        return db_transaction

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Fetch a transaction as a domain object"""
        row = (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.id == transaction_id)
            .first()
        )
        return _to_domain(row) if row else None

    def list_recent(self, client_id: str | None = None, limit: int = 20) -> List[Transaction]:
        """Most recent transactions, optionally for one API client"""
        query = self.db.query(PaymentTransaction)
        if client_id is not None:
            query = query.filter(PaymentTransaction.client_id == client_id)
        rows = query.order_by(PaymentTransaction.created_at.desc()).limit(limit).all()
        return [_to_domain(row) for row in rows]


def _to_domain(row: PaymentTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        amount=row.amount,
        currency=row.currency,
        source=row.source,
        email=row.email,
        status=TransactionStatus(row.status),
        provider=row.provider,
        risk_score=row.risk_score,
        explanation=row.explanation,
        # SQLite drops tzinfo on round trip
        created_at=row.created_at if row.created_at.tzinfo else row.created_at.replace(tzinfo=timezone.utc),
        updated_at=row.updated_at if row.updated_at.tzinfo else row.updated_at.replace(tzinfo=timezone.utc),
    )
